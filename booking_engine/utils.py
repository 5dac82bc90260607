"""Shared time-of-day helpers used across the booking engine.

All slot arithmetic happens in whole minutes since midnight; ``time``
objects only appear at the edges (schemas, API, storage).
"""

from datetime import datetime, time
from typing import Callable

import pytz

MINUTES_PER_DAY = 24 * 60

Clock = Callable[[], datetime]


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string into a ``time``.

    Examples:
        >>> parse_time("09:30")
        datetime.time(9, 30)
    """
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from None


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def ensure_minute_resolution(value: time) -> time:
    if value.second or value.microsecond or value.tzinfo is not None:
        raise ValueError(f"Time {value.isoformat()} must be a naive HH:MM value")
    return value


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap test: ``[a_start, a_end)`` vs ``[b_start, b_end)``."""
    return a_start < b_end and b_start < a_end


def make_clock(timezone_name: str) -> Clock:
    """Return a wall-clock source yielding naive local time in ``timezone_name``.

    Provider schedules are expressed in local wall-clock time, so the cutoff
    comparison needs ``now`` in the same frame.
    """
    tz = pytz.timezone(timezone_name)

    def now() -> datetime:
        return datetime.now(pytz.UTC).astimezone(tz).replace(tzinfo=None)

    return now
