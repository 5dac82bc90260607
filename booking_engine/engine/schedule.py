"""
Provider weekly availability: one working window per weekday, an optional
break nested inside it, and per-date overrides.

Each day is independent. Editing a day never inherits from another day and
never touches existing bookings; narrowing hours after bookings exist is a
reporting concern, not something enforced here.

Usage:
    schedule = WeeklySchedule("prov-1")
    schedule.set_day(DayOfWeek.MONDAY, True, time(9), time(18), time(12), time(13))
    schedule.day_for(date(2025, 3, 17)).is_available  # True
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Optional

from booking_engine.errors import BreakOutOfBounds, InvalidRange
from booking_engine.schemas.schedule_schema import DayOfWeek, DayScheduleView
from booking_engine.utils import format_time, to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaySchedule:
    """Working and break windows for a single day. Validated on construction via build_day."""

    is_available: bool = False
    work_start: Optional[time] = None
    work_end: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def working_window(self) -> tuple[int, int]:
        """Return ``(start, end)`` in minutes since midnight."""
        if not self.is_available or self.work_start is None or self.work_end is None:
            raise ValueError("Day has no working window")
        return to_minutes(self.work_start), to_minutes(self.work_end)

    def break_window(self) -> Optional[tuple[int, int]]:
        if not self.has_break:
            return None
        return to_minutes(self.break_start), to_minutes(self.break_end)

    def working_hours_label(self) -> Optional[str]:
        if not self.is_available:
            return None
        return f"{format_time(self.work_start)} - {format_time(self.work_end)}"

    def to_view(
        self,
        day_of_week: Optional[DayOfWeek] = None,
        override_date: Optional[date] = None,
    ) -> DayScheduleView:
        return DayScheduleView(
            day_of_week=day_of_week,
            override_date=override_date,
            is_available=self.is_available,
            work_start=self.work_start,
            work_end=self.work_end,
            break_start=self.break_start,
            break_end=self.break_end,
        )


UNAVAILABLE_DAY = DaySchedule()


def build_day(
    is_available: bool,
    work_start: Optional[time] = None,
    work_end: Optional[time] = None,
    break_start: Optional[time] = None,
    break_end: Optional[time] = None,
    default_hours: Optional[tuple[time, time]] = None,
) -> DaySchedule:
    """
    Validate one day's windows and return the resulting DaySchedule.

    Raises:
        InvalidRange: work_start >= work_end, only one bound supplied, or
            no bounds and no defaults for an available day.
        BreakOutOfBounds: a break that is half-specified or not strictly
            nested inside the working window.
    """
    if not is_available:
        return UNAVAILABLE_DAY

    if work_start is None and work_end is None:
        if default_hours is None:
            raise InvalidRange("Working hours are required for an available day")
        work_start, work_end = default_hours
    elif work_start is None or work_end is None:
        raise InvalidRange("Both work_start and work_end must be supplied")

    if to_minutes(work_start) >= to_minutes(work_end):
        raise InvalidRange(
            f"work_start {format_time(work_start)} must be before "
            f"work_end {format_time(work_end)}"
        )

    if (break_start is None) != (break_end is None):
        raise BreakOutOfBounds("Both break_start and break_end must be supplied together")

    if break_start is not None:
        nested = (
            to_minutes(work_start)
            < to_minutes(break_start)
            < to_minutes(break_end)
            < to_minutes(work_end)
        )
        if not nested:
            raise BreakOutOfBounds(
                f"Break {format_time(break_start)}-{format_time(break_end)} must lie strictly "
                f"inside {format_time(work_start)}-{format_time(work_end)}"
            )

    return DaySchedule(
        is_available=True,
        work_start=work_start,
        work_end=work_end,
        break_start=break_start,
        break_end=break_end,
    )


class WeeklySchedule:
    """
    Recurring weekly availability for one provider.

    Days are never deleted, only toggled unavailable. Date overrides take
    precedence over the weekday entry for that single date.
    """

    def __init__(
        self,
        provider_id: str,
        days: Optional[dict[DayOfWeek, DaySchedule]] = None,
        overrides: Optional[dict[date, DaySchedule]] = None,
    ) -> None:
        self.provider_id = provider_id
        self._days: dict[DayOfWeek, DaySchedule] = {d: UNAVAILABLE_DAY for d in DayOfWeek}
        if days:
            self._days.update(days)
        self._overrides: dict[date, DaySchedule] = dict(overrides or {})

    @classmethod
    def with_defaults(
        cls,
        provider_id: str,
        working_days: Iterable[str],
        work_start: time,
        work_end: time,
    ) -> "WeeklySchedule":
        """Onboarding schedule: the given weekdays open for the same hours, the rest closed."""
        open_days = {DayOfWeek.parse(d) for d in working_days}
        template = build_day(True, work_start, work_end)
        return cls(provider_id, days={d: template for d in open_days})

    def set_day(
        self,
        day: DayOfWeek,
        is_available: bool,
        work_start: Optional[time] = None,
        work_end: Optional[time] = None,
        break_start: Optional[time] = None,
        break_end: Optional[time] = None,
        default_hours: Optional[tuple[time, time]] = None,
    ) -> DaySchedule:
        """Replace one weekday's windows. Leaves the schedule unchanged on error."""
        entry = build_day(is_available, work_start, work_end, break_start, break_end, default_hours)
        self._days[day] = entry
        logger.debug("Provider %s: %s set to %s", self.provider_id, day.value, entry)
        return entry

    def set_date_override(
        self,
        on: date,
        is_available: bool,
        work_start: Optional[time] = None,
        work_end: Optional[time] = None,
        break_start: Optional[time] = None,
        break_end: Optional[time] = None,
        default_hours: Optional[tuple[time, time]] = None,
    ) -> DaySchedule:
        entry = build_day(is_available, work_start, work_end, break_start, break_end, default_hours)
        self._overrides[on] = entry
        return entry

    def clear_date_override(self, on: date) -> bool:
        return self._overrides.pop(on, None) is not None

    def day(self, day: DayOfWeek) -> DaySchedule:
        return self._days[day]

    def day_for(self, on: date) -> DaySchedule:
        """Resolve the effective windows for a calendar date."""
        override = self._overrides.get(on)
        if override is not None:
            return override
        return self._days[DayOfWeek.from_date(on)]

    def overrides(self) -> dict[date, DaySchedule]:
        return dict(self._overrides)

    def views(self) -> list[DayScheduleView]:
        return [self._days[d].to_view(day_of_week=d) for d in DayOfWeek]

    def copy(self) -> "WeeklySchedule":
        return WeeklySchedule(self.provider_id, dict(self._days), dict(self._overrides))
