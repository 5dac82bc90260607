"""Weekly schedule, date override, and blocked time models."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import Field

from booking_engine.schemas.common import ApiModel, ClockTime


class DayOfWeek(str, Enum):
    """Weekdays in Monday-first order, matching ``date.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        return list(cls)[day.weekday()]

    @classmethod
    def parse(cls, value: str) -> "DayOfWeek":
        """Accept full names or three-letter abbreviations, any case."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized or member.value[:3] == normalized:
                return member
        raise ValueError(f"Unknown day of week: {value!r}")


class DayScheduleView(ApiModel):
    """Wire representation of one day's working and break windows."""

    day_of_week: Optional[DayOfWeek] = None
    override_date: Optional[date] = None
    is_available: bool
    work_start: Optional[ClockTime] = None
    work_end: Optional[ClockTime] = None
    break_start: Optional[ClockTime] = None
    break_end: Optional[ClockTime] = None


class DayScheduleUpdate(ApiModel):
    """Body of a schedule edit; times default per onboarding config when omitted."""

    is_available: bool
    work_start: Optional[ClockTime] = None
    work_end: Optional[ClockTime] = None
    break_start: Optional[ClockTime] = None
    break_end: Optional[ClockTime] = None


class ProviderCreate(ApiModel):
    provider_id: str = Field(min_length=1)


class BlockedTime(ApiModel):
    """An ad-hoc interval on a single date during which nothing may be booked."""

    id: str
    provider_id: str
    date: date
    start_time: ClockTime
    end_time: ClockTime
    reason: Optional[str] = None


class BlockedTimeCreate(ApiModel):
    date: date
    start_time: ClockTime
    end_time: ClockTime
    reason: Optional[str] = Field(default=None, max_length=200)
