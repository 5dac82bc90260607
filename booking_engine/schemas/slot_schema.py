"""Derived slot models. Never persisted; rebuilt on every availability query."""

from datetime import date
from enum import Enum
from typing import Optional

from booking_engine.schemas.common import ApiModel, ClockTime


class UnavailableReason(str, Enum):
    """Why a candidate slot cannot be booked."""

    NONE = "none"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    DURING_BREAK = "during_break"
    OVERLAPS = "overlaps"
    BLOCKED = "blocked"
    PAST_CUTOFF = "past_cutoff"


class TimeSlot(ApiModel):
    """A candidate fixed-duration interval for one service on one date."""

    start_time: ClockTime
    end_time: ClockTime
    is_available: bool
    price: float
    unavailable_reason: UnavailableReason = UnavailableReason.NONE


class AvailableDay(ApiModel):
    """Summary of a bookable day within a look-ahead window."""

    date: date
    day_of_week: str
    is_available: bool = True
    working_hours: Optional[str] = None
    available_slot_count: int = 0
