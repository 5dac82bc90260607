from booking_engine.schemas.booking_schema import (
    ACTIVE_STATUSES,
    Booking,
    BookingRequest,
    BookingStatus,
)
from booking_engine.schemas.schedule_schema import BlockedTime, DayOfWeek
from booking_engine.schemas.service_schema import Service
from booking_engine.schemas.slot_schema import AvailableDay, TimeSlot, UnavailableReason

__all__ = [
    "ACTIVE_STATUSES",
    "AvailableDay",
    "BlockedTime",
    "Booking",
    "BookingRequest",
    "BookingStatus",
    "DayOfWeek",
    "Service",
    "TimeSlot",
    "UnavailableReason",
]
