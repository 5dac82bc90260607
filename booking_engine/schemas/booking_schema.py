"""Booking records and the request bodies that create or change them."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from booking_engine.schemas.common import ApiModel, ClockTime


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class Booking(ApiModel):
    """A committed reservation. Written only by the reservation coordinator."""

    id: str
    provider_id: str
    service_id: str
    client_id: str
    date: date
    start_time: ClockTime
    end_time: ClockTime
    status: BookingStatus
    price: float
    created_at: datetime
    updated_at: datetime
    version: int = 0
    cancelled_by: Optional[str] = None
    idempotency_key: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class BookingRequest(ApiModel):
    """Validated reservation request."""

    service_id: str = Field(min_length=1)
    date: date
    start_time: ClockTime
    client_id: str = Field(min_length=1)
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=128)
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class CancelRequest(ApiModel):
    actor_id: str = Field(min_length=1)


class RescheduleRequest(ApiModel):
    date: date
    start_time: ClockTime
    actor_id: str = Field(min_length=1)
