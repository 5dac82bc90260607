"""
Finite state machine for booking status changes.

Every status change must be an explicit (from, trigger) -> to entry.
Anything else is rejected with a clear error listing what is allowed,
so Completed bookings stay immutable and Cancelled ones cannot be
cancelled twice.

Usage:
    new_status = BookingStateMachine.next_status(BookingStatus.CONFIRMED, BookingTrigger.CANCEL)
    assert new_status == BookingStatus.CANCELLED
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from booking_engine.errors import AlreadyCancelled, InvalidTransition
from booking_engine.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that cause booking status transitions."""
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger


class BookingStateMachine:
    """Deterministic transition table for booking lifecycles."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingTrigger.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingTrigger.COMPLETE),
    ]

    @classmethod
    def next_status(cls, current: BookingStatus, trigger: BookingTrigger) -> BookingStatus:
        """
        Resolve the status reached by ``trigger`` from ``current``.

        Raises:
            AlreadyCancelled: cancelling a booking that is already cancelled.
            InvalidTransition: any other transition not in the table.
        """
        for t in cls.TRANSITIONS:
            if t.from_status == current and t.trigger == trigger:
                return t.to_status

        if current == BookingStatus.CANCELLED and trigger == BookingTrigger.CANCEL:
            raise AlreadyCancelled("Booking is already cancelled")

        valid = [t.value for t in cls.valid_triggers(current)]
        raise InvalidTransition(
            f"Cannot {trigger.value} a booking that is {current.value}",
            status=current.value,
            valid_triggers=valid,
        )

    @classmethod
    def valid_triggers(cls, current: BookingStatus) -> list[BookingTrigger]:
        """Return all triggers valid from ``current``."""
        return [t.trigger for t in cls.TRANSITIONS if t.from_status == current]

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        return not cls.valid_triggers(status)

    @classmethod
    def apply(
        cls,
        booking: Booking,
        trigger: BookingTrigger,
        now: datetime,
        **updates: Any,
    ) -> Booking:
        """Return a copy of ``booking`` in its next status with the version bumped."""
        new_status = cls.next_status(booking.status, trigger)
        logger.debug(
            "Booking %s: %s -> %s (trigger: %s)",
            booking.id, booking.status.value, new_status.value, trigger.value,
        )
        return booking.model_copy(update={
            "status": new_status,
            "version": booking.version + 1,
            "updated_at": now,
            **updates,
        })
