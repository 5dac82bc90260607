"""Read side of the booking ledger: the active bookings and blocks that make slots unavailable."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from booking_engine.schemas.booking_schema import Booking
from booking_engine.schemas.schedule_schema import BlockedTime
from booking_engine.storage.base import BookingRepository
from booking_engine.utils import to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerView:
    """Active bookings and blocked intervals for one (provider, date), with the version read."""

    version: int
    bookings: tuple[Booking, ...]
    blocked_times: tuple[BlockedTime, ...]

    def booking_intervals(self, ignore_booking_id: Optional[str] = None) -> list[tuple[int, int]]:
        return [
            (to_minutes(b.start_time), to_minutes(b.end_time))
            for b in self.bookings
            if b.id != ignore_booking_id
        ]

    def blocked_intervals(self) -> list[tuple[int, int]]:
        return [(to_minutes(bt.start_time), to_minutes(bt.end_time)) for bt in self.blocked_times]


class BookingLedger:
    """
    Queries over a provider's committed bookings.

    Every call goes straight to the repository so results always reflect
    the latest committed writes; nothing is cached.
    """

    def __init__(self, repository: BookingRepository) -> None:
        self._repository = repository

    def bookings_on(self, provider_id: str, on: date) -> list[Booking]:
        """Pending and Confirmed bookings on ``on``, sorted by start time."""
        return list(self.view(provider_id, on).bookings)

    def view(self, provider_id: str, on: date) -> LedgerView:
        state = self._repository.read_ledger(provider_id, on)
        active = sorted(
            (b for b in state.bookings if b.is_active),
            key=lambda b: (b.start_time, b.end_time),
        )
        blocked = sorted(state.blocked_times, key=lambda bt: (bt.start_time, bt.end_time))
        return LedgerView(version=state.version, bookings=tuple(active), blocked_times=tuple(blocked))
