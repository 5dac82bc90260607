"""
Storage contracts required by the booking engine.

The engine needs only keyed lookups and two conditional writes. Each
(provider, date) pair carries a ledger version that every booking or
blocked-time write bumps; writers pass the version they read and the
store refuses the write if it moved. Implementations translate transient
infrastructure errors into StorageFailure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from booking_engine.engine.schedule import WeeklySchedule
from booking_engine.schemas.booking_schema import Booking
from booking_engine.schemas.schedule_schema import BlockedTime
from booking_engine.schemas.service_schema import Service


@dataclass(frozen=True)
class LedgerState:
    """Consistent snapshot of one provider's bookings and blocks on one date."""

    provider_id: str
    date: date
    version: int
    bookings: tuple[Booking, ...] = ()
    blocked_times: tuple[BlockedTime, ...] = ()


@dataclass(frozen=True)
class IdempotencyRecord:
    """The request an idempotency key first committed, kept apart from the booking's later state."""

    key: str
    booking_id: str
    provider_id: str
    service_id: str
    date: date
    start_time: time
    client_id: str

    @classmethod
    def for_booking(cls, key: str, booking: Booking) -> "IdempotencyRecord":
        return cls(
            key=key,
            booking_id=booking.id,
            provider_id=booking.provider_id,
            service_id=booking.service_id,
            date=booking.date,
            start_time=booking.start_time,
            client_id=booking.client_id,
        )

    def matches(
        self, provider_id: str, service_id: str, on: date, start_time: time, client_id: str,
    ) -> bool:
        return (self.provider_id, self.service_id, self.date, self.start_time, self.client_id) == (
            provider_id, service_id, on, start_time, client_id,
        )


class ProviderRepository(ABC):
    """Provider aggregate: weekly schedules and the service catalog."""

    @abstractmethod
    def add_provider(self, schedule: WeeklySchedule) -> WeeklySchedule:
        """Persist a new provider's schedule. Raises ValidationError if it exists."""

    @abstractmethod
    def get_schedule(self, provider_id: str) -> Optional[WeeklySchedule]:
        ...

    @abstractmethod
    def save_schedule(self, schedule: WeeklySchedule) -> WeeklySchedule:
        ...

    @abstractmethod
    def add_service(self, service: Service) -> Service:
        ...

    @abstractmethod
    def get_service(self, service_id: str) -> Optional[Service]:
        ...

    @abstractmethod
    def save_service(self, service: Service) -> Service:
        ...

    @abstractmethod
    def list_services(self, provider_id: str) -> list[Service]:
        ...


class BookingRepository(ABC):
    """Booking ledger storage with compare-and-swap writes."""

    @abstractmethod
    def get(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    def read_ledger(self, provider_id: str, on: date) -> LedgerState:
        """Return all bookings (any status) and blocks for the key, with its version."""

    @abstractmethod
    def list_bookings(self, provider_id: str, on: Optional[date] = None) -> list[Booking]:
        ...

    @abstractmethod
    def get_idempotency_record(self, key: str) -> Optional[IdempotencyRecord]:
        """The request first committed under ``key``, or None if the key is unused."""

    @abstractmethod
    def insert(
        self,
        booking: Booking,
        expected_version: int,
        idempotency_key: Optional[str] = None,
    ) -> Booking:
        """
        Insert a booking iff the ledger version for its key still equals
        ``expected_version``; record ``idempotency_key`` in the same step.

        Raises:
            ConcurrencyConflict: the ledger moved or the key is already used.
        """

    @abstractmethod
    def update(
        self,
        booking: Booking,
        expected_version: int,
        expected_ledger_version: Optional[int] = None,
    ) -> Booking:
        """
        Replace a booking iff its stored version equals ``expected_version``
        and, when given, the ledger version of its (possibly new) key equals
        ``expected_ledger_version``.

        Raises:
            NotFound: no booking with that id.
            ConcurrencyConflict: either version moved.
        """

    @abstractmethod
    def add_blocked_time(self, blocked: BlockedTime, expected_version: int) -> BlockedTime:
        ...

    @abstractmethod
    def get_blocked_time(self, block_id: str) -> Optional[BlockedTime]:
        ...

    @abstractmethod
    def remove_blocked_time(self, block_id: str) -> BlockedTime:
        ...

    @abstractmethod
    def list_blocked_times(self, provider_id: str, on: Optional[date] = None) -> list[BlockedTime]:
        ...
