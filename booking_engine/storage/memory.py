"""
In-process repository backing both storage contracts.

A single re-entrant lock makes every read a consistent snapshot of the
latest committed writes and every conditional write atomic. Stored models
are copied on the way in and out so callers can never mutate ledger state
behind the repository's back.
"""

import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Optional

from booking_engine.engine.schedule import WeeklySchedule
from booking_engine.errors import ConcurrencyConflict, NotFound, ValidationError
from booking_engine.schemas.booking_schema import Booking
from booking_engine.schemas.schedule_schema import BlockedTime
from booking_engine.schemas.service_schema import Service
from booking_engine.storage.base import (
    BookingRepository,
    IdempotencyRecord,
    LedgerState,
    ProviderRepository,
)

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, date]


class InMemoryRepository(ProviderRepository, BookingRepository):
    """Thread-safe in-memory provider and booking store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._schedules: dict[str, WeeklySchedule] = {}
        self._services: dict[str, Service] = {}
        self._bookings: dict[str, Booking] = {}
        self._blocked: dict[str, BlockedTime] = {}
        self._idempotency: dict[str, IdempotencyRecord] = {}
        self._ledger_versions: defaultdict[LedgerKey, int] = defaultdict(int)

    # ------------------------------------------------------------------ #
    # Providers and services
    # ------------------------------------------------------------------ #

    def add_provider(self, schedule: WeeklySchedule) -> WeeklySchedule:
        with self._lock:
            if schedule.provider_id in self._schedules:
                raise ValidationError(
                    f"Provider {schedule.provider_id} is already registered",
                    provider_id=schedule.provider_id,
                )
            self._schedules[schedule.provider_id] = schedule.copy()
            return schedule.copy()

    def get_schedule(self, provider_id: str) -> Optional[WeeklySchedule]:
        with self._lock:
            schedule = self._schedules.get(provider_id)
            return schedule.copy() if schedule is not None else None

    def save_schedule(self, schedule: WeeklySchedule) -> WeeklySchedule:
        with self._lock:
            if schedule.provider_id not in self._schedules:
                raise NotFound(f"Provider {schedule.provider_id} not found")
            self._schedules[schedule.provider_id] = schedule.copy()
            return schedule.copy()

    def add_service(self, service: Service) -> Service:
        with self._lock:
            if service.provider_id not in self._schedules:
                raise NotFound(f"Provider {service.provider_id} not found")
            self._services[service.id] = service.model_copy()
            return service.model_copy()

    def get_service(self, service_id: str) -> Optional[Service]:
        with self._lock:
            service = self._services.get(service_id)
            return service.model_copy() if service is not None else None

    def save_service(self, service: Service) -> Service:
        with self._lock:
            if service.id not in self._services:
                raise NotFound(f"Service {service.id} not found")
            self._services[service.id] = service.model_copy()
            return service.model_copy()

    def list_services(self, provider_id: str) -> list[Service]:
        with self._lock:
            return [s.model_copy() for s in self._services.values() if s.provider_id == provider_id]

    # ------------------------------------------------------------------ #
    # Booking ledger
    # ------------------------------------------------------------------ #

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return booking.model_copy() if booking is not None else None

    def read_ledger(self, provider_id: str, on: date) -> LedgerState:
        with self._lock:
            return LedgerState(
                provider_id=provider_id,
                date=on,
                version=self._ledger_versions[(provider_id, on)],
                bookings=tuple(
                    b.model_copy() for b in self._bookings.values()
                    if b.provider_id == provider_id and b.date == on
                ),
                blocked_times=tuple(
                    bt.model_copy() for bt in self._blocked.values()
                    if bt.provider_id == provider_id and bt.date == on
                ),
            )

    def list_bookings(self, provider_id: str, on: Optional[date] = None) -> list[Booking]:
        with self._lock:
            found = [
                b.model_copy() for b in self._bookings.values()
                if b.provider_id == provider_id and (on is None or b.date == on)
            ]
        return sorted(found, key=lambda b: (b.date, b.start_time, b.created_at))

    def get_idempotency_record(self, key: str) -> Optional[IdempotencyRecord]:
        with self._lock:
            return self._idempotency.get(key)

    def insert(
        self,
        booking: Booking,
        expected_version: int,
        idempotency_key: Optional[str] = None,
    ) -> Booking:
        key = (booking.provider_id, booking.date)
        with self._lock:
            current = self._ledger_versions[key]
            if current != expected_version:
                raise ConcurrencyConflict(
                    "Ledger changed since it was read",
                    expected_version=expected_version,
                    current_version=current,
                )
            if idempotency_key is not None and idempotency_key in self._idempotency:
                raise ConcurrencyConflict(
                    "Idempotency key was committed by a concurrent request",
                    idempotency_key=idempotency_key,
                )
            if booking.id in self._bookings:
                raise ConcurrencyConflict(f"Booking {booking.id} already exists")

            self._bookings[booking.id] = booking.model_copy()
            if idempotency_key is not None:
                self._idempotency[idempotency_key] = IdempotencyRecord.for_booking(
                    idempotency_key, booking,
                )
            self._ledger_versions[key] = current + 1
            return booking.model_copy()

    def update(
        self,
        booking: Booking,
        expected_version: int,
        expected_ledger_version: Optional[int] = None,
    ) -> Booking:
        with self._lock:
            stored = self._bookings.get(booking.id)
            if stored is None:
                raise NotFound(f"Booking {booking.id} not found")
            if stored.version != expected_version:
                raise ConcurrencyConflict(
                    f"Booking {booking.id} changed since it was read",
                    expected_version=expected_version,
                    current_version=stored.version,
                )
            new_key = (booking.provider_id, booking.date)
            if expected_ledger_version is not None:
                current = self._ledger_versions[new_key]
                if current != expected_ledger_version:
                    raise ConcurrencyConflict(
                        "Ledger changed since it was read",
                        expected_version=expected_ledger_version,
                        current_version=current,
                    )

            self._bookings[booking.id] = booking.model_copy()
            old_key = (stored.provider_id, stored.date)
            self._ledger_versions[old_key] += 1
            if new_key != old_key:
                self._ledger_versions[new_key] += 1
            return booking.model_copy()

    def add_blocked_time(self, blocked: BlockedTime, expected_version: int) -> BlockedTime:
        key = (blocked.provider_id, blocked.date)
        with self._lock:
            current = self._ledger_versions[key]
            if current != expected_version:
                raise ConcurrencyConflict(
                    "Ledger changed since it was read",
                    expected_version=expected_version,
                    current_version=current,
                )
            self._blocked[blocked.id] = blocked.model_copy()
            self._ledger_versions[key] = current + 1
            return blocked.model_copy()

    def get_blocked_time(self, block_id: str) -> Optional[BlockedTime]:
        with self._lock:
            blocked = self._blocked.get(block_id)
            return blocked.model_copy() if blocked is not None else None

    def remove_blocked_time(self, block_id: str) -> BlockedTime:
        with self._lock:
            blocked = self._blocked.pop(block_id, None)
            if blocked is None:
                raise NotFound(f"Blocked time {block_id} not found")
            self._ledger_versions[(blocked.provider_id, blocked.date)] += 1
            return blocked

    def list_blocked_times(self, provider_id: str, on: Optional[date] = None) -> list[BlockedTime]:
        with self._lock:
            found = [
                bt.model_copy() for bt in self._blocked.values()
                if bt.provider_id == provider_id and (on is None or bt.date == on)
            ]
        return sorted(found, key=lambda bt: (bt.date, bt.start_time))

    def reset(self) -> None:
        """Clear all state. Used by test fixtures for isolation."""
        with self._lock:
            self._schedules.clear()
            self._services.clear()
            self._bookings.clear()
            self._blocked.clear()
            self._idempotency.clear()
            self._ledger_versions.clear()
