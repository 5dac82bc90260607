"""
Reservation coordinator: the only component that writes booking state.

Every ledger write for a (provider, date) runs inside that key's lock and
re-validates against a fresh ledger read; the caller's slot list is never
trusted. The write itself is a compare-and-swap on the ledger version read
under the lock, so even a second process sharing the store cannot slip a
conflicting booking in between check and insert: at most one booking wins
per contested interval and the loser gets a typed error.

Conflicts are not retried here. A lost race reflects a real state change,
so the caller re-fetches slots and lets the user choose again.
"""

from __future__ import annotations

import uuid
from datetime import date, time
from typing import Optional

from booking_engine.engine.ledger import BookingLedger, LedgerView
from booking_engine.engine.locks import KeyedLock
from booking_engine.engine.schedule import DaySchedule
from booking_engine.engine.slot_generator import SlotGenerator
from booking_engine.engine.transitions import BookingStateMachine, BookingTrigger
from booking_engine.errors import (
    ConcurrencyConflict,
    DurationMismatch,
    IdempotencyKeyReused,
    InactiveService,
    InvalidRange,
    InvalidTransition,
    NotFound,
    OffGridSlot,
    SlotUnavailable,
)
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.schemas.schedule_schema import BlockedTime
from booking_engine.schemas.service_schema import Service
from booking_engine.schemas.slot_schema import UnavailableReason
from booking_engine.storage.base import BookingRepository, IdempotencyRecord
from booking_engine.utils import (
    MINUTES_PER_DAY,
    Clock,
    format_time,
    from_minutes,
    to_minutes,
)

logger = get_request_logger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


class ReservationCoordinator:
    """Atomic check-then-write for bookings and blocked times."""

    def __init__(
        self,
        bookings: BookingRepository,
        generator: SlotGenerator,
        ledger: BookingLedger,
        clock: Clock,
        locks: Optional[KeyedLock] = None,
        auto_confirm: bool = True,
    ) -> None:
        self._bookings = bookings
        self._generator = generator
        self._ledger = ledger
        self._clock = clock
        self._locks = locks or KeyedLock()
        self._auto_confirm = auto_confirm

    # ------------------------------------------------------------------ #
    # Reserve
    # ------------------------------------------------------------------ #

    def reserve(
        self,
        provider_id: str,
        service_id: str,
        on: date,
        start_time: time,
        client_id: str,
        idempotency_key: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> Booking:
        """
        Convert a slot selection into a committed booking.

        A repeated call with an idempotency key that already committed
        returns the original booking without touching the ledger.

        Raises:
            NotFound: unknown provider or service.
            ValidationError: inactive service, duration mismatch, off-grid
                start, or an idempotency key reused for a different request.
            SlotUnavailable: the interval fails the same checks as slot generation.
            ConcurrencyConflict: the conditional insert lost a race.
        """
        if idempotency_key is not None:
            record = self._bookings.get_idempotency_record(idempotency_key)
            if record is not None:
                return self._replay(record, provider_id, service_id, on, start_time, client_id)

        schedule, service = self._generator.resolve(provider_id, service_id)
        self._check_service(service, duration_minutes)

        with self._locks.hold((provider_id, on)):
            if idempotency_key is not None:
                record = self._bookings.get_idempotency_record(idempotency_key)
                if record is not None:
                    return self._replay(record, provider_id, service_id, on, start_time, client_id)

            ledger = self._ledger.view(provider_id, on)
            start, end = self._check_bookable(
                schedule.day_for(on), on, start_time, service.duration_minutes, ledger,
            )

            now = self._clock()
            booking = Booking(
                id=_new_id("BK"),
                provider_id=provider_id,
                service_id=service_id,
                client_id=client_id,
                date=on,
                start_time=from_minutes(start),
                end_time=from_minutes(end),
                status=BookingStatus.CONFIRMED if self._auto_confirm else BookingStatus.PENDING,
                price=service.price,
                created_at=now,
                updated_at=now,
                version=0,
                idempotency_key=idempotency_key,
            )
            committed = self._bookings.insert(booking, ledger.version, idempotency_key)

        logger.info(
            "Booking created: %s for client %s with provider %s on %s at %s",
            committed.id, client_id, provider_id, on, format_time(committed.start_time),
        )
        return committed

    def _replay(
        self,
        record: IdempotencyRecord,
        provider_id: str,
        service_id: str,
        on: date,
        start_time: time,
        client_id: str,
    ) -> Booking:
        """Answer a retry from the request the key first committed, not the booking's current slot."""
        if not record.matches(provider_id, service_id, on, start_time, client_id):
            raise IdempotencyKeyReused(
                "Idempotency key was already used for a different booking request",
                booking_id=record.booking_id,
            )
        logger.info("Idempotent replay of booking %s", record.booking_id)
        return self.get(record.booking_id)

    @staticmethod
    def _check_service(service: Service, duration_minutes: Optional[int]) -> None:
        if not service.is_active:
            raise InactiveService(f"Service {service.id} is not active", service_id=service.id)
        if duration_minutes is not None and duration_minutes != service.duration_minutes:
            raise DurationMismatch(
                f"Requested duration {duration_minutes} does not match service "
                f"duration {service.duration_minutes}",
                expected=service.duration_minutes,
                received=duration_minutes,
            )

    def _check_bookable(
        self,
        day: DaySchedule,
        on: date,
        start_time: time,
        duration_minutes: int,
        ledger: LedgerView,
        ignore_booking_id: Optional[str] = None,
    ) -> tuple[int, int]:
        """Re-run slot classification for one interval; return it in minutes if bookable."""
        if not day.is_available:
            raise SlotUnavailable(UnavailableReason.OUTSIDE_WORKING_HOURS)

        start = to_minutes(start_time)
        end = start + duration_minutes
        if not self._generator.is_on_grid(day, start):
            raise OffGridSlot(
                f"Start time {format_time(start_time)} is not on the "
                f"{self._generator.granularity}-minute slot grid",
                start_time=format_time(start_time),
            )

        work_start, work_end = day.working_window()
        if start < work_start or end > work_end or end >= MINUTES_PER_DAY:
            raise SlotUnavailable(UnavailableReason.OUTSIDE_WORKING_HOURS)

        reason = self._generator.classify(
            on, start, end, day, ledger, self._clock(), ignore_booking_id,
        )
        if reason != UnavailableReason.NONE:
            logger.warning(
                "Rejected %s-%s on %s: %s",
                format_time(start_time), format_time(from_minutes(end)), on, reason.value,
            )
            raise SlotUnavailable(reason)
        return start, end

    # ------------------------------------------------------------------ #
    # Status transitions
    # ------------------------------------------------------------------ #

    def get(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found", booking_id=booking_id)
        return booking

    def _locked_reread(self, snapshot: Booking) -> Booking:
        """Re-read a booking after acquiring its lock; its key must not have moved."""
        current = self.get(snapshot.id)
        if (current.provider_id, current.date) != (snapshot.provider_id, snapshot.date):
            raise ConcurrencyConflict(
                f"Booking {snapshot.id} was rescheduled concurrently",
                booking_id=snapshot.id,
            )
        return current

    def _transition(self, booking_id: str, trigger: BookingTrigger, **updates) -> Booking:
        snapshot = self.get(booking_id)
        with self._locks.hold((snapshot.provider_id, snapshot.date)):
            current = self._locked_reread(snapshot)
            updated = BookingStateMachine.apply(current, trigger, self._clock(), **updates)
            return self._bookings.update(updated, expected_version=current.version)

    def cancel(self, booking_id: str, actor_id: str) -> Booking:
        """Confirmed/Pending -> Cancelled; frees the interval for later reservations."""
        cancelled = self._transition(booking_id, BookingTrigger.CANCEL, cancelled_by=actor_id)
        logger.info("Booking cancelled: %s by %s", booking_id, actor_id)
        return cancelled

    def confirm(self, booking_id: str) -> Booking:
        confirmed = self._transition(booking_id, BookingTrigger.CONFIRM)
        logger.info("Booking confirmed: %s", booking_id)
        return confirmed

    def complete(self, booking_id: str) -> Booking:
        completed = self._transition(booking_id, BookingTrigger.COMPLETE)
        logger.info("Booking completed: %s", booking_id)
        return completed

    def reschedule(
        self,
        booking_id: str,
        new_date: date,
        new_start_time: time,
        actor_id: str,
    ) -> Booking:
        """
        Move an active booking to a new interval, validated like a fresh reserve.

        The booking's own current interval is ignored during the overlap
        check. Both the old and the new (provider, date) locks are held.
        """
        snapshot = self.get(booking_id)
        schedule, service = self._generator.resolve(snapshot.provider_id, snapshot.service_id)

        old_key = (snapshot.provider_id, snapshot.date)
        new_key = (snapshot.provider_id, new_date)
        with self._locks.hold(old_key, new_key):
            current = self._locked_reread(snapshot)
            if not current.is_active:
                raise InvalidTransition(
                    f"Cannot reschedule a booking that is {current.status.value}",
                    status=current.status.value,
                )

            ledger = self._ledger.view(current.provider_id, new_date)
            start, end = self._check_bookable(
                schedule.day_for(new_date), new_date, new_start_time,
                service.duration_minutes, ledger, ignore_booking_id=current.id,
            )
            moved = current.model_copy(update={
                "date": new_date,
                "start_time": from_minutes(start),
                "end_time": from_minutes(end),
                "version": current.version + 1,
                "updated_at": self._clock(),
            })
            committed = self._bookings.update(
                moved, expected_version=current.version, expected_ledger_version=ledger.version,
            )

        logger.info(
            "Booking rescheduled: %s by %s to %s at %s",
            booking_id, actor_id, new_date, format_time(committed.start_time),
        )
        return committed

    # ------------------------------------------------------------------ #
    # Blocked time
    # ------------------------------------------------------------------ #

    def block_time(
        self,
        provider_id: str,
        on: date,
        start_time: time,
        end_time: time,
        reason: Optional[str] = None,
    ) -> BlockedTime:
        """Block an ad-hoc interval. Existing bookings inside it are left as they are."""
        if to_minutes(start_time) >= to_minutes(end_time):
            raise InvalidRange(
                f"Blocked start {format_time(start_time)} must be before end {format_time(end_time)}"
            )
        with self._locks.hold((provider_id, on)):
            ledger = self._ledger.view(provider_id, on)
            blocked = BlockedTime(
                id=_new_id("BLK"),
                provider_id=provider_id,
                date=on,
                start_time=start_time,
                end_time=end_time,
                reason=reason,
            )
            committed = self._bookings.add_blocked_time(blocked, ledger.version)
        logger.info(
            "Provider %s blocked %s %s-%s", provider_id, on,
            format_time(start_time), format_time(end_time),
        )
        return committed

    def unblock_time(self, provider_id: str, block_id: str) -> BlockedTime:
        blocked = self._bookings.get_blocked_time(block_id)
        if blocked is None or blocked.provider_id != provider_id:
            raise NotFound(f"Blocked time {block_id} not found", block_id=block_id)
        with self._locks.hold((provider_id, blocked.date)):
            removed = self._bookings.remove_blocked_time(block_id)
        logger.info("Provider %s unblocked %s", provider_id, block_id)
        return removed
