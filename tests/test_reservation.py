"""Tests for the reservation coordinator: reserve, idempotency and lifecycle writes."""

import dataclasses
from datetime import date, datetime, time

import pytest

from booking_engine.config import AppConfig, BookingConfig
from booking_engine.errors import (
    AlreadyCancelled,
    ConcurrencyConflict,
    DurationMismatch,
    IdempotencyKeyReused,
    InactiveService,
    InvalidRange,
    InvalidTransition,
    NotFound,
    OffGridSlot,
    SlotUnavailable,
    StorageFailure,
)
from booking_engine.schemas.booking_schema import BookingStatus
from booking_engine.schemas.schedule_schema import DayOfWeek
from booking_engine.schemas.slot_schema import UnavailableReason
from booking_engine.service import AvailabilityService
from booking_engine.storage.memory import InMemoryRepository

from tests.conftest import MONDAY, PROVIDER_ID, SUNDAY, make_request
from tests.test_ledger import make_booking

NEXT_MONDAY = date(2025, 3, 24)


def _seed(service: AvailabilityService):
    service.register_provider(PROVIDER_ID)
    service.set_schedule_day(
        PROVIDER_ID, DayOfWeek.MONDAY, True, time(9), time(18), time(12), time(13),
    )
    return service.add_service(PROVIDER_ID, "Haircut", 60, 50.0)


class FailAfterCommitRepository(InMemoryRepository):
    """Commits the first insert and then reports a transient failure."""

    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 1

    def insert(self, booking, expected_version, idempotency_key=None):
        committed = super().insert(booking, expected_version, idempotency_key)
        if self.failures_left:
            self.failures_left -= 1
            raise StorageFailure("Connection reset after commit")
        return committed


class RacingRepository(InMemoryRepository):
    """Lets a competing writer commit between the ledger read and the insert."""

    def insert(self, booking, expected_version, idempotency_key=None):
        if booking.client_id != "rival":
            rival = booking.model_copy(update={"id": "BK-RIVAL", "client_id": "rival"})
            super().insert(rival, expected_version)
        return super().insert(booking, expected_version, idempotency_key)


class TestReserve:
    def test_commits_confirmed_booking(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        assert booking.id.startswith("BK-")
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.version == 0
        assert booking.end_time == time(11)
        assert booking.price == 50.0
        assert service.get_booking(booking.id) == booking

    def test_pending_when_auto_confirm_disabled(self, repository, clock):
        config = dataclasses.replace(AppConfig(), booking=BookingConfig(auto_confirm=False))
        service = AvailabilityService(repository, repository, clock, config=config)
        svc = _seed(service)
        booking = service.create_booking(PROVIDER_ID, make_request(svc.id, time(10)))
        assert booking.status == BookingStatus.PENDING

    def test_every_available_slot_is_reservable(self, service, provider):
        for slot in service.get_available_slots(PROVIDER_ID, provider.id, MONDAY):
            if not slot.is_available:
                continue
            booking = service.create_booking(PROVIDER_ID, make_request(provider.id, slot.start_time))
            service.cancel_booking(booking.id, "client-1")

    def test_off_grid_start(self, service, provider):
        with pytest.raises(OffGridSlot):
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(10, 15)))

    def test_runs_past_work_end(self, service, provider):
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(17, 30)))
        assert exc_info.value.reason == UnavailableReason.OUTSIDE_WORKING_HOURS

    def test_before_work_start(self, service, provider):
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(8)))
        assert exc_info.value.reason == UnavailableReason.OUTSIDE_WORKING_HOURS

    def test_closed_day(self, service, provider):
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(10), on=SUNDAY))
        assert exc_info.value.reason == UnavailableReason.OUTSIDE_WORKING_HOURS

    def test_runs_into_break(self, service, provider):
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(11, 30)))
        assert exc_info.value.reason == UnavailableReason.DURING_BREAK

    def test_overlapping_booking(self, service, provider):
        service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(10, 30), "client-2"))
        assert exc_info.value.reason == UnavailableReason.OVERLAPS
        assert len(service.list_bookings(PROVIDER_ID, MONDAY)) == 1

    def test_past_cutoff(self, service, provider, clock):
        clock.now = datetime(2025, 3, 17, 10, 0)
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        assert exc_info.value.reason == UnavailableReason.PAST_CUTOFF

    def test_blocked_interval(self, service, provider):
        service.block_time(PROVIDER_ID, MONDAY, time(15), time(16))
        with pytest.raises(SlotUnavailable) as exc_info:
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(14, 30)))
        assert exc_info.value.reason == UnavailableReason.BLOCKED

    def test_inactive_service(self, service, provider):
        service.set_service_active(provider.id, False)
        with pytest.raises(InactiveService):
            service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))

    def test_duration_mismatch(self, service, provider):
        with pytest.raises(DurationMismatch):
            service.create_booking(
                PROVIDER_ID, make_request(provider.id, time(10), duration_minutes=30),
            )

    def test_matching_duration_accepted(self, service, provider):
        booking = service.create_booking(
            PROVIDER_ID, make_request(provider.id, time(10), duration_minutes=60),
        )
        assert booking.end_time == time(11)

    def test_unknown_service(self, service, provider):
        with pytest.raises(NotFound):
            service.create_booking(PROVIDER_ID, make_request("SVC-missing", time(10)))


class TestIdempotency:
    def test_same_key_returns_same_booking(self, service, provider):
        request = make_request(provider.id, time(10), idempotency_key="key-1")
        first = service.create_booking(PROVIDER_ID, request)
        second = service.create_booking(PROVIDER_ID, request)
        assert first == second
        assert len(service.list_bookings(PROVIDER_ID, MONDAY, include_inactive=True)) == 1

    def test_key_reused_for_different_request(self, service, provider):
        service.create_booking(PROVIDER_ID, make_request(provider.id, time(10), idempotency_key="key-1"))
        with pytest.raises(IdempotencyKeyReused):
            service.create_booking(
                PROVIDER_ID, make_request(provider.id, time(14), idempotency_key="key-1"),
            )

    def test_retry_after_cancellation_returns_original(self, service, provider):
        request = make_request(provider.id, time(10), idempotency_key="key-1")
        booking = service.create_booking(PROVIDER_ID, request)
        service.cancel_booking(booking.id, "client-1")
        replay = service.create_booking(PROVIDER_ID, request)
        assert replay.id == booking.id
        assert replay.status == BookingStatus.CANCELLED

    def test_retry_after_reschedule_returns_original(self, service, provider):
        request = make_request(provider.id, time(10), idempotency_key="key-1")
        booking = service.create_booking(PROVIDER_ID, request)
        service.reschedule_booking(booking.id, MONDAY, time(14), "client-1")

        replay = service.create_booking(PROVIDER_ID, request)
        assert replay.id == booking.id
        assert replay.start_time == time(14)
        assert len(service.list_bookings(PROVIDER_ID, MONDAY, include_inactive=True)) == 1

    def test_key_reused_for_rescheduled_slot(self, service, provider):
        booking = service.create_booking(
            PROVIDER_ID, make_request(provider.id, time(10), idempotency_key="key-1"),
        )
        service.reschedule_booking(booking.id, MONDAY, time(14), "client-1")
        with pytest.raises(IdempotencyKeyReused):
            service.create_booking(
                PROVIDER_ID, make_request(provider.id, time(14), idempotency_key="key-1"),
            )

    def test_storage_failure_retry_creates_one_booking(self, clock):
        repository = FailAfterCommitRepository()
        service = AvailabilityService(repository, repository, clock, config=AppConfig())
        svc = _seed(service)
        request = make_request(svc.id, time(10), idempotency_key="retry-me")

        with pytest.raises(StorageFailure) as exc_info:
            service.create_booking(PROVIDER_ID, request)
        assert exc_info.value.retryable

        booking = service.create_booking(PROVIDER_ID, request)
        assert booking.start_time == time(10)
        assert len(service.list_bookings(PROVIDER_ID, MONDAY, include_inactive=True)) == 1


class TestCompareAndSwap:
    def test_lost_race_raises_conflict_and_writes_nothing(self, clock):
        repository = RacingRepository()
        service = AvailabilityService(repository, repository, clock, config=AppConfig())
        svc = _seed(service)

        with pytest.raises(ConcurrencyConflict):
            service.create_booking(PROVIDER_ID, make_request(svc.id, time(10)))

        bookings = service.list_bookings(PROVIDER_ID, MONDAY, include_inactive=True)
        assert [b.client_id for b in bookings] == ["rival"]

    def test_stale_ledger_version_rejected(self, repository):
        repository.insert(make_booking("BK-1", time(9), time(10)), 0)
        with pytest.raises(ConcurrencyConflict):
            repository.insert(make_booking("BK-2", time(15), time(16)), 0)


class TestCancel:
    def test_cancel_records_actor(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        cancelled = service.cancel_booking(booking.id, "client-1")
        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by == "client-1"
        assert cancelled.version == 1

    def test_cancel_twice(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        service.cancel_booking(booking.id, "client-1")
        with pytest.raises(AlreadyCancelled):
            service.cancel_booking(booking.id, "client-1")

    def test_cancel_unknown(self, service, provider):
        with pytest.raises(NotFound):
            service.cancel_booking("BK-missing", "client-1")

    def test_cancelled_hidden_from_default_listing(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        service.cancel_booking(booking.id, "client-1")
        assert service.list_bookings(PROVIDER_ID, MONDAY) == []
        assert len(service.list_bookings(PROVIDER_ID, MONDAY, include_inactive=True)) == 1


class TestLifecycle:
    def test_confirm_pending(self, repository, clock):
        config = dataclasses.replace(AppConfig(), booking=BookingConfig(auto_confirm=False))
        service = AvailabilityService(repository, repository, clock, config=config)
        svc = _seed(service)
        booking = service.create_booking(PROVIDER_ID, make_request(svc.id, time(10)))
        confirmed = service.confirm_booking(booking.id)
        assert confirmed.status == BookingStatus.CONFIRMED
        assert confirmed.version == 1

    def test_confirm_already_confirmed(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        with pytest.raises(InvalidTransition):
            service.confirm_booking(booking.id)

    def test_completed_is_immutable(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        completed = service.complete_booking(booking.id)
        assert completed.status == BookingStatus.COMPLETED
        with pytest.raises(InvalidTransition):
            service.cancel_booking(booking.id, "client-1")
        with pytest.raises(InvalidTransition):
            service.reschedule_booking(booking.id, MONDAY, time(14), "client-1")


class TestReschedule:
    def test_shift_onto_own_interval(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        moved = service.reschedule_booking(booking.id, MONDAY, time(10, 30), "client-1")
        assert moved.start_time == time(10, 30)
        assert moved.end_time == time(11, 30)
        assert moved.version == 1

    def test_onto_another_booking(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        service.create_booking(PROVIDER_ID, make_request(provider.id, time(14), "client-2"))
        with pytest.raises(SlotUnavailable) as exc_info:
            service.reschedule_booking(booking.id, MONDAY, time(13, 30), "client-1")
        assert exc_info.value.reason == UnavailableReason.OVERLAPS
        assert service.get_booking(booking.id).start_time == time(10)

    def test_to_another_date_frees_old_slot(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        moved = service.reschedule_booking(booking.id, NEXT_MONDAY, time(9), "client-1")
        assert moved.date == NEXT_MONDAY
        assert service.list_bookings(PROVIDER_ID, MONDAY) == []
        service.create_booking(PROVIDER_ID, make_request(provider.id, time(10), "client-2"))

    def test_cancelled_cannot_be_rescheduled(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        service.cancel_booking(booking.id, "client-1")
        with pytest.raises(InvalidTransition):
            service.reschedule_booking(booking.id, MONDAY, time(14), "client-1")

    def test_off_grid_target(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(10)))
        with pytest.raises(OffGridSlot):
            service.reschedule_booking(booking.id, MONDAY, time(14, 10), "client-1")


class TestBlockedTimes:
    def test_inverted_block_rejected(self, service, provider):
        with pytest.raises(InvalidRange):
            service.block_time(PROVIDER_ID, MONDAY, time(16), time(15))

    def test_block_listing_and_removal(self, service, provider):
        block = service.block_time(PROVIDER_ID, MONDAY, time(15), time(16), "Errand")
        assert [b.id for b in service.list_blocked_times(PROVIDER_ID, MONDAY)] == [block.id]
        service.unblock_time(PROVIDER_ID, block.id)
        assert service.list_blocked_times(PROVIDER_ID) == []

    def test_unblock_other_providers_block(self, service, provider):
        block = service.block_time(PROVIDER_ID, MONDAY, time(15), time(16))
        service.register_provider("prov-2")
        with pytest.raises(NotFound):
            service.unblock_time("prov-2", block.id)

    def test_block_leaves_existing_bookings(self, service, provider):
        booking = service.create_booking(PROVIDER_ID, make_request(provider.id, time(15)))
        service.block_time(PROVIDER_ID, MONDAY, time(15), time(16))
        assert service.get_booking(booking.id).status == BookingStatus.CONFIRMED
