"""
AvailabilityService - the only entry point the HTTP layer talks to.

Thin composition over the engine: slot queries go to the SlotGenerator,
every booking write goes through the ReservationCoordinator. Engine errors
already form the external taxonomy, so they propagate unchanged and the
API maps them onto status codes.
"""

from __future__ import annotations

import uuid
from datetime import date, time
from typing import Optional

from booking_engine.config import AppConfig, settings
from booking_engine.engine.ledger import BookingLedger
from booking_engine.engine.locks import KeyedLock
from booking_engine.engine.reservation import ReservationCoordinator
from booking_engine.engine.schedule import WeeklySchedule
from booking_engine.engine.slot_generator import SlotGenerator
from booking_engine.errors import NotFound, ValidationError
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import Booking, BookingRequest
from booking_engine.schemas.schedule_schema import BlockedTime, DayOfWeek, DayScheduleView
from booking_engine.schemas.service_schema import Service
from booking_engine.schemas.slot_schema import AvailableDay, TimeSlot
from booking_engine.storage.base import BookingRepository, ProviderRepository
from booking_engine.storage.memory import InMemoryRepository
from booking_engine.utils import Clock, make_clock, parse_time

logger = get_request_logger(__name__)


class AvailabilityService:
    """Façade over schedules, services, slot generation and reservations."""

    def __init__(
        self,
        providers: ProviderRepository,
        bookings: BookingRepository,
        clock: Clock,
        config: AppConfig = settings,
    ) -> None:
        self.config = config
        self._providers = providers
        self._clock = clock
        self._schedule_locks = KeyedLock()

        self.ledger = BookingLedger(bookings)
        self.generator = SlotGenerator(
            providers, self.ledger, clock,
            granularity_minutes=config.scheduling.slot_granularity_minutes,
        )
        self.coordinator = ReservationCoordinator(
            bookings, self.generator, self.ledger, clock,
            auto_confirm=config.booking.auto_confirm,
        )
        self._bookings = bookings

    # ------------------------------------------------------------------ #
    # Providers and schedules
    # ------------------------------------------------------------------ #

    @property
    def default_hours(self) -> tuple[time, time]:
        return (
            parse_time(self.config.scheduling.default_work_start),
            parse_time(self.config.scheduling.default_work_end),
        )

    def register_provider(self, provider_id: str) -> list[DayScheduleView]:
        """Onboard a provider with the configured default working week."""
        work_start, work_end = self.default_hours
        schedule = WeeklySchedule.with_defaults(
            provider_id, self.config.scheduling.default_working_days, work_start, work_end,
        )
        saved = self._providers.add_provider(schedule)
        logger.info("Provider registered: %s", provider_id)
        return saved.views()

    def _schedule(self, provider_id: str) -> WeeklySchedule:
        schedule = self._providers.get_schedule(provider_id)
        if schedule is None:
            raise NotFound(f"Provider {provider_id} not found", provider_id=provider_id)
        return schedule

    def get_schedule(self, provider_id: str) -> list[DayScheduleView]:
        """The seven weekdays in Monday-first order."""
        return self._schedule(provider_id).views()

    def get_date_overrides(self, provider_id: str) -> list[DayScheduleView]:
        overrides = self._schedule(provider_id).overrides()
        return [overrides[d].to_view(override_date=d) for d in sorted(overrides)]

    def set_schedule_day(
        self,
        provider_id: str,
        day: DayOfWeek,
        is_available: bool,
        work_start: Optional[time] = None,
        work_end: Optional[time] = None,
        break_start: Optional[time] = None,
        break_end: Optional[time] = None,
    ) -> DayScheduleView:
        """
        Replace one weekday's windows.

        An available day without bounds gets the configured default hours.
        Existing bookings are never touched.
        """
        with self._schedule_locks.hold(provider_id):
            schedule = self._schedule(provider_id)
            entry = schedule.set_day(
                day, is_available, work_start, work_end, break_start, break_end,
                default_hours=self.default_hours,
            )
            self._providers.save_schedule(schedule)
        logger.info("Provider %s schedule changed: %s", provider_id, day.value)
        return entry.to_view(day_of_week=day)

    def set_date_override(
        self,
        provider_id: str,
        on: date,
        is_available: bool,
        work_start: Optional[time] = None,
        work_end: Optional[time] = None,
        break_start: Optional[time] = None,
        break_end: Optional[time] = None,
    ) -> DayScheduleView:
        """Replace the weekday windows for one calendar date only."""
        with self._schedule_locks.hold(provider_id):
            schedule = self._schedule(provider_id)
            entry = schedule.set_date_override(
                on, is_available, work_start, work_end, break_start, break_end,
                default_hours=self.default_hours,
            )
            self._providers.save_schedule(schedule)
        logger.info("Provider %s schedule override set for %s", provider_id, on)
        return entry.to_view(override_date=on)

    def clear_date_override(self, provider_id: str, on: date) -> None:
        with self._schedule_locks.hold(provider_id):
            schedule = self._schedule(provider_id)
            if not schedule.clear_date_override(on):
                raise NotFound(f"No schedule override for {on}", date=on.isoformat())
            self._providers.save_schedule(schedule)
        logger.info("Provider %s schedule override cleared for %s", provider_id, on)

    # ------------------------------------------------------------------ #
    # Services
    # ------------------------------------------------------------------ #

    def add_service(
        self,
        provider_id: str,
        name: str,
        duration_minutes: int,
        price: float,
        is_active: bool = True,
    ) -> Service:
        service = Service(
            id=f"SVC-{uuid.uuid4().hex[:8].upper()}",
            provider_id=provider_id,
            name=name,
            duration_minutes=duration_minutes,
            price=price,
            is_active=is_active,
        )
        saved = self._providers.add_service(service)
        logger.info("Service added: %s (%s, %d min) for %s", saved.id, name, duration_minutes, provider_id)
        return saved

    def get_service(self, service_id: str) -> Service:
        service = self._providers.get_service(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found", service_id=service_id)
        return service

    def list_services(self, provider_id: str) -> list[Service]:
        self._schedule(provider_id)
        return self._providers.list_services(provider_id)

    def set_service_active(self, service_id: str, is_active: bool) -> Service:
        service = self.get_service(service_id).model_copy(update={"is_active": is_active})
        saved = self._providers.save_service(service)
        logger.info("Service %s %s", service_id, "activated" if is_active else "deactivated")
        return saved

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    def get_available_slots(self, provider_id: str, service_id: str, on: date) -> list[TimeSlot]:
        return self.generator.generate_slots(provider_id, service_id, on)

    def get_available_days(
        self,
        provider_id: str,
        service_id: str,
        start: Optional[date] = None,
        days: Optional[int] = None,
    ) -> list[AvailableDay]:
        """Days with at least one open slot, starting today unless ``start`` is given."""
        window = days if days is not None else self.config.scheduling.available_days_window
        limit = self.config.scheduling.max_available_days_window
        if not 1 <= window <= limit:
            raise ValidationError(
                f"days must be between 1 and {limit}, got {window}",
                days=window,
            )
        return self.generator.available_days(
            provider_id, service_id, start or self._clock().date(), window,
        )

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    def create_booking(self, provider_id: str, request: BookingRequest) -> Booking:
        return self.coordinator.reserve(
            provider_id,
            request.service_id,
            request.date,
            request.start_time,
            request.client_id,
            idempotency_key=request.idempotency_key,
            duration_minutes=request.duration_minutes,
        )

    def get_booking(self, booking_id: str) -> Booking:
        return self.coordinator.get(booking_id)

    def list_bookings(
        self,
        provider_id: str,
        on: Optional[date] = None,
        include_inactive: bool = False,
    ) -> list[Booking]:
        self._schedule(provider_id)
        found = self._bookings.list_bookings(provider_id, on)
        if include_inactive:
            return found
        return [b for b in found if b.is_active]

    def cancel_booking(self, booking_id: str, actor_id: str) -> Booking:
        return self.coordinator.cancel(booking_id, actor_id)

    def confirm_booking(self, booking_id: str) -> Booking:
        return self.coordinator.confirm(booking_id)

    def complete_booking(self, booking_id: str) -> Booking:
        return self.coordinator.complete(booking_id)

    def reschedule_booking(
        self,
        booking_id: str,
        new_date: date,
        new_start_time: time,
        actor_id: str,
    ) -> Booking:
        return self.coordinator.reschedule(booking_id, new_date, new_start_time, actor_id)

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
        self._schedule(provider_id)
        return self.coordinator.block_time(provider_id, on, start_time, end_time, reason)

    def list_blocked_times(self, provider_id: str, on: Optional[date] = None) -> list[BlockedTime]:
        self._schedule(provider_id)
        return self._bookings.list_blocked_times(provider_id, on)

    def unblock_time(self, provider_id: str, block_id: str) -> BlockedTime:
        return self.coordinator.unblock_time(provider_id, block_id)


def build_service(
    config: AppConfig = settings,
    repository: Optional[InMemoryRepository] = None,
    clock: Optional[Clock] = None,
) -> AvailabilityService:
    """Wire the façade over one shared in-memory store."""
    repository = repository or InMemoryRepository()
    return AvailabilityService(
        providers=repository,
        bookings=repository,
        clock=clock or make_clock(config.timezone),
        config=config,
    )
