"""
Slot generation: turns a provider's schedule and ledger into bookable slots.

Candidates start on a fixed grid anchored at the working window's start
(granularity comes from configuration, not from service duration, so every
service shares one predictable grid). Each candidate is classified in a
fixed precedence order:

    1. PAST_CUTOFF:  starts at or before ``now``
    2. DURING_BREAK: intersects the break window
    3. OVERLAPS:     intersects an active booking
    4. BLOCKED:      intersects a provider-blocked interval

All interval tests are half-open, so a slot ending exactly when the break
starts is available. Generation is a pure function of the current ledger
state: calling it twice with the same state yields the same slots.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from booking_engine.config import settings
from booking_engine.engine.ledger import BookingLedger, LedgerView
from booking_engine.engine.schedule import DaySchedule, WeeklySchedule
from booking_engine.errors import NotFound
from booking_engine.schemas.schedule_schema import DayOfWeek
from booking_engine.schemas.service_schema import Service
from booking_engine.schemas.slot_schema import AvailableDay, TimeSlot, UnavailableReason
from booking_engine.storage.base import ProviderRepository
from booking_engine.utils import Clock, from_minutes, intervals_overlap

logger = logging.getLogger(__name__)


class SlotGenerator:
    """Derives candidate time slots for a (provider, service, date)."""

    def __init__(
        self,
        providers: ProviderRepository,
        ledger: BookingLedger,
        clock: Clock,
        granularity_minutes: Optional[int] = None,
    ) -> None:
        self._providers = providers
        self._ledger = ledger
        self._clock = clock
        self.granularity = granularity_minutes or settings.scheduling.slot_granularity_minutes

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def resolve(self, provider_id: str, service_id: str) -> tuple[WeeklySchedule, Service]:
        """Load the provider's schedule and one of its services."""
        schedule = self._providers.get_schedule(provider_id)
        if schedule is None:
            raise NotFound(f"Provider {provider_id} not found", provider_id=provider_id)
        service = self._providers.get_service(service_id)
        if service is None or service.provider_id != provider_id:
            raise NotFound(
                f"Service {service_id} not found for provider {provider_id}",
                service_id=service_id,
            )
        return schedule, service

    # ------------------------------------------------------------------ #
    # Grid and classification
    # ------------------------------------------------------------------ #

    def candidate_starts(self, day: DaySchedule, duration_minutes: int) -> range:
        """Grid starts from work_start to work_end - duration, inclusive."""
        if not day.is_available:
            return range(0)
        work_start, work_end = day.working_window()
        return range(work_start, work_end - duration_minutes + 1, self.granularity)

    def is_on_grid(self, day: DaySchedule, start_minute: int) -> bool:
        work_start, _ = day.working_window()
        return (start_minute - work_start) % self.granularity == 0

    def classify(
        self,
        on: date,
        start_minute: int,
        end_minute: int,
        day: DaySchedule,
        ledger: LedgerView,
        now: datetime,
        ignore_booking_id: Optional[str] = None,
    ) -> UnavailableReason:
        """Return why ``[start, end)`` on ``on`` cannot be booked, or NONE."""
        if datetime.combine(on, from_minutes(start_minute)) <= now:
            return UnavailableReason.PAST_CUTOFF

        break_window = day.break_window()
        if break_window and intervals_overlap(start_minute, end_minute, *break_window):
            return UnavailableReason.DURING_BREAK

        for other_start, other_end in ledger.booking_intervals(ignore_booking_id):
            if intervals_overlap(start_minute, end_minute, other_start, other_end):
                return UnavailableReason.OVERLAPS

        for blocked_start, blocked_end in ledger.blocked_intervals():
            if intervals_overlap(start_minute, end_minute, blocked_start, blocked_end):
                return UnavailableReason.BLOCKED

        return UnavailableReason.NONE

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def generate_slots(
        self,
        provider_id: str,
        service_id: str,
        on: date,
        now: Optional[datetime] = None,
    ) -> list[TimeSlot]:
        """
        Build the chronological slot list for one service on one date.

        Returns an empty list when the day is unavailable or the service is
        inactive. Raises NotFound for unknown providers or services.
        """
        schedule, service = self.resolve(provider_id, service_id)
        return self._slots_for(provider_id, service, schedule.day_for(on), on, now or self._clock())

    def _slots_for(
        self,
        provider_id: str,
        service: Service,
        day: DaySchedule,
        on: date,
        now: datetime,
    ) -> list[TimeSlot]:
        if not day.is_available or not service.is_active:
            return []

        starts = self.candidate_starts(day, service.duration_minutes)
        if not starts:
            return []

        ledger = self._ledger.view(provider_id, on)
        slots = []
        for start in starts:
            end = start + service.duration_minutes
            reason = self.classify(on, start, end, day, ledger, now)
            slots.append(TimeSlot(
                start_time=from_minutes(start),
                end_time=from_minutes(end),
                is_available=reason == UnavailableReason.NONE,
                price=service.price,
                unavailable_reason=reason,
            ))

        logger.debug(
            "Generated %d slots (%d available) for provider %s service %s on %s",
            len(slots), sum(s.is_available for s in slots), provider_id, service.id, on,
        )
        return slots

    def available_days(
        self,
        provider_id: str,
        service_id: str,
        start: date,
        days: int,
        now: Optional[datetime] = None,
    ) -> list[AvailableDay]:
        """List the days in ``[start, start + days)`` with at least one available slot."""
        schedule, service = self.resolve(provider_id, service_id)
        now = now or self._clock()
        results = []
        for offset in range(days):
            on = start + timedelta(days=offset)
            day = schedule.day_for(on)
            slots = self._slots_for(provider_id, service, day, on, now)
            available = sum(1 for s in slots if s.is_available)
            if available:
                results.append(AvailableDay(
                    date=on,
                    day_of_week=DayOfWeek.from_date(on).value,
                    working_hours=day.working_hours_label(),
                    available_slot_count=available,
                ))
        return results
