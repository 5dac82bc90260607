"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from booking_engine.api import create_app
from booking_engine.config import AppConfig
from booking_engine.schemas.booking_schema import BookingRequest
from booking_engine.schemas.schedule_schema import DayOfWeek
from booking_engine.service import AvailabilityService
from booking_engine.storage.memory import InMemoryRepository

MONDAY = date(2025, 3, 17)
SUNDAY = date(2025, 3, 16)
NEXT_SUNDAY = date(2025, 3, 23)
PROVIDER_ID = "prov-1"


class FixedClock:
    """Settable wall clock so cutoff behavior is deterministic."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture
def clock():
    # Early Monday morning, before the provider opens
    return FixedClock(datetime(2025, 3, 17, 7, 0))


@pytest.fixture
def repository():
    repo = InMemoryRepository()
    yield repo
    repo.reset()


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def service(repository, clock, config):
    return AvailabilityService(repository, repository, clock, config=config)


@pytest.fixture
def provider(service):
    """Provider open Monday 09:00-18:00 with a 12:00-13:00 break; returns a 60-minute service."""
    service.register_provider(PROVIDER_ID)
    service.set_schedule_day(
        PROVIDER_ID, DayOfWeek.MONDAY, True, time(9), time(18), time(12), time(13),
    )
    return service.add_service(PROVIDER_ID, "Haircut", 60, 50.0)


@pytest.fixture
def api(service):
    with TestClient(create_app(service)) as client:
        yield client


def make_request(
    service_id: str,
    start: time,
    client_id: str = "client-1",
    on: date = MONDAY,
    idempotency_key: Optional[str] = None,
    duration_minutes: Optional[int] = None,
) -> BookingRequest:
    """Helper to create a BookingRequest with sensible defaults."""
    return BookingRequest(
        service_id=service_id,
        date=on,
        start_time=start,
        client_id=client_id,
        idempotency_key=idempotency_key,
        duration_minutes=duration_minutes,
    )


def available_starts(slots) -> list[str]:
    return [s.start_time.strftime("%H:%M") for s in slots if s.is_available]
