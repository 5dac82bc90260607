"""
FastAPI endpoints for schedules, services, slots and bookings.

Endpoints are plain ``def`` so FastAPI runs them in its threadpool; the
engine's locks are thread locks and must not be taken on the event loop.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from booking_engine.errors import ValidationError
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingRequest,
    CancelRequest,
    RescheduleRequest,
)
from booking_engine.schemas.schedule_schema import (
    BlockedTime,
    BlockedTimeCreate,
    DayOfWeek,
    DayScheduleUpdate,
    DayScheduleView,
    ProviderCreate,
)
from booking_engine.schemas.service_schema import Service, ServiceCreate, ServiceUpdate
from booking_engine.schemas.slot_schema import AvailableDay, TimeSlot
from booking_engine.service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_availability_service(request: Request) -> AvailabilityService:
    """Dependency injection for the façade stored on the app."""
    return request.app.state.service


def _parse_day(value: str) -> DayOfWeek:
    try:
        return DayOfWeek.parse(value)
    except ValueError as e:
        raise ValidationError(str(e), day_of_week=value) from None


# ============================================================================
# PROVIDERS AND SCHEDULES
# ============================================================================


@router.post("/providers", status_code=201, response_model=list[DayScheduleView], tags=["Providers"])
def register_provider(
    body: ProviderCreate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.register_provider(body.provider_id)


@router.get("/providers/{provider_id}/schedule", response_model=list[DayScheduleView], tags=["Providers"])
def get_schedule(
    provider_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_schedule(provider_id)


@router.get(
    "/providers/{provider_id}/schedule/dates",
    response_model=list[DayScheduleView],
    tags=["Providers"],
)
def list_date_overrides(
    provider_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_date_overrides(provider_id)


@router.put(
    "/providers/{provider_id}/schedule/dates/{on}",
    response_model=DayScheduleView,
    tags=["Providers"],
)
def set_date_override(
    provider_id: str,
    on: date,
    body: DayScheduleUpdate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.set_date_override(
        provider_id, on, body.is_available,
        body.work_start, body.work_end, body.break_start, body.break_end,
    )


@router.delete("/providers/{provider_id}/schedule/dates/{on}", status_code=204, tags=["Providers"])
def clear_date_override(
    provider_id: str,
    on: date,
    service: AvailabilityService = Depends(get_availability_service),
):
    service.clear_date_override(provider_id, on)
    return Response(status_code=204)


@router.put(
    "/providers/{provider_id}/schedule/{day_of_week}",
    response_model=DayScheduleView,
    tags=["Providers"],
)
def set_schedule_day(
    provider_id: str,
    day_of_week: str,
    body: DayScheduleUpdate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.set_schedule_day(
        provider_id, _parse_day(day_of_week), body.is_available,
        body.work_start, body.work_end, body.break_start, body.break_end,
    )


# ============================================================================
# SERVICES
# ============================================================================


@router.post("/providers/{provider_id}/services", status_code=201, response_model=Service, tags=["Services"])
def add_service(
    provider_id: str,
    body: ServiceCreate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.add_service(
        provider_id, body.name, body.duration_minutes, body.price, body.is_active,
    )


@router.get("/providers/{provider_id}/services", response_model=list[Service], tags=["Services"])
def list_services(
    provider_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.list_services(provider_id)


@router.patch("/services/{service_id}", response_model=Service, tags=["Services"])
def update_service(
    service_id: str,
    body: ServiceUpdate,
    service: AvailabilityService = Depends(get_availability_service),
):
    if body.is_active is None:
        return service.get_service(service_id)
    return service.set_service_active(service_id, body.is_active)


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get(
    "/providers/{provider_id}/services/{service_id}/slots",
    response_model=list[TimeSlot],
    tags=["Availability"],
)
def get_slots(
    provider_id: str,
    service_id: str,
    on: date = Query(..., alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_available_slots(provider_id, service_id, on)


@router.get(
    "/providers/{provider_id}/services/{service_id}/available-days",
    response_model=list[AvailableDay],
    tags=["Availability"],
)
def get_available_days(
    provider_id: str,
    service_id: str,
    start_date: Optional[date] = Query(None, alias="startDate"),
    days: Optional[int] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_available_days(provider_id, service_id, start_date, days)


# ============================================================================
# BLOCKED TIME
# ============================================================================


@router.post(
    "/providers/{provider_id}/blocked-times",
    status_code=201,
    response_model=BlockedTime,
    tags=["Availability"],
)
def block_time(
    provider_id: str,
    body: BlockedTimeCreate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.block_time(provider_id, body.date, body.start_time, body.end_time, body.reason)


@router.get(
    "/providers/{provider_id}/blocked-times",
    response_model=list[BlockedTime],
    tags=["Availability"],
)
def list_blocked_times(
    provider_id: str,
    on: Optional[date] = Query(None, alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.list_blocked_times(provider_id, on)


@router.delete("/providers/{provider_id}/blocked-times/{block_id}", status_code=204, tags=["Availability"])
def unblock_time(
    provider_id: str,
    block_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    service.unblock_time(provider_id, block_id)
    return Response(status_code=204)


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/providers/{provider_id}/bookings", status_code=201, response_model=Booking, tags=["Bookings"])
def create_booking(
    provider_id: str,
    body: BookingRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.create_booking(provider_id, body)


@router.get("/providers/{provider_id}/bookings", response_model=list[Booking], tags=["Bookings"])
def list_bookings(
    provider_id: str,
    on: Optional[date] = Query(None, alias="date"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.list_bookings(provider_id, on, include_inactive)


@router.get("/bookings/{booking_id}", response_model=Booking, tags=["Bookings"])
def get_booking(
    booking_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.get_booking(booking_id)


@router.patch("/bookings/{booking_id}/cancel", response_model=Booking, tags=["Bookings"])
def cancel_booking(
    booking_id: str,
    body: CancelRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.cancel_booking(booking_id, body.actor_id)


@router.patch("/bookings/{booking_id}/confirm", response_model=Booking, tags=["Bookings"])
def confirm_booking(
    booking_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.confirm_booking(booking_id)


@router.patch("/bookings/{booking_id}/complete", response_model=Booking, tags=["Bookings"])
def complete_booking(
    booking_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.complete_booking(booking_id)


@router.patch("/bookings/{booking_id}/reschedule", response_model=Booking, tags=["Bookings"])
def reschedule_booking(
    booking_id: str,
    body: RescheduleRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.reschedule_booking(booking_id, body.date, body.start_time, body.actor_id)
