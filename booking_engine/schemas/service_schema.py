"""Service catalog models owned by the provider aggregate."""

from typing import Optional

from pydantic import Field

from booking_engine.schemas.common import ApiModel


class Service(ApiModel):
    """A bookable service; referenced by id, never copied into slots."""

    id: str
    provider_id: str
    name: str
    duration_minutes: int = Field(gt=0)
    price: float = Field(ge=0)
    is_active: bool = True


class ServiceCreate(ApiModel):
    name: str = Field(min_length=1)
    duration_minutes: int = Field(gt=0, le=24 * 60)
    price: float = Field(ge=0)
    is_active: bool = True


class ServiceUpdate(ApiModel):
    is_active: Optional[bool] = None
