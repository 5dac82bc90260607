"""Shared pydantic building blocks for the booking schemas."""

from datetime import time
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from booking_engine.utils import ensure_minute_resolution, format_time

# Minute-resolution time of day, rendered as "HH:MM" on the wire.
ClockTime = Annotated[
    time,
    AfterValidator(ensure_minute_resolution),
    PlainSerializer(format_time, return_type=str, when_used="json"),
]


class ApiModel(BaseModel):
    """Base model exchanging camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
