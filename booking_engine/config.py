"""
Centralized configuration with environment variable overrides.

Slot granularity, onboarding defaults, and booking behavior are all
configurable here. Nothing is hardcoded in engine or API logic.
"""

import logging
import os
from dataclasses import dataclass, field

import pytz
from dotenv import load_dotenv

from booking_engine.logging_context import RequestIdFilter
from booking_engine.utils import MINUTES_PER_DAY

load_dotenv()

logger = logging.getLogger(__name__)

MAX_SLOT_GRANULARITY = 240


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag from an env var (true/false, yes/no, 1/0)."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot grid and provider onboarding defaults."""

    slot_granularity_minutes: int = _safe_int("SLOT_GRANULARITY_MINUTES", "30")
    default_work_start: str = os.getenv("DEFAULT_WORK_START", "09:00")
    default_work_end: str = os.getenv("DEFAULT_WORK_END", "17:00")
    default_working_days: tuple[str, ...] = _csv(
        "DEFAULT_WORKING_DAYS", "mon,tue,wed,thu,fri"
    )
    available_days_window: int = _safe_int("AVAILABLE_DAYS_WINDOW", "14")
    max_available_days_window: int = _safe_int("MAX_AVAILABLE_DAYS_WINDOW", "60")


@dataclass(frozen=True)
class BookingConfig:
    """Reservation behavior."""

    auto_confirm: bool = _safe_bool("BOOKING_AUTO_CONFIRM", "true")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    timezone: str = os.getenv("ENGINE_TIMEZONE", "UTC")
    api_title: str = os.getenv("API_TITLE", "Provider Booking Engine")


def _parse_hhmm(env_var: str, raw: str) -> int:
    try:
        hours, minutes = raw.split(":")
        value = int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        raise ValueError(f"{env_var} must be HH:MM, got {raw!r}") from None
    if not 0 <= value < MINUTES_PER_DAY:
        raise ValueError(f"{env_var} must be a time of day, got {raw!r}")
    return value


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    granularity = config.scheduling.slot_granularity_minutes
    if not 1 <= granularity <= MAX_SLOT_GRANULARITY:
        raise ValueError(
            f"SLOT_GRANULARITY_MINUTES must be between 1 and {MAX_SLOT_GRANULARITY}, "
            f"got {granularity}"
        )
    if MINUTES_PER_DAY % granularity != 0:
        raise ValueError(
            f"SLOT_GRANULARITY_MINUTES must divide a day evenly, got {granularity}"
        )

    start = _parse_hhmm("DEFAULT_WORK_START", config.scheduling.default_work_start)
    end = _parse_hhmm("DEFAULT_WORK_END", config.scheduling.default_work_end)
    if start >= end:
        raise ValueError(
            "DEFAULT_WORK_START must be before DEFAULT_WORK_END, got "
            f"{config.scheduling.default_work_start} - {config.scheduling.default_work_end}"
        )

    valid_days = {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}
    unknown = [d for d in config.scheduling.default_working_days if d not in valid_days]
    if unknown:
        raise ValueError(f"DEFAULT_WORKING_DAYS has unknown days: {unknown}")

    if config.scheduling.available_days_window < 1:
        raise ValueError(
            "AVAILABLE_DAYS_WINDOW must be >= 1, "
            f"got {config.scheduling.available_days_window}"
        )
    if config.scheduling.max_available_days_window < config.scheduling.available_days_window:
        raise ValueError(
            "MAX_AVAILABLE_DAYS_WINDOW must be >= AVAILABLE_DAYS_WINDOW, "
            f"got {config.scheduling.max_available_days_window}"
        )

    if config.timezone not in pytz.all_timezones_set:
        raise ValueError(f"ENGINE_TIMEZONE is not a known timezone: {config.timezone!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info(
        "Configuration loaded: %d-minute slot grid, timezone %s",
        config.scheduling.slot_granularity_minutes, config.timezone,
    )
    return config


# Singleton instance
settings = load_config()
