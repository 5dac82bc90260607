"""Tests for configuration loading and validation."""

import dataclasses

import pytest

from booking_engine.config import (
    AppConfig,
    BookingConfig,
    SchedulingConfig,
    _safe_bool,
    _safe_int,
    _validate_config,
)


def _with_scheduling(**overrides) -> AppConfig:
    scheduling = dataclasses.replace(SchedulingConfig(), **overrides)
    return dataclasses.replace(AppConfig(), scheduling=scheduling)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_granularity_zero_rejected(self):
        with pytest.raises(ValueError, match="SLOT_GRANULARITY_MINUTES"):
            _validate_config(_with_scheduling(slot_granularity_minutes=0))

    def test_granularity_must_divide_day(self):
        with pytest.raises(ValueError, match="divide a day"):
            _validate_config(_with_scheduling(slot_granularity_minutes=7))

    def test_default_window_inverted(self):
        with pytest.raises(ValueError, match="DEFAULT_WORK_START"):
            _validate_config(_with_scheduling(default_work_start="18:00", default_work_end="09:00"))

    def test_default_start_malformed(self):
        with pytest.raises(ValueError, match="HH:MM"):
            _validate_config(_with_scheduling(default_work_start="nine"))

    def test_unknown_working_day(self):
        with pytest.raises(ValueError, match="DEFAULT_WORKING_DAYS"):
            _validate_config(_with_scheduling(default_working_days=("mon", "funday")))

    def test_max_window_below_default(self):
        with pytest.raises(ValueError, match="MAX_AVAILABLE_DAYS_WINDOW"):
            _validate_config(_with_scheduling(available_days_window=14, max_available_days_window=7))

    def test_unknown_timezone(self):
        config = dataclasses.replace(AppConfig(), timezone="Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="ENGINE_TIMEZONE"):
            _validate_config(config)

    def test_booking_config_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            BookingConfig().auto_confirm = False


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_bad_value(self, monkeypatch):
        monkeypatch.setenv("BOOKING_TEST_INT", "abc")
        with pytest.raises(ValueError, match="BOOKING_TEST_INT"):
            _safe_int("BOOKING_TEST_INT", "1")

    def test_safe_bool_parsing(self, monkeypatch):
        monkeypatch.setenv("BOOKING_TEST_BOOL", "No")
        assert _safe_bool("BOOKING_TEST_BOOL", "true") is False
        assert _safe_bool("NONEXISTENT_VAR_12345", "yes") is True

    def test_safe_bool_bad_value(self, monkeypatch):
        monkeypatch.setenv("BOOKING_TEST_BOOL", "maybe")
        with pytest.raises(ValueError, match="BOOKING_TEST_BOOL"):
            _safe_bool("BOOKING_TEST_BOOL", "true")
