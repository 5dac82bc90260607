"""
Typed failures raised by the booking engine.

Every failure path in the engine raises a subclass of EngineError. The
HTTP layer maps each class 1:1 onto a status code via ``status_code`` and
renders ``to_dict()`` as the response body; nothing is retried or
swallowed inside the engine.
"""

from typing import Any, Optional

from booking_engine.schemas.slot_schema import UnavailableReason


class EngineError(Exception):
    """Base class for all booking engine failures."""

    code: str = "engine_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


# --------------------------------------------------------------------- #
# Validation (422)
# --------------------------------------------------------------------- #


class ValidationError(EngineError):
    """Malformed input or a violated schedule invariant."""

    code = "validation_error"
    status_code = 422


class InvalidRange(ValidationError):
    code = "invalid_range"


class BreakOutOfBounds(ValidationError):
    code = "break_out_of_bounds"


class OffGridSlot(ValidationError):
    code = "off_grid_slot"


class DurationMismatch(ValidationError):
    code = "duration_mismatch"


class InactiveService(ValidationError):
    code = "inactive_service"


class IdempotencyKeyReused(ValidationError):
    code = "idempotency_key_reused"


# --------------------------------------------------------------------- #
# Conflicts (409)
# --------------------------------------------------------------------- #


class SlotUnavailable(EngineError):
    """The requested interval is not bookable in the current ledger state."""

    code = "slot_unavailable"
    status_code = 409

    def __init__(self, reason: UnavailableReason, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Slot is unavailable: {reason.value}",
            reason=reason.value,
        )
        self.reason = reason


class ConcurrencyConflict(EngineError):
    """A conditional write lost against a concurrent commit."""

    code = "concurrency_conflict"
    status_code = 409


class InvalidTransition(EngineError):
    """A booking status change not allowed from the current status."""

    code = "invalid_transition"
    status_code = 409


class AlreadyCancelled(InvalidTransition):
    code = "already_cancelled"


# --------------------------------------------------------------------- #
# Lookup and infrastructure
# --------------------------------------------------------------------- #


class NotFound(EngineError):
    code = "not_found"
    status_code = 404


class StorageFailure(EngineError):
    """Transient backing-store failure; callers may retry with the same idempotency key."""

    code = "storage_failure"
    status_code = 503
    retryable = True
