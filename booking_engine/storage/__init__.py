from booking_engine.storage.base import (
    BookingRepository,
    IdempotencyRecord,
    LedgerState,
    ProviderRepository,
)
from booking_engine.storage.memory import InMemoryRepository

__all__ = [
    "BookingRepository",
    "IdempotencyRecord",
    "InMemoryRepository",
    "LedgerState",
    "ProviderRepository",
]
