"""
Per-key mutual exclusion for ledger writes.

Reservations serialize per (provider_id, date): two writers on the same key
queue behind one lock, while writers on different providers or different
dates never contend. Entries are reference counted and dropped when the
last holder releases, so the table does not grow with every date ever
touched.

Usage:
    locks = KeyedLock()
    with locks.hold(("prov-1", date(2025, 3, 17))):
        ...  # check-then-insert
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Hashable, Iterator

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLock:
    """A lazily populated table of mutexes keyed by arbitrary hashable keys."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        """
        Acquire the locks for all ``keys`` for the duration of the block.

        Keys are deduplicated and acquired in sorted order so that two
        callers holding overlapping key sets cannot deadlock.
        """
        ordered = sorted(set(keys), key=repr)
        acquired: list[tuple[Hashable, _Entry]] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._checkin(key, entry)
                    raise
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)

    def active_keys(self) -> list[Hashable]:
        """Keys currently held or awaited."""
        with self._guard:
            return list(self._entries)
