"""
Bounded in-memory cache with a fixed time-to-live.

Entries expire lazily on ``get``. When the cache is full, ``set`` evicts the
single entry with the oldest insertion timestamp; reads never refresh an
entry's age.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, NamedTuple, Optional, TypeVar

V = TypeVar("V")


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class CacheEntry(NamedTuple):
    value: Any
    timestamp: float


class DataCache(Generic[V]):
    """
    Key/value store bounded by ``max_size`` entries and ``ttl`` milliseconds.

    ``clock`` returns the current time in milliseconds; tests pass a fake to
    step over the TTL without sleeping.
    """

    def __init__(
        self,
        ttl: float = 300_000,
        max_size: int = 100,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock or _monotonic_ms
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp > self.ttl

    def _evict_oldest(self) -> None:
        oldest_key = None
        oldest_ts = None
        for key, entry in self._entries.items():
            if oldest_ts is None or entry.timestamp < oldest_ts:
                oldest_key, oldest_ts = key, entry.timestamp
        if oldest_ts is not None:
            del self._entries[oldest_key]

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = CacheEntry(value, self._clock())

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry):
                del self._entries[key]
                return None
            return entry.value

    def has(self, key: Hashable) -> bool:
        """Presence check; an expired entry is evicted and reported absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._expired(entry):
                del self._entries[key]
                return False
            return True

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
