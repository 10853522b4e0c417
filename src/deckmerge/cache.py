"""Bounded LRU cache with optional expiry.

The cache is an explicitly constructed object owned by its caller: capacity,
time-to-live and the clock are injected, and nothing is kept at module
level.  :class:`BackgroundDiffRunner` uses one to memoise diffs keyed by
snapshot fingerprints.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Thread-safe least-recently-used cache.

    Parameters
    ----------
    capacity:
        Maximum number of entries.  Inserting beyond it evicts the least
        recently used entry.
    ttl_seconds:
        Optional lifetime of an entry, measured with *clock* from the time
        it was stored.  Expired entries behave as missing.
    clock:
        Monotonic time source in seconds.  Inject a fake in tests.
    """

    __slots__ = ("_clock", "_entries", "_lock", "capacity", "ttl_seconds")

    def __init__(
        self,
        capacity: int,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")

        self.capacity: int = capacity
        self.ttl_seconds: float | None = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()
        self._lock = threading.Lock()

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - stored_at >= self.ttl_seconds

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for *key* and mark it most recently used."""
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return default
            stored_at, value = item
            if self._expired(stored_at):
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return value

    def set(self, key: K, value: V) -> None:
        """Store *value*, evicting the least recently used entry if full."""
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[K]:
        """Live keys from least to most recently used."""
        with self._lock:
            return [k for k, (stored_at, _) in self._entries.items() if not self._expired(stored_at)]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            item = self._entries.get(key)  # type: ignore[arg-type]
            return item is not None and not self._expired(item[0])

    def __len__(self) -> int:
        return len(self.keys())
