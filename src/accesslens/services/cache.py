"""Thread-safe bounded cache with per-entry expiry."""

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, Tuple, TypeVar


K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Size-bounded LRU cache whose entries expire a fixed time after being written.

    Args:
        max_size: Maximum number of entries; the least recently used entry
            is evicted when a new key would exceed it. ``0`` disables caching.
        ttl_seconds: Lifetime of an entry, counted from the last ``put``
        timer: Monotonic clock, injectable for tests
    """

    def __init__(self, max_size: int, ttl_seconds: float, timer: Callable[[], float] = time.monotonic):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._timer = timer
        self._entries: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[V]:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._timer() >= expires_at:
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def put(self, key: K, value: V) -> None:
        """Store a value, resetting its expiry and evicting if over capacity."""
        if self.max_size == 0:
            return

        with self._lock:
            self._entries[key] = (value, self._timer() + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        """Number of stored entries, including any not yet purged after expiry."""
        with self._lock:
            return len(self._entries)
