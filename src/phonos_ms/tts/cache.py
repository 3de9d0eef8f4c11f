"""
In-Memory TTL Cache.

Ephemeral, per-process storage for data that is cheap to lose:
    - Error records of failed generations (suppress retries for a while)
    - Supported-language lists fetched from backends (long TTL)

Features:
    - LRU eviction when capacity is reached
    - Per-entry TTL (defaults to the cache-wide TTL)
    - Thread-safe operations
    - Hit/miss/expiration statistics

Example:
    >>> cache = TTLCache(max_items=100, ttl_seconds=3600)
    >>> cache.set("espeak:languages", ["af", "an", "bg"])
    >>> cache.get("espeak:languages")
    ['af', 'an', 'bg']
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from phonos_ms.core.logging import get_logger, verbose

_LOG = get_logger("phonos-ms.cache")

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """
    Thread-safe LRU cache with per-entry expiry.

    Attributes:
        max_items: Maximum number of entries.
        ttl_seconds: Default lifetime of an entry.
    """

    def __init__(
        self,
        max_items: int = 1024,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.max_items = int(max_items)
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock

        self._d: "OrderedDict[str, _Entry[V]]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def get(self, key: str) -> Optional[V]:
        """Return the live value for ``key`` or None (expired entries are dropped)."""
        with self._lock:
            entry = self._d.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.expires_at <= self._clock():
                del self._d[key]
                self._expirations += 1
                self._misses += 1
                verbose(_LOG, "expired", key=key[:32])
                return None

            self._d.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> None:
        """Store ``value``; evicts the least recently used entry when full."""
        ttl = self.ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        with self._lock:
            self._d[key] = _Entry(value=value, expires_at=self._clock() + ttl)
            self._d.move_to_end(key)
            while len(self._d) > self.max_items:
                self._d.popitem(last=False)

    def get_or_set(self, key: str, factory: Callable[[], V], ttl_seconds: Optional[float] = None) -> V:
        """
        Return the cached value, computing and storing it on a miss.

        ``factory`` runs outside the lock; concurrent misses may both call
        it and the last writer wins.
        """
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value, ttl_seconds)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._d:
                del self._d[key]
                return True
            return False

    def clear(self) -> int:
        with self._lock:
            count = len(self._d)
            self._d.clear()
            return count

    def stats(self) -> Dict[str, Any]:
        """Hit/miss/expiration counters and current size."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._d),
                "max_items": self.max_items,
                "ttl_seconds": self.ttl_seconds,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def __contains__(self, key: str) -> bool:
        """Presence check that ignores expiry; use get() for a live lookup."""
        with self._lock:
            return key in self._d
