"""
Generic in-memory cache with per-entry expiry and a capacity bound.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from tracking.metrics import CACHE_EVICTIONS

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedTTLCache(Generic[K, V]):
    """
    In-memory cache with optional TTL per entry and an optional entry limit.

    Maintains key -> (value, expires_at) in recency order. When the limit is
    exceeded, expired entries are dropped first, then the least recently
    used ones. The order is approximate LRU-ish, not strict: only reads via
    get() and writes refresh recency.

    All access goes through one lock, so a refresh thread can write while
    tick and UI threads read.
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[K, Tuple[V, Optional[float]]]" = OrderedDict()
        self._lock = threading.RLock()

    def _expired(self, expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def get(self, key: K) -> Optional[V]:
        """Get a live value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._expired(expires_at, self._clock()):
                del self._entries[key]
                CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc()
                return None

            self._entries.move_to_end(key)
            return value

    def put(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        """
        Insert or replace a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds; falls back to default_ttl, None never expires
        """
        if ttl is None:
            ttl = self.default_ttl
        with self._lock:
            expires_at = self._clock() + ttl if ttl is not None else None
            self._entries[key] = (value, expires_at)
            self._entries.move_to_end(key)

            if self.max_entries is not None and len(self._entries) > self.max_entries:
                self._enforce_capacity()

    def _enforce_capacity(self) -> None:
        self.evict_expired()
        evicted = 0
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            evicted += 1
        if evicted:
            CACHE_EVICTIONS.labels(cache=self.name, reason="capacity").inc(evicted)
            logger.debug(f"Cache {self.name}: evicted {evicted} entries over capacity")

    def evict_expired(self) -> List[K]:
        """
        Remove expired entries.

        Returns:
            List of keys that were removed
        """
        with self._lock:
            now = self._clock()
            removed = [
                key for key, (_, expires_at) in self._entries.items()
                if self._expired(expires_at, now)
            ]
            for key in removed:
                del self._entries[key]

            if removed:
                CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc(len(removed))
                logger.debug(f"Cache {self.name}: removed {len(removed)} expired entries")

        return removed

    def delete(self, key: K) -> bool:
        """Remove a key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def items(self) -> Dict[K, V]:
        """Snapshot of live entries."""
        with self._lock:
            now = self._clock()
            return {
                key: value for key, (value, expires_at) in self._entries.items()
                if not self._expired(expires_at, now)
            }

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
