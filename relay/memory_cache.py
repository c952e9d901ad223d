"""In-process cache tier: small, LRU-bounded, with a hard max age.

Sits in front of the durable tier for latency and keeps serving (stale) data
when the durable tier or the upstream is unavailable.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from relay.constants import MEMORY_CACHE_MAX_ENTRIES, MEMORY_FALLBACK_MAX_AGE_SECONDS


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    last_access: float


class MemoryCache:
    """Bounded key -> JSON value map.

    ``get`` honours ``ttl_seconds`` unless ``allow_stale`` is set; entries older
    than ``max_age_seconds`` are purged on read either way. Insertion past
    ``max_entries`` evicts the least recently accessed entries.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_entries: int = MEMORY_CACHE_MAX_ENTRIES,
        max_age_seconds: float = MEMORY_FALLBACK_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = int(max_entries)
        self.max_age_seconds = max(float(max_age_seconds), self.ttl_seconds)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.metrics = {"hits": 0, "misses": 0, "staleHits": 0, "evictions": 0, "expired": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, allow_stale: bool = False) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.metrics["misses"] += 1
                return None
            age = now - entry.stored_at
            if age > self.max_age_seconds:
                del self._entries[key]
                self.metrics["expired"] += 1
                self.metrics["misses"] += 1
                return None
            if not allow_stale and age > self.ttl_seconds:
                self.metrics["misses"] += 1
                return None
            entry.last_access = now
            self._entries.move_to_end(key)
            if age > self.ttl_seconds:
                self.metrics["staleHits"] += 1
            else:
                self.metrics["hits"] += 1
            return entry.value

    def get_stale(self, key: str) -> Optional[Any]:
        """Ignore the TTL but still respect the hard max age."""
        return self.get(key, allow_stale=True)

    def set(self, key: str, value: Any, age: float = 0.0) -> None:
        """Store *value*; *age* backdates it when it was fetched upstream earlier."""
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=now - age, last_access=now)
            self._entries.move_to_end(key)
            overflow = len(self._entries) - self.max_entries
            if overflow <= 0:
                return
            # Access order can drift from last_access under a skewed clock; evict by timestamp.
            oldest = sorted(self._entries.values(), key=lambda e: e.last_access)[:overflow]
            for entry in oldest:
                del self._entries[entry.key]
                self.metrics["evictions"] += 1

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats_payload(self) -> dict:
        total = self.metrics["hits"] + self.metrics["misses"]
        return {
            "items": len(self._entries),
            "maxItems": self.max_entries,
            "ttlSeconds": self.ttl_seconds,
            "maxAgeSeconds": self.max_age_seconds,
            "metrics": dict(self.metrics),
            "hitRate": (self.metrics["hits"] / total) if total else None,
        }
