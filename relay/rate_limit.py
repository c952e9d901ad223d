"""Fixed-window per-client rate limiting with bounded memory."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Mapping

from relay.constants import RATE_LIMIT_MAX_ENTRIES, RATE_LIMIT_WINDOW_SECONDS


@dataclass
class RateLimitState:
    window_start: float
    count: int


class IpRateLimiter:
    """``check(key)`` admits ``limit`` calls per ``window_seconds`` per key.

    At most ``max_entries`` keys are tracked; the least recently seen keys are
    evicted beyond that. A flood of forged client keys therefore cannot grow
    memory without bound, at the price of evicted keys starting a fresh window.
    Counters are per process, not cluster-wide.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        max_entries: int = RATE_LIMIT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        if limit < 1 or max_entries < 1:
            raise ValueError("limit and max_entries must be >= 1")
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self.max_entries = int(max_entries)
        self._clock = clock
        self._states: "OrderedDict[str, RateLimitState]" = OrderedDict()
        self._lock = threading.Lock()
        self.metrics = {"allowed": 0, "limited": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._states)

    def check(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            state = self._states.get(key)
            if state is None or now - state.window_start >= self.window_seconds:
                state = RateLimitState(window_start=now, count=0)
                self._states[key] = state
            self._states.move_to_end(key)
            state.count += 1

            while len(self._states) > self.max_entries:
                self._states.popitem(last=False)
                self.metrics["evictions"] += 1

            if state.count > self.limit:
                self.metrics["limited"] += 1
                return False
            self.metrics["allowed"] += 1
            return True

    def stats_payload(self) -> dict:
        return {
            "limit": self.limit,
            "windowSeconds": self.window_seconds,
            "trackedKeys": len(self._states),
            "maxEntries": self.max_entries,
            "metrics": dict(self.metrics),
        }


def client_ip(headers: Mapping[str, str]) -> str:
    """First hop of X-Forwarded-For, else X-Real-IP, else 'unknown'."""
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or "unknown"
