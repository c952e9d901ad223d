"""Client-side circuit breaker for calls from the dashboard to the relay.

Closed -> Open after ``max_failures`` consecutive failures. Open short-circuits
to the fallback until ``cooldown_seconds`` have passed since it opened, then
HalfOpen lets exactly one trial call through: success closes the breaker,
failure re-opens it with a fresh cool-down.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_FAILURES = 2
DEFAULT_COOLDOWN_SECONDS = 5 * 60


class BreakerState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        max_failures: int = DEFAULT_MAX_FAILURES,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.max_failures = max(1, int(max_failures))
        self.cooldown_seconds = float(cooldown_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self.state = BreakerState.CLOSED
        self.consecutive_failures = 0
        self.opened_at: Optional[float] = None
        self._trial_in_flight = False
        self.last_error: Optional[str] = None

    def _cooldown_remaining(self, now: float) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (now - self.opened_at))

    def _admit(self) -> bool:
        with self._lock:
            if self.state is BreakerState.CLOSED:
                return True
            now = self._clock()
            if self.state is BreakerState.OPEN:
                if self._cooldown_remaining(now) > 0:
                    return False
                self.state = BreakerState.HALF_OPEN
                self._trial_in_flight = False
                logger.info("[%s] Cool-down elapsed, allowing trial call", self.name)
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def _on_success(self) -> None:
        with self._lock:
            if self.state is not BreakerState.CLOSED:
                logger.info("[%s] Trial call succeeded, closing breaker", self.name)
            self.state = BreakerState.CLOSED
            self.consecutive_failures = 0
            self.opened_at = None
            self._trial_in_flight = False
            self.last_error = None

    def _on_failure(self, exc: BaseException) -> None:
        with self._lock:
            self.consecutive_failures += 1
            self.last_error = str(exc) or exc.__class__.__name__
            trial_failed = self.state is BreakerState.HALF_OPEN
            self._trial_in_flight = False
            if trial_failed or self.consecutive_failures >= self.max_failures:
                self.state = BreakerState.OPEN
                self.opened_at = self._clock()
                logger.warning(
                    "[%s] Breaker open after %d failures (cool-down %.0fs): %s",
                    self.name, self.consecutive_failures, self.cooldown_seconds, self.last_error,
                )

    def execute(self, fn: Callable[[], T], fallback: T) -> T:
        """Run ``fn`` through the breaker; never raises, returns ``fallback`` instead."""
        if not self._admit():
            logger.debug("[%s] Short-circuited to fallback", self.name)
            return fallback
        try:
            result = fn()
        except Exception as e:
            self._on_failure(e)
            return fallback
        self._on_success()
        return result

    def is_open(self) -> bool:
        with self._lock:
            return self.state is BreakerState.OPEN and self._cooldown_remaining(self._clock()) > 0

    def status(self) -> str:
        with self._lock:
            if self.state is BreakerState.CLOSED:
                return "ok"
            if self.state is BreakerState.HALF_OPEN:
                return "half-open"
            remaining = self._cooldown_remaining(self._clock())
        if remaining <= 0:
            return "half-open"
        return f"cooldown {math.ceil(remaining)}s"

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "consecutiveFailures": self.consecutive_failures,
                "openedAt": self.opened_at,
                "cooldownRemaining": round(self._cooldown_remaining(self._clock()), 1),
                "lastError": self.last_error,
            }
