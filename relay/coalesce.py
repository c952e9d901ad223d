"""Singleflight coordination for upstream cache-miss fetches."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from relay.errors import UpstreamError

logger = logging.getLogger(__name__)


class _InFlight:
    __slots__ = ("done", "value", "error")

    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None


class RequestCoalescer:
    """Only one caller runs ``fn`` for a given key at a time; concurrent callers
    wait and share its value or exception.

    Lookup and registration of the in-flight record happen under one lock, so
    two callers can never both see "nothing in flight" for the same key.
    """

    def __init__(self, wait_timeout: Optional[float] = None):
        self.wait_timeout = wait_timeout
        self._inflight: Dict[str, _InFlight] = {}
        self._lock = threading.Lock()
        self.metrics = {"owners": 0, "waits": 0, "failures": 0}

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._inflight

    def pending_count(self) -> int:
        with self._lock:
            return len(self._inflight)

    def stats_payload(self) -> dict:
        with self._lock:
            return {"inFlight": len(self._inflight), "metrics": dict(self.metrics)}

    def run(self, key: str, fn: Callable[[], Any]) -> Any:
        with self._lock:
            flight = self._inflight.get(key)
            owner = flight is None
            if owner:
                flight = _InFlight()
                self._inflight[key] = flight
                self.metrics["owners"] += 1
            else:
                self.metrics["waits"] += 1

        if owner:
            try:
                flight.value = fn()
                return flight.value
            except BaseException as e:
                flight.error = e
                with self._lock:
                    self.metrics["failures"] += 1
                raise
            finally:
                with self._lock:
                    self._inflight.pop(key, None)
                flight.done.set()

        logger.debug("Singleflight wait: %s", key)
        if not flight.done.wait(timeout=self.wait_timeout):
            raise UpstreamError(f"Timed out waiting for in-flight fetch of {key}")
        if flight.error is not None:
            raise flight.error
        return flight.value
