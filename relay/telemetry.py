"""Cache-status telemetry: per-endpoint X-Cache counters and a recent window."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Dict

logger = logging.getLogger(__name__)

CACHE_STATUSES = (
    "REDIS-HIT",
    "MEMORY-HIT",
    "MISS",
    "STALE",
    "MEMORY-ERROR-FALLBACK",
    "NO-RELAY-CONFIG",
    "ERROR",
)


class CacheTelemetry:
    def __init__(self, recent_max: int = 400):
        self._lock = threading.Lock()
        self.by_endpoint: Dict[str, Dict[str, int]] = {}
        self.recent = deque(maxlen=recent_max)  # [{'endpoint':..., 'status':..., 'ts':...}, ...]

    def record(self, endpoint: str, status: str, detail: str | None = None) -> None:
        if status not in CACHE_STATUSES:
            logger.warning("Unknown cache status %s for %s", status, endpoint)
        with self._lock:
            row = self.by_endpoint.setdefault(endpoint, {})
            row[status] = row.get(status, 0) + 1
            self.recent.append({"endpoint": endpoint, "status": status, "ts": time.time()})
        if status in ("ERROR", "NO-RELAY-CONFIG"):
            logger.error("cache=%s endpoint=%s %s", status, endpoint, detail or "")
        elif status in ("STALE", "MEMORY-ERROR-FALLBACK"):
            logger.warning("cache=%s endpoint=%s %s", status, endpoint, detail or "")
        else:
            logger.debug("cache=%s endpoint=%s", status, endpoint)

    def count(self, endpoint: str, status: str) -> int:
        return self.by_endpoint.get(endpoint, {}).get(status, 0)

    def payload(self) -> dict:
        with self._lock:
            endpoints = {k: dict(v) for k, v in self.by_endpoint.items()}
            recent = list(self.recent)[-50:]
        totals: Dict[str, int] = {}
        for row in endpoints.values():
            for status, n in row.items():
                totals[status] = totals.get(status, 0) + n
        served = sum(totals.values())
        hits = totals.get("REDIS-HIT", 0) + totals.get("MEMORY-HIT", 0)
        return {
            "endpoints": endpoints,
            "totals": totals,
            "hitRate": (hits / served) if served else None,
            "recent": recent,
        }
