"""Generic cached source: durable tier -> memory tier -> coalesced upstream fetch.

One ``CachedSource`` per data source, parameterised by its policy (TTLs,
status markers), its decoder and, per call, the cache key and fetch function.
Every pass ends in exactly one ``CacheOutcome`` whose ``status`` is the value
of the ``X-Cache`` response header.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from relay.coalesce import RequestCoalescer
from relay.constants import MEMORY_CACHE_MAX_ENTRIES, STALE_BROWSER_MAX_AGE_SECONDS
from relay.decoders import Decoded, Decoder, require
from relay.durable_cache import DurableCache
from relay.errors import ConfigurationError, error_message
from relay.memory_cache import MemoryCache
from relay.telemetry import CacheTelemetry

logger = logging.getLogger(__name__)

REDIS_HIT = "REDIS-HIT"
MEMORY_HIT = "MEMORY-HIT"
MISS = "MISS"
STALE = "STALE"
MEMORY_ERROR_FALLBACK = "MEMORY-ERROR-FALLBACK"
NO_RELAY_CONFIG = "NO-RELAY-CONFIG"
ERROR = "ERROR"


@dataclass(frozen=True)
class SourcePolicy:
    endpoint: str
    ttl_seconds: int
    browser_max_age: int
    memory_max_age_seconds: float
    memory_max_entries: int = MEMORY_CACHE_MAX_ENTRIES
    stale_status: str = STALE
    stale_browser_max_age: int = STALE_BROWSER_MAX_AGE_SECONDS
    error_status: int = 500


@dataclass
class CacheOutcome:
    status: str
    value: Optional[dict] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @property
    def is_stale(self) -> bool:
        return self.status in (STALE, MEMORY_ERROR_FALLBACK)


class CachedSource:
    def __init__(
        self,
        policy: SourcePolicy,
        decoder: Decoder,
        *,
        durable: DurableCache,
        telemetry: CacheTelemetry,
        coalescer: Optional[RequestCoalescer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.policy = policy
        self.decoder = decoder
        self.durable = durable
        self.telemetry = telemetry
        self.coalescer = coalescer or RequestCoalescer()
        self.memory = MemoryCache(
            ttl_seconds=policy.ttl_seconds,
            max_entries=policy.memory_max_entries,
            max_age_seconds=policy.memory_max_age_seconds,
            clock=clock,
        )

    def browser_max_age(self, outcome: CacheOutcome) -> int:
        if outcome.status == STALE:
            return self.policy.stale_browser_max_age
        return self.policy.browser_max_age

    def _decode(self, data: Any, key: str, tier: str) -> Optional[dict]:
        result = self.decoder(data)
        if isinstance(result, Decoded):
            return result.value
        logger.warning("Discarding invalid %s value key=%s: %s", tier, key, result.reason)
        return None

    def _finish(self, outcome: CacheOutcome) -> CacheOutcome:
        detail = error_message(outcome.error) if outcome.error is not None else None
        self.telemetry.record(self.policy.endpoint, outcome.status, detail)
        return outcome

    def _fetch_and_store(self, key: str, fetch: Callable[[], Any]) -> dict:
        value = require(self.decoder(fetch()), self.policy.endpoint)
        self.memory.set(key, value)
        self.durable.set_json_background(key, value, self.policy.ttl_seconds)
        return value

    def get(self, key: str, fetch: Callable[[], Any]) -> CacheOutcome:
        cached = self.durable.get_json(key)
        if cached is not None:
            value = self._decode(cached, key, "durable")
            if value is not None:
                # durable copies may be up to a full TTL old
                self.memory.set(key, value, age=self.policy.ttl_seconds)
                return self._finish(CacheOutcome(REDIS_HIT, value))

        cached = self.memory.get(key)
        if cached is not None:
            value = self._decode(cached, key, "memory")
            if value is not None:
                return self._finish(CacheOutcome(MEMORY_HIT, value))
            self.memory.delete(key)

        try:
            value = self.coalescer.run(key, lambda: self._fetch_and_store(key, fetch))
        except ConfigurationError as e:
            return self._finish(CacheOutcome(NO_RELAY_CONFIG, error=e))
        except Exception as e:
            logger.warning("Upstream fetch failed endpoint=%s key=%s: %s", self.policy.endpoint, key, e)
            stale = self.memory.get_stale(key)
            if stale is not None:
                value = self._decode(stale, key, "stale memory")
                if value is not None:
                    return self._finish(CacheOutcome(self.policy.stale_status, value, error=e))
            return self._finish(CacheOutcome(ERROR, error=e))

        return self._finish(CacheOutcome(MISS, value))

    def stats_payload(self) -> dict:
        return {
            "endpoint": self.policy.endpoint,
            "ttlSeconds": self.policy.ttl_seconds,
            "memory": self.memory.stats_payload(),
        }
