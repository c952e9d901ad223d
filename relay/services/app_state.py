from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import requests

from relay import constants as C
from relay import decoders
from relay.cached_source import MEMORY_ERROR_FALLBACK, CachedSource, SourcePolicy
from relay.coalesce import RequestCoalescer
from relay.durable_cache import DurableCache
from relay.rate_limit import IpRateLimiter
from relay.telemetry import CacheTelemetry

UCDP = "/api/ucdp-events"
CLIMATE = "/api/climate-anomalies"
UNHCR = "/api/unhcr-population"
WORLDPOP = "/api/worldpop-exposure"
AIS = "/api/ais-snapshot"
SUMMARIZE = "/api/groq-summarize"

SOURCE_POLICIES: Dict[str, Tuple[SourcePolicy, decoders.Decoder]] = {
    UCDP: (
        SourcePolicy(UCDP, C.UCDP_CACHE_TTL_SECONDS, 3600, C.UCDP_STALE_MAX_AGE_SECONDS),
        decoders.decode_ucdp_events,
    ),
    CLIMATE: (
        SourcePolicy(CLIMATE, C.CLIMATE_CACHE_TTL_SECONDS, 3600, C.CLIMATE_STALE_MAX_AGE_SECONDS),
        decoders.decode_climate_anomalies,
    ),
    UNHCR: (
        SourcePolicy(UNHCR, C.UNHCR_CACHE_TTL_SECONDS, 3600, C.UNHCR_STALE_MAX_AGE_SECONDS),
        decoders.decode_unhcr_population,
    ),
    WORLDPOP: (
        SourcePolicy(WORLDPOP, C.WORLDPOP_COUNTRIES_TTL_SECONDS, 86400, C.WORLDPOP_COUNTRIES_TTL_SECONDS),
        decoders.decode_worldpop_countries,
    ),
    AIS: (
        SourcePolicy(
            AIS,
            C.AIS_CACHE_TTL_SECONDS,
            C.AIS_CACHE_TTL_SECONDS,
            C.MEMORY_FALLBACK_MAX_AGE_SECONDS,
            stale_status=MEMORY_ERROR_FALLBACK,
            error_status=502,
        ),
        decoders.decode_ais_snapshot,
    ),
    SUMMARIZE: (
        SourcePolicy(
            SUMMARIZE,
            C.GROQ_CACHE_TTL_SECONDS,
            C.GROQ_BROWSER_MAX_AGE_SECONDS,
            C.GROQ_CACHE_TTL_SECONDS,
            memory_max_entries=256,
        ),
        decoders.decode_summary,
    ),
}

RATE_LIMITS: Dict[str, int] = {
    UCDP: C.UCDP_RATE_LIMIT,
    CLIMATE: C.CLIMATE_RATE_LIMIT,
    UNHCR: C.UNHCR_RATE_LIMIT,
    WORLDPOP: C.WORLDPOP_RATE_LIMIT,
}


@dataclass
class AppState:
    session: requests.Session
    durable: DurableCache
    telemetry: CacheTelemetry = field(default_factory=CacheTelemetry)
    coalescer: RequestCoalescer = field(default_factory=RequestCoalescer)
    clock: Callable[[], float] = time.time

    # upstream config
    ws_relay_url: str = ""
    groq_api_key: str = ""
    allowed_origins: Tuple[str, ...] = C.ALLOWED_ORIGIN_PATTERNS

    sources: Dict[str, CachedSource] = field(default_factory=dict)
    limiters: Dict[str, IpRateLimiter] = field(default_factory=dict)
    api_error_counters: Dict[str, int] = field(default_factory=lambda: {"4xx": 0, "5xx": 0})

    def __post_init__(self) -> None:
        for endpoint, (policy, decoder) in SOURCE_POLICIES.items():
            self.sources.setdefault(endpoint, CachedSource(
                policy,
                decoder,
                durable=self.durable,
                telemetry=self.telemetry,
                coalescer=self.coalescer,
                clock=self.clock,
            ))
        for endpoint, limit in RATE_LIMITS.items():
            self.limiters.setdefault(endpoint, IpRateLimiter(
                limit=limit,
                window_seconds=C.RATE_LIMIT_WINDOW_SECONDS,
                max_entries=C.RATE_LIMIT_MAX_ENTRIES,
                clock=self.clock,
            ))

    @classmethod
    def from_env(cls, *, session: Optional[requests.Session] = None) -> "AppState":
        session = session or requests.Session()
        return cls(
            session=session,
            durable=DurableCache(C.UPSTASH_REDIS_REST_URL, C.UPSTASH_REDIS_REST_TOKEN, session=session),
            ws_relay_url=C.WS_RELAY_URL,
            groq_api_key=C.GROQ_API_KEY,
        )

    def source(self, endpoint: str) -> CachedSource:
        return self.sources[endpoint]

    def limiter(self, endpoint: str) -> Optional[IpRateLimiter]:
        return self.limiters.get(endpoint)

    def close(self) -> None:
        self.durable.close()
        self.session.close()
