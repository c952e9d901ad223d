"""Shared constants and environment-driven config for the relay.

Keep cache keys, TTLs and per-endpoint limits in one place.
"""

from __future__ import annotations
import os

# Durable tier (Upstash Redis REST)
UPSTASH_REDIS_REST_URL: str = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN: str = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
DURABLE_TIMEOUT_SECONDS: float = float(os.environ.get("RELAY_DURABLE_TIMEOUT_SECONDS", "2.0"))
DURABLE_WRITE_WORKERS: int = int(os.environ.get("RELAY_DURABLE_WRITE_WORKERS", "2"))

# Upstream HTTP
UPSTREAM_TIMEOUT_SECONDS: float = float(os.environ.get("RELAY_UPSTREAM_TIMEOUT_SECONDS", "20"))
USER_AGENT: str = "crisis-relay/0.4"

# Origins allowed to call the relay from a browser (comma-separated regexes)
DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    r"^https://(.*\.)?worldmonitor\.app$",
    r"^https://[a-z0-9-]+\.vercel\.app$",
    r"^https?://localhost(:\d+)?$",
    r"^https?://127\.0\.0\.1(:\d+)?$",
)
ALLOWED_ORIGIN_PATTERNS: tuple[str, ...] = tuple(
    p.strip() for p in os.environ.get("RELAY_ALLOWED_ORIGINS", "").split(",") if p.strip()
) or DEFAULT_ALLOWED_ORIGINS

# Rate limiting (fixed window per client IP)
RATE_LIMIT_WINDOW_SECONDS: float = 60.0
RATE_LIMIT_MAX_ENTRIES: int = int(os.environ.get("RELAY_RATE_LIMIT_MAX_ENTRIES", "5000"))
RATE_LIMIT_RETRY_AFTER_SECONDS: int = 60

# In-process tier defaults
MEMORY_CACHE_MAX_ENTRIES: int = 8
MEMORY_FALLBACK_MAX_AGE_SECONDS: float = 60.0

# UCDP GED conflict events
UCDP_CACHE_KEY = "ucdp:gedevents:v2"
UCDP_CACHE_TTL_SECONDS = 6 * 60 * 60
UCDP_STALE_MAX_AGE_SECONDS = 48 * 60 * 60
UCDP_PAGE_SIZE = 1000
UCDP_MAX_PAGES = 12
UCDP_TRAILING_WINDOW_SECONDS = 365 * 24 * 60 * 60
UCDP_RATE_LIMIT = 15

# Open-Meteo climate anomalies
CLIMATE_CACHE_KEY = "climate:anomalies:v1"
CLIMATE_CACHE_TTL_SECONDS = 6 * 60 * 60
CLIMATE_STALE_MAX_AGE_SECONDS = 48 * 60 * 60
CLIMATE_LOOKBACK_DAYS = 30
CLIMATE_MIN_DAYS = 14
CLIMATE_FETCH_WORKERS = 5
CLIMATE_RATE_LIMIT = 15

# UNHCR displacement
UNHCR_CACHE_KEY = "unhcr:population:v2"
UNHCR_CACHE_TTL_SECONDS = 24 * 60 * 60
UNHCR_STALE_MAX_AGE_SECONDS = 7 * 24 * 60 * 60
UNHCR_PAGE_LIMIT = 10000
UNHCR_MAX_PAGES = 25
UNHCR_YEARS_BACK = 2
UNHCR_TOP_FLOWS = 50
UNHCR_RATE_LIMIT = 20

# WorldPop exposure
WORLDPOP_COUNTRIES_CACHE_KEY = "worldpop:countries:v1"
WORLDPOP_COUNTRIES_TTL_SECONDS = 7 * 24 * 60 * 60
WORLDPOP_EXPOSURE_MAX_AGE_SECONDS = 60 * 60
WORLDPOP_DEFAULT_RADIUS_KM = 50.0
WORLDPOP_RATE_LIMIT = 30

# AIS snapshot relay
WS_RELAY_URL: str = os.environ.get("WS_RELAY_URL", "")
AIS_CACHE_VERSION = "v1"
AIS_CACHE_TTL_SECONDS = 8

# Groq headline summarization
GROQ_API_KEY: str = os.environ.get("GROQ_API_KEY", "")
GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
GROQ_MODEL = "llama-3.1-8b-instant"
GROQ_CACHE_TTL_SECONDS = 24 * 60 * 60
GROQ_BROWSER_MAX_AGE_SECONDS = 1800
GROQ_MAX_HEADLINES = 8

# Stale responses are served with a short browser max-age
STALE_BROWSER_MAX_AGE_SECONDS = 600
