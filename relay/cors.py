"""Origin allowlist and CORS header helpers for relay endpoints."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Mapping, Optional

from relay.constants import ALLOWED_ORIGIN_PATTERNS


@lru_cache(maxsize=8)
def _compile(patterns: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p) for p in patterns)


def is_allowed_origin(origin: Optional[str], patterns: Iterable[str] = ALLOWED_ORIGIN_PATTERNS) -> bool:
    if not origin:
        return False
    return any(rx.match(origin) for rx in _compile(tuple(patterns)))


def is_disallowed_origin(headers: Mapping[str, str], patterns: Iterable[str] = ALLOWED_ORIGIN_PATTERNS) -> bool:
    """Requests without an Origin header (server-to-server, curl) are not browser requests and pass."""
    origin = headers.get("origin")
    if not origin:
        return False
    return not is_allowed_origin(origin, patterns)


def cors_headers(headers: Mapping[str, str], methods: str, patterns: Iterable[str] = ALLOWED_ORIGIN_PATTERNS) -> dict:
    origin = headers.get("origin") or ""
    out = {
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
        "Vary": "Origin",
    }
    if is_allowed_origin(origin, patterns):
        out["Access-Control-Allow-Origin"] = origin
    return out
