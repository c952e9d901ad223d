"""Request gating and outcome-to-response conversion shared by the endpoint routers."""

from __future__ import annotations

from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from relay.cached_source import ERROR, NO_RELAY_CONFIG, CachedSource, CacheOutcome
from relay.constants import RATE_LIMIT_RETRY_AFTER_SECONDS
from relay.cors import cors_headers, is_disallowed_origin
from relay.errors import RateLimitError, error_message
from relay.rate_limit import client_ip
from relay.response_headers import build_cache_headers, build_error_headers
from relay.services.app_state import AppState

# Registered on every route so the handler itself answers with a JSON 405.
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def gate(request: Request, state: AppState, endpoint: str, method: str = "GET") -> Tuple[dict, Optional[Response]]:
    """CORS preflight, method gate, origin check and rate limit.

    Returns the CORS headers for the response and, when the request must not
    proceed, the response to send instead. Raises RateLimitError when the
    client is over its budget.
    """
    cors = cors_headers(request.headers, f"{method}, OPTIONS", state.allowed_origins)
    disallowed = is_disallowed_origin(request.headers, state.allowed_origins)

    if request.method == "OPTIONS":
        return cors, Response(status_code=403 if disallowed else 204, headers=cors)
    if request.method != method:
        return cors, JSONResponse({"error": "Method not allowed"}, status_code=405, headers=cors)
    if disallowed:
        return cors, JSONResponse({"error": "Origin not allowed"}, status_code=403, headers=cors)

    limiter = state.limiter(endpoint)
    if limiter is not None:
        ip = client_ip(request.headers)
        if not limiter.check(ip):
            raise RateLimitError(ip, retry_after=RATE_LIMIT_RETRY_AFTER_SECONDS)
    return cors, None


def outcome_response(
    source: CachedSource,
    outcome: CacheOutcome,
    cors: dict,
    *,
    empty: Optional[dict] = None,
    error_prefix: str = "Fetch failed: ",
) -> JSONResponse:
    if outcome.ok:
        return JSONResponse(
            outcome.value,
            headers=build_cache_headers(max_age=source.browser_max_age(outcome), cache=outcome.status, cors=cors),
        )
    if outcome.status == NO_RELAY_CONFIG:
        return JSONResponse(
            {"error": error_message(outcome.error)},
            status_code=503,
            headers=build_error_headers(cors=cors, cache=NO_RELAY_CONFIG),
        )
    return JSONResponse(
        {"error": f"{error_prefix}{error_message(outcome.error)}", **(empty or {})},
        status_code=source.policy.error_status,
        headers=build_error_headers(cors=cors, cache=ERROR),
    )
