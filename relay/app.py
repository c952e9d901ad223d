#!/usr/bin/env python3
"""Crisis relay FastAPI app: cached, rate-limited proxy for crisis datasets."""

import os
import time
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from relay.cors import cors_headers
from relay.errors import RateLimitError
from relay.logging_config import setup_logging
from relay.response_headers import build_error_headers
from relay.routers.admin import build_admin_router
from relay.routers.ais import build_ais_router
from relay.routers.datasets import build_datasets_router
from relay.routers.summarize import build_summarize_router
from relay.services.app_state import AppState

logger = setup_logging("relay")


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]


def create_app(state: Optional[AppState] = None) -> FastAPI:
    state = state or AppState.from_env()
    app = FastAPI(title="Crisis Relay API")
    app.state.relay = state
    api_error_counters = state.api_error_counters

    @app.exception_handler(RateLimitError)
    async def rate_limit_handler(request: Request, exc: RateLimitError):
        rid = _request_id(request)
        logger.info("Rate limited ip=%s path=%s rid=%s", exc.key, request.url.path, rid)
        cors = cors_headers(request.headers, f"{request.method}, OPTIONS", state.allowed_origins)
        headers = build_error_headers(cors=cors, retry_after=exc.retry_after)
        headers["X-Request-Id"] = rid
        return JSONResponse(status_code=429, content={"error": "Rate limited"}, headers=headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        rid = _request_id(request)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "requestId": rid}, headers={"X-Request-Id": rid})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("Unhandled error rid=%s: %s", rid, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "requestId": rid}, headers={"X-Request-Id": rid})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log API requests with method, path, and response time."""
        start_time = time.time()
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-Id"] = request_id

        if 400 <= response.status_code < 500:
            api_error_counters["4xx"] += 1
        elif response.status_code >= 500:
            api_error_counters["5xx"] += 1

        # health probes are noise unless they fail
        if request.url.path != "/api/health" or response.status_code >= 400:
            logger.info(
                "%s %s - %d - %.2fms - rid=%s",
                request.method, request.url.path, response.status_code, duration_ms, request_id,
            )
        return response

    @app.on_event("startup")
    async def startup_event():
        logger.info("Crisis relay starting")
        logger.info("Durable cache configured: %s", state.durable.configured)
        logger.info("AIS relay configured: %s", bool(state.ws_relay_url))

    @app.on_event("shutdown")
    async def shutdown_event():
        state.close()

    app.include_router(build_datasets_router(state=state))
    app.include_router(build_ais_router(state=state))
    app.include_router(build_summarize_router(state=state))
    app.include_router(build_admin_router(state=state))
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("RELAY_PORT", "8501")))
