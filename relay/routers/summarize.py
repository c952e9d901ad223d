from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from relay.cached_source import MISS, NO_RELAY_CONFIG
from relay.errors import error_message
from relay.response_headers import build_cache_headers, build_error_headers
from relay.routers.common import ALL_METHODS, gate
from relay.services.app_state import SUMMARIZE, AppState
from relay.services.summarize import DEFAULT_MODE, summarize_headlines, summary_cache_key


def build_summarize_router(*, state: AppState):
    router = APIRouter()

    async def groq_summarize(request: Request):
        cors, early = gate(request, state, SUMMARIZE, method="POST")
        if early is not None:
            return early

        if not state.groq_api_key:
            state.telemetry.record(SUMMARIZE, NO_RELAY_CONFIG, "GROQ_API_KEY unset")
            return JSONResponse(
                {"error": "Groq API key not configured", "fallback": True},
                status_code=503,
                headers=build_error_headers(cors=cors, cache=NO_RELAY_CONFIG),
            )

        try:
            body = await request.json()
        except ValueError:
            body = None
        headlines = body.get("headlines") if isinstance(body, dict) else None
        if not isinstance(headlines, list) or not headlines:
            return JSONResponse({"error": "Headlines array required"}, status_code=400, headers=cors)
        headlines = [str(h) for h in headlines]
        mode = str(body.get("mode") or DEFAULT_MODE)

        source = state.source(SUMMARIZE)
        outcome = await run_in_threadpool(
            source.get,
            summary_cache_key(headlines, mode),
            lambda: summarize_headlines(state.session, state.groq_api_key, headlines, mode),
        )

        if not outcome.ok:
            status = getattr(outcome.error, "status", None) or 500
            return JSONResponse(
                {"error": error_message(outcome.error), "fallback": True},
                status_code=status,
                headers=build_error_headers(cors=cors, cache=outcome.status),
            )

        fresh = outcome.status == MISS
        payload = {
            "summary": outcome.value["summary"],
            "model": outcome.value.get("model"),
            "provider": "groq" if fresh else "cache",
            "cached": not fresh,
        }
        if fresh:
            payload["tokens"] = outcome.value.get("tokens", 0)
        return JSONResponse(
            payload,
            headers=build_cache_headers(max_age=source.browser_max_age(outcome), cache=outcome.status, cors=cors),
        )

    router.add_api_route("/api/groq-summarize", groq_summarize, methods=ALL_METHODS)
    return router
