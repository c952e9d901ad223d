from __future__ import annotations

from fastapi import APIRouter

from relay.services.app_state import AppState


def build_admin_router(*, state: AppState):
    router = APIRouter()

    @router.get("/api/health")
    def health():
        return {
            "status": "ok",
            "durableConfigured": state.durable.configured,
            "aisRelayConfigured": bool(state.ws_relay_url),
            "summarizeConfigured": bool(state.groq_api_key),
        }

    @router.get("/api/cache_stats")
    def api_cache_stats():
        return {
            "telemetry": state.telemetry.payload(),
            "sources": {name: src.stats_payload() for name, src in state.sources.items()},
            "coalescer": state.coalescer.stats_payload(),
            "durable": state.durable.stats_payload(),
            "rateLimits": {name: lim.stats_payload() for name, lim in state.limiters.items()},
            "apiErrors": dict(state.api_error_counters),
        }

    return router
