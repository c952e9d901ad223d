from __future__ import annotations

from fastapi import APIRouter, Request

from relay.constants import AIS_CACHE_VERSION
from relay.routers.common import ALL_METHODS, gate, outcome_response
from relay.services.ais import fetch_ais_snapshot, relay_base_url
from relay.services.app_state import AIS, AppState


def ais_cache_key(include_candidates: bool) -> str:
    return f"ais-snapshot:{AIS_CACHE_VERSION}:{'full' if include_candidates else 'lite'}"


def build_ais_router(*, state: AppState):
    router = APIRouter()

    def ais_snapshot(request: Request):
        cors, early = gate(request, state, AIS)
        if early is not None:
            return early

        include_candidates = request.query_params.get("candidates") == "true"

        def fetch():
            return fetch_ais_snapshot(state.session, relay_base_url(state.ws_relay_url), include_candidates)

        source = state.source(AIS)
        outcome = source.get(ais_cache_key(include_candidates), fetch)
        return outcome_response(source, outcome, cors, error_prefix="")

    router.add_api_route("/api/ais-snapshot", ais_snapshot, methods=ALL_METHODS)
    return router
