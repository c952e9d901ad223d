from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from relay.constants import (
    CLIMATE_CACHE_KEY,
    UCDP_CACHE_KEY,
    UNHCR_CACHE_KEY,
    WORLDPOP_COUNTRIES_CACHE_KEY,
    WORLDPOP_DEFAULT_RADIUS_KM,
    WORLDPOP_EXPOSURE_MAX_AGE_SECONDS,
)
from relay.response_headers import build_cache_headers
from relay.routers.common import ALL_METHODS, gate, outcome_response
from relay.services.app_state import CLIMATE, UCDP, UNHCR, WORLDPOP, AppState
from relay.services.climate import fetch_climate_anomalies
from relay.services.ucdp import fetch_ucdp_events
from relay.services.unhcr import fetch_unhcr_population
from relay.services.worldpop import build_countries_payload, compute_exposure


def _finite(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        x = float(raw)
    except ValueError:
        return None
    return x if math.isfinite(x) else None


def build_datasets_router(*, state: AppState):
    router = APIRouter()

    def ucdp_events(request: Request):
        cors, early = gate(request, state, UCDP)
        if early is not None:
            return early
        source = state.source(UCDP)
        outcome = source.get(UCDP_CACHE_KEY, lambda: fetch_ucdp_events(state.session))
        return outcome_response(source, outcome, cors, empty={"data": []})

    def climate_anomalies(request: Request):
        cors, early = gate(request, state, CLIMATE)
        if early is not None:
            return early
        source = state.source(CLIMATE)
        outcome = source.get(CLIMATE_CACHE_KEY, lambda: fetch_climate_anomalies(state.session))
        return outcome_response(source, outcome, cors, empty={"anomalies": []})

    def unhcr_population(request: Request):
        cors, early = gate(request, state, UNHCR)
        if early is not None:
            return early
        source = state.source(UNHCR)
        outcome = source.get(UNHCR_CACHE_KEY, lambda: fetch_unhcr_population(state.session))
        return outcome_response(source, outcome, cors, empty={"countries": [], "topFlows": []})

    def worldpop_exposure(request: Request):
        cors, early = gate(request, state, WORLDPOP)
        if early is not None:
            return early

        params = request.query_params
        if (params.get("mode") or "countries") == "exposure":
            lat = _finite(params.get("lat"))
            lon = _finite(params.get("lon"))
            if lat is None or lon is None:
                return JSONResponse({"error": "lat and lon required"}, status_code=400, headers=cors)
            radius = _finite(params.get("radius")) or WORLDPOP_DEFAULT_RADIUS_KM
            return JSONResponse(
                compute_exposure(lat, lon, radius),
                headers=build_cache_headers(max_age=WORLDPOP_EXPOSURE_MAX_AGE_SECONDS, cache=None, cors=cors),
            )

        source = state.source(WORLDPOP)
        outcome = source.get(WORLDPOP_COUNTRIES_CACHE_KEY, build_countries_payload)
        return outcome_response(source, outcome, cors, empty={"countries": []})

    router.add_api_route("/api/ucdp-events", ucdp_events, methods=ALL_METHODS)
    router.add_api_route("/api/climate-anomalies", climate_anomalies, methods=ALL_METHODS)
    router.add_api_route("/api/unhcr-population", unhcr_population, methods=ALL_METHODS)
    router.add_api_route("/api/worldpop-exposure", worldpop_exposure, methods=ALL_METHODS)
    return router
