"""WorldPop-style population density for priority countries and point exposure."""

from __future__ import annotations

import math
from typing import Optional

from relay.constants import WORLDPOP_DEFAULT_RADIUS_KM
from relay.reference_data import priority_countries
from relay.services.upstream import utc_now_iso

FALLBACK_COUNTRY = {"pop": 50_000_000, "area": 500_000}


def _js_round(x: float) -> int:
    return int(math.floor(x + 0.5))


def build_countries_payload(countries: Optional[dict] = None) -> dict:
    countries = countries if countries is not None else priority_countries()
    return {
        "success": True,
        "countries": [
            {
                "code": code,
                "name": info["name"],
                "population": info["pop"],
                "densityPerKm2": _js_round(info["pop"] / info["area"]),
            }
            for code, info in countries.items()
        ],
        "cached_at": utc_now_iso(),
    }


def nearest_country(lat: float, lon: float, countries: Optional[dict] = None) -> Optional[str]:
    """Closest priority-country centroid by plain degree distance."""
    countries = countries if countries is not None else priority_countries()
    best, best_dist = None, math.inf
    for code, info in countries.items():
        dist = math.hypot(lat - info["lat"], lon - info["lon"])
        if dist < best_dist:
            best, best_dist = code, dist
    return best


def compute_exposure(
    lat: float,
    lon: float,
    radius_km: float = WORLDPOP_DEFAULT_RADIUS_KM,
    countries: Optional[dict] = None,
) -> dict:
    countries = countries if countries is not None else priority_countries()
    code = nearest_country(lat, lon, countries)
    info = countries.get(code) if code else None
    info = info or FALLBACK_COUNTRY
    density = info["pop"] / info["area"]
    return {
        "success": True,
        "exposedPopulation": _js_round(density * math.pi * radius_km * radius_km),
        "exposureRadiusKm": radius_km,
        "nearestCountry": code,
        "densityPerKm2": _js_round(density),
    }
