"""Dashboard-side client for the relay endpoints.

Each dataset call goes through its own circuit breaker and degrades to an
empty payload of the right shape when the relay keeps failing.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from relay.constants import UPSTREAM_TIMEOUT_SECONDS, USER_AGENT
from relay.dashboard.circuit_breaker import CircuitBreaker
from relay.events import GeoEvent

logger = logging.getLogger(__name__)

EXPOSURE_BATCH_SIZE = 10

EVENT_TYPE_RADIUS_KM = {
    "conflict": 50,
    "battle": 50,
    "state-based": 50,
    "non-state": 50,
    "one-sided": 50,
    "earthquake": 100,
    "flood": 100,
    "fire": 30,
    "wildfire": 30,
}
DEFAULT_RADIUS_KM = 50


def radius_for_event_type(event_type: str) -> int:
    return EVENT_TYPE_RADIUS_KM.get(event_type, DEFAULT_RADIUS_KM)


class DashboardClient:
    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = UPSTREAM_TIMEOUT_SECONDS,
        breaker_factory=CircuitBreaker,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.breakers: Dict[str, CircuitBreaker] = {
            "ucdp": breaker_factory("UCDP Events"),
            "countries": breaker_factory("WorldPop Countries"),
        }

    def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        resp = self.session.get(
            f"{self.base_url}{path}",
            params=params,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise requests.HTTPError(f"HTTP {resp.status_code}", response=resp)
        return resp.json()

    def fetch_ucdp_events(self) -> dict:
        return self.breakers["ucdp"].execute(
            lambda: self._get_json("/api/ucdp-events"),
            {"success": False, "count": 0, "data": [], "cached_at": ""},
        )

    def ucdp_events(self) -> List[GeoEvent]:
        return [GeoEvent.from_payload(d) for d in self.fetch_ucdp_events().get("data") or []]

    def fetch_country_populations(self) -> List[dict]:
        result = self.breakers["countries"].execute(
            lambda: self._get_json("/api/worldpop-exposure", {"mode": "countries"}),
            {"success": False, "countries": []},
        )
        return result.get("countries") or []

    def fetch_exposure(self, lat: float, lon: float, radius_km: float) -> Optional[dict]:
        """Exposure around a point, or None on any failure."""
        try:
            return self._get_json(
                "/api/worldpop-exposure",
                {"mode": "exposure", "lat": lat, "lon": lon, "radius": radius_km},
            )
        except (requests.RequestException, ValueError) as e:
            logger.debug("Exposure lookup failed lat=%s lon=%s: %s", lat, lon, e)
            return None

    def _exposure_for(self, event: dict) -> Optional[dict]:
        radius = radius_for_event_type(event.get("type", ""))
        exposure = self.fetch_exposure(event["lat"], event["lon"], radius)
        if not exposure:
            return None
        return {
            "eventId": event.get("id"),
            "eventName": event.get("name"),
            "eventType": event.get("type"),
            "lat": event["lat"],
            "lon": event["lon"],
            "exposedPopulation": exposure.get("exposedPopulation", 0),
            "exposureRadiusKm": radius,
        }

    def enrich_events_with_exposure(self, events: List[dict]) -> List[dict]:
        """Exposure per event (``id``, ``name``, ``type``, ``lat``, ``lon``), largest first.

        Events are looked up in concurrent batches of ten; failed lookups are dropped.
        """
        results: List[dict] = []
        with ThreadPoolExecutor(max_workers=EXPOSURE_BATCH_SIZE) as executor:
            for i in range(0, len(events), EXPOSURE_BATCH_SIZE):
                batch = events[i:i + EXPOSURE_BATCH_SIZE]
                results.extend(r for r in executor.map(self._exposure_for, batch) if r)
        results.sort(key=lambda r: -r["exposedPopulation"])
        return results

    def breaker_status(self) -> Dict[str, dict]:
        return {name: b.snapshot() for name, b in self.breakers.items()}
