"""Open-Meteo climate anomalies for monitored zones.

Compares the last 7 days against the preceding ~3 weeks of daily mean
temperature and precipitation per zone.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np
import requests

from relay.constants import CLIMATE_FETCH_WORKERS, CLIMATE_LOOKBACK_DAYS, CLIMATE_MIN_DAYS
from relay.errors import UpstreamError
from relay.reference_data import climate_zones
from relay.services.upstream import fetch_json, utc_now_iso

logger = logging.getLogger(__name__)

OPEN_METEO_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
RECENT_DAYS = 7


def classify_severity(temp_delta: float, precip_delta: float) -> str:
    abs_temp = abs(temp_delta)
    abs_precip = abs(precip_delta)
    if abs_temp >= 5 or abs_precip >= 80:
        return "extreme"
    if abs_temp >= 3 or abs_precip >= 40:
        return "moderate"
    return "normal"


def classify_type(temp_delta: float, precip_delta: float) -> str:
    abs_temp = abs(temp_delta)
    abs_precip = abs(precip_delta)
    if abs_temp >= abs_precip / 20:
        if temp_delta > 0 and precip_delta < -20:
            return "mixed"
        if temp_delta > 3:
            return "warm"
        if temp_delta < -3:
            return "cold"
    if precip_delta > 40:
        return "wet"
    if precip_delta < -40:
        return "dry"
    if temp_delta > 0:
        return "warm"
    return "cold"


def _mean(values: list) -> float:
    return float(np.mean(values)) if values else 0.0


def _round1(x: float) -> float:
    # half-up, matching what the dashboard displays
    return math.floor(x * 10 + 0.5) / 10


def compute_anomaly(zone: dict, daily: dict, period: str) -> Optional[dict]:
    temps = daily.get("temperature_2m_mean") or []
    precips = daily.get("precipitation_sum") or []
    if len(temps) < CLIMATE_MIN_DAYS:
        return None

    valid_temps = [float(t) for t in temps if t is not None]
    valid_precips = [float(p) for p in precips if p is not None]

    temp_delta = _mean(valid_temps[-RECENT_DAYS:]) - _mean(valid_temps[:-RECENT_DAYS])
    precip_delta = _mean(valid_precips[-RECENT_DAYS:]) - _mean(valid_precips[:-RECENT_DAYS])

    return {
        "zone": zone["name"],
        "lat": zone["lat"],
        "lon": zone["lon"],
        "tempDelta": _round1(temp_delta),
        "precipDelta": _round1(precip_delta),
        "severity": classify_severity(temp_delta, precip_delta),
        "type": classify_type(temp_delta, precip_delta),
        "period": period,
    }


def fetch_zone(session: requests.Session, zone: dict, start: str, end: str) -> Optional[dict]:
    """Anomaly for one zone, or None when the zone's data is unavailable."""
    try:
        data = fetch_json(
            session,
            OPEN_METEO_ARCHIVE_URL,
            params={
                "latitude": str(zone["lat"]),
                "longitude": str(zone["lon"]),
                "start_date": start,
                "end_date": end,
                "daily": "temperature_2m_mean,precipitation_sum",
                "timezone": "UTC",
            },
            label=f"Open-Meteo ({zone['name']})",
        )
    except UpstreamError as e:
        logger.debug("Climate zone %s skipped: %s", zone["name"], e)
        return None
    daily = data.get("daily") if isinstance(data, dict) else None
    if not isinstance(daily, dict):
        return None
    return compute_anomaly(zone, daily, f"{start} to {end}")


def fetch_climate_anomalies(
    session: requests.Session,
    *,
    zones: Optional[list] = None,
    now: Optional[datetime] = None,
    workers: int = CLIMATE_FETCH_WORKERS,
) -> dict:
    zones = zones if zones is not None else climate_zones()
    end_dt = now or datetime.now(timezone.utc)
    start = (end_dt - timedelta(days=CLIMATE_LOOKBACK_DAYS)).strftime("%Y-%m-%d")
    end = end_dt.strftime("%Y-%m-%d")

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        results = list(executor.map(lambda z: fetch_zone(session, z, start, end), zones))

    anomalies = [r for r in results if r is not None]
    if zones and not anomalies:
        raise UpstreamError(f"Open-Meteo returned no usable data for {len(zones)} zones")
    logger.info("Climate anomalies: %d/%d zones", len(anomalies), len(zones))
    return {
        "success": True,
        "anomalies": anomalies,
        "timestamp": utc_now_iso(),
    }
