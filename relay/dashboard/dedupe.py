"""Spatiotemporal deduplication of UCDP events against a secondary feed (ACLED).

A primary event is a duplicate when some secondary event lies within
``max_days`` and ``max_distance_km`` of it and their death counts agree:
both zero, or both positive with ratio inside ``ratio_bounds``.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from relay.events import GeoEvent
from relay.services.upstream import parse_date_ts, to_number

EARTH_RADIUS_KM = 6371.0
SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class SecondaryEvent:
    latitude: float
    longitude: float
    event_date: str
    fatalities: int = 0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "SecondaryEvent":
        """ACLED exports carry numbers as strings."""
        return cls(
            latitude=to_number(raw.get("latitude")),
            longitude=to_number(raw.get("longitude")),
            event_date=str(raw.get("event_date") or ""),
            fatalities=int(to_number(raw.get("fatalities"))),
        )


def haversine_km(lat1, lon1, lat2, lon2):
    """Great-circle distance; accepts scalars or numpy arrays."""
    lat1, lon1, lat2, lon2 = (np.radians(x) for x in (lat1, lon1, lat2, lon2))
    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


class _SecondaryIndex:
    """Secondary events sorted by date, with coordinate/death columns as arrays."""

    def __init__(self, events: Iterable[SecondaryEvent]):
        dated = sorted(
            ((ts, e) for e in events for ts in (parse_date_ts(e.event_date),) if ts is not None),
            key=lambda pair: pair[0],
        )
        self.ts: List[float] = [ts for ts, _ in dated]
        self.lat = np.array([e.latitude for _, e in dated], dtype=float)
        self.lon = np.array([e.longitude for _, e in dated], dtype=float)
        self.deaths = np.array([e.fatalities for _, e in dated], dtype=float)

    def window(self, ts: float, max_seconds: float) -> Tuple[int, int]:
        return bisect_left(self.ts, ts - max_seconds), bisect_right(self.ts, ts + max_seconds)


def _is_duplicate(
    event: GeoEvent,
    index: _SecondaryIndex,
    max_seconds: float,
    max_distance_km: float,
    ratio_bounds: Tuple[float, float],
) -> bool:
    ts = event.start_ts
    if ts is None:
        return False
    lo, hi = index.window(ts, max_seconds)
    if lo >= hi:
        return False

    dist = haversine_km(event.latitude, event.longitude, index.lat[lo:hi], index.lon[lo:hi])
    near = dist <= max_distance_km
    if not near.any():
        return False

    theirs = index.deaths[lo:hi]
    ours = float(event.deaths_best)
    if ours == 0:
        agree = theirs == 0
    else:
        ratio = np.divide(ours, theirs, out=np.full_like(theirs, np.inf), where=theirs > 0)
        agree = (theirs > 0) & (ratio >= ratio_bounds[0]) & (ratio <= ratio_bounds[1])
    return bool((near & agree).any())


def deduplicate_against_secondary(
    primary: Sequence[GeoEvent],
    secondary: Iterable[Any],
    max_days: float = 7,
    max_distance_km: float = 50,
    ratio_bounds: Tuple[float, float] = (0.5, 2.0),
) -> List[GeoEvent]:
    """Primary events with no matching secondary event, order preserved.

    ``secondary`` may hold ``SecondaryEvent`` objects or raw ACLED mappings.
    Events whose date cannot be parsed never match.
    """
    candidates = [e if isinstance(e, SecondaryEvent) else SecondaryEvent.from_raw(e) for e in secondary]
    if not candidates:
        return list(primary)

    index = _SecondaryIndex(candidates)
    max_seconds = max_days * SECONDS_PER_DAY
    return [e for e in primary if not _is_duplicate(e, index, max_seconds, max_distance_km, ratio_bounds)]
