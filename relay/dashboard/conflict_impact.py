"""Per-country correlation of conflict, displacement, climate and exposure data."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from relay.events import VIOLENCE_TYPE_MAP, GeoEvent


@dataclass
class ConflictImpactLink:
    country: str
    conflict_events: int
    total_deaths: int
    displacement_outflow: int
    climate_anomaly: Optional[dict]
    population_exposed: int
    combined_severity: int

    def to_dict(self) -> dict:
        d = asdict(self)
        return {
            "country": d["country"],
            "conflictEvents": d["conflict_events"],
            "totalDeaths": d["total_deaths"],
            "displacementOutflow": d["displacement_outflow"],
            "climateAnomaly": d["climate_anomaly"],
            "populationExposed": d["population_exposed"],
            "combinedSeverity": d["combined_severity"],
        }


def group_by_country(events: Iterable[GeoEvent]) -> Dict[str, List[GeoEvent]]:
    groups: Dict[str, List[GeoEvent]] = {}
    for e in events:
        groups.setdefault(e.country or "Unknown", []).append(e)
    return groups


def group_by_type(events: Sequence[GeoEvent]) -> Dict[str, List[GeoEvent]]:
    return {label: [e for e in events if e.type_of_violence == label] for label in VIOLENCE_TYPE_MAP.values()}


def _tiered(value: float, high: float, high_score: int, low: float, low_score: int) -> int:
    if value > high:
        return high_score
    if value > low:
        return low_score
    return 0


def _matching_anomaly(country: str, anomalies: Sequence[dict]) -> Optional[dict]:
    c = country.lower()
    for a in anomalies:
        zone = str(a.get("zone") or "").lower()
        if zone and (zone in c or c in zone):
            return a
    return None


def correlate_conflict_impact(
    events: Sequence[GeoEvent],
    displacement: Sequence[dict],
    anomalies: Sequence[dict],
    exposures: Sequence[dict],
) -> List[ConflictImpactLink]:
    """Score each country with events; highest combined severity first.

    Conflict contributes up to 40 points, displacement 30, climate 20 and
    exposed population 10.
    """
    by_country: Dict[str, List[int]] = {}
    for e in events:
        row = by_country.setdefault(e.country, [0, 0])
        row[0] += 1
        row[1] += e.deaths_best

    displacement_by_key: Dict[str, dict] = {}
    for d in displacement:
        displacement_by_key[d.get("name")] = d
        displacement_by_key[d.get("code")] = d

    exposed_by_name: Dict[str, int] = {}
    for x in exposures:
        name = x.get("eventName")
        exposed_by_name[name] = exposed_by_name.get(name, 0) + int(x.get("exposedPopulation") or 0)

    links = []
    for country, (n_events, deaths) in by_country.items():
        d = displacement_by_key.get(country)
        outflow = int((d.get("refugees") or 0) + (d.get("asylumSeekers") or 0)) if d else 0
        anomaly = _matching_anomaly(country, anomalies)
        exposed = exposed_by_name.get(country, 0)

        conflict_score = min(40.0, n_events * 2 + math.sqrt(max(deaths, 0)) * 3)
        displacement_score = _tiered(outflow, 1_000_000, 30, 100_000, 15)
        severity = (anomaly or {}).get("severity")
        climate_score = 20 if severity == "extreme" else 10 if severity == "moderate" else 0
        pop_score = _tiered(exposed, 1_000_000, 10, 100_000, 5)

        links.append(ConflictImpactLink(
            country=country,
            conflict_events=n_events,
            total_deaths=deaths,
            displacement_outflow=outflow,
            climate_anomaly=anomaly,
            population_exposed=exposed,
            combined_severity=int(math.floor(conflict_score + displacement_score + climate_score + pop_score + 0.5)),
        ))

    links.sort(key=lambda link: -link.combined_severity)
    return links
