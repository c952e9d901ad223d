"""Conflict event record shared by the UCDP service and the dashboard helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

from relay.services.upstream import parse_date_ts, to_int, to_number, truncate

SIDE_MAX_LEN = 200
SOURCE_MAX_LEN = 300

VIOLENCE_TYPE_MAP = {
    1: "state-based",
    2: "non-state",
    3: "one-sided",
}
DEFAULT_VIOLENCE_TYPE = "state-based"


def violence_label(code: Any) -> str:
    try:
        return VIOLENCE_TYPE_MAP.get(int(code), DEFAULT_VIOLENCE_TYPE)
    except (TypeError, ValueError):
        return DEFAULT_VIOLENCE_TYPE


@dataclass(frozen=True)
class GeoEvent:
    id: str
    date_start: str
    date_end: str
    latitude: float
    longitude: float
    country: str
    side_a: str
    side_b: str
    deaths_best: int
    deaths_low: int
    deaths_high: int
    type_of_violence: str
    source_original: str = ""

    @classmethod
    def from_ged(cls, raw: Mapping[str, Any]) -> "GeoEvent":
        """Build from a raw UCDP GED API record (sanitised and coerced)."""
        return cls(
            id=str(raw.get("id") or ""),
            date_start=str(raw.get("date_start") or ""),
            date_end=str(raw.get("date_end") or ""),
            latitude=to_number(raw.get("latitude")),
            longitude=to_number(raw.get("longitude")),
            country=str(raw.get("country") or ""),
            side_a=truncate(raw.get("side_a"), SIDE_MAX_LEN),
            side_b=truncate(raw.get("side_b"), SIDE_MAX_LEN),
            deaths_best=to_int(raw.get("best")),
            deaths_low=to_int(raw.get("low")),
            deaths_high=to_int(raw.get("high")),
            type_of_violence=violence_label(raw.get("type_of_violence")),
            source_original=truncate(raw.get("source_original"), SOURCE_MAX_LEN),
        )

    @classmethod
    def from_payload(cls, d: Mapping[str, Any]) -> "GeoEvent":
        """Build from a relay response record (already sanitised)."""
        return cls(
            id=str(d.get("id") or ""),
            date_start=str(d.get("date_start") or ""),
            date_end=str(d.get("date_end") or ""),
            latitude=to_number(d.get("latitude")),
            longitude=to_number(d.get("longitude")),
            country=str(d.get("country") or ""),
            side_a=str(d.get("side_a") or ""),
            side_b=str(d.get("side_b") or ""),
            deaths_best=to_int(d.get("deaths_best")),
            deaths_low=to_int(d.get("deaths_low")),
            deaths_high=to_int(d.get("deaths_high")),
            type_of_violence=str(d.get("type_of_violence") or DEFAULT_VIOLENCE_TYPE),
            source_original=str(d.get("source_original") or ""),
        )

    @property
    def start_ts(self) -> Optional[float]:
        return parse_date_ts(self.date_start)

    def to_dict(self) -> dict:
        return asdict(self)
