"""Per-source payload decoders.

Each decoder returns ``Decoded`` with the trusted value or ``DecodeFailure``
with the reason it was rejected. Cache tiers and upstream payloads pass
through the same decoder before being served or stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

from relay.errors import ValidationError


@dataclass(frozen=True)
class Decoded:
    value: dict


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Union[Decoded, DecodeFailure]
Decoder = Callable[[Any], DecodeResult]


def _object_with_lists(data: Any, *fields: str) -> DecodeResult:
    if data is None:
        return DecodeFailure("empty payload")
    if not isinstance(data, dict):
        return DecodeFailure(f"expected object, got {type(data).__name__}")
    for name in fields:
        if name not in data:
            return DecodeFailure(f"missing field '{name}'")
        if not isinstance(data[name], list):
            return DecodeFailure(f"field '{name}' is {type(data[name]).__name__}, expected list")
    return Decoded(data)


def decode_ucdp_events(data: Any) -> DecodeResult:
    return _object_with_lists(data, "data")


def decode_climate_anomalies(data: Any) -> DecodeResult:
    return _object_with_lists(data, "anomalies")


def decode_unhcr_population(data: Any) -> DecodeResult:
    return _object_with_lists(data, "countries")


def decode_worldpop_countries(data: Any) -> DecodeResult:
    return _object_with_lists(data, "countries")


def decode_ais_snapshot(data: Any) -> DecodeResult:
    result = _object_with_lists(data, "disruptions", "density")
    if isinstance(result, DecodeFailure):
        return result
    if not isinstance(data.get("status"), dict):
        return DecodeFailure("missing 'status' object")
    return result


def decode_summary(data: Any) -> DecodeResult:
    if not isinstance(data, dict):
        return DecodeFailure("expected object")
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return DecodeFailure("missing summary text")
    return Decoded(data)


def require(result: DecodeResult, source: str) -> dict:
    """Unwrap a decode result, raising ValidationError on failure."""
    if isinstance(result, DecodeFailure):
        raise ValidationError(result.reason, source=source)
    return result.value
