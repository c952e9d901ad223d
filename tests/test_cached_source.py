"""Tests for relay/cached_source.py and relay/decoders.py."""

from __future__ import annotations

import pytest

from relay import decoders
from relay.cached_source import (
    ERROR,
    MEMORY_ERROR_FALLBACK,
    MEMORY_HIT,
    MISS,
    NO_RELAY_CONFIG,
    REDIS_HIT,
    STALE,
    CachedSource,
    SourcePolicy,
)
from relay.errors import ConfigurationError, UpstreamError, ValidationError
from relay.telemetry import CacheTelemetry

GOOD = {"success": True, "data": [{"id": "1"}]}


def _source(durable, clock, **policy_kw):
    policy = SourcePolicy(
        endpoint="/api/test",
        ttl_seconds=policy_kw.pop("ttl_seconds", 60),
        browser_max_age=3600,
        memory_max_age_seconds=policy_kw.pop("memory_max_age_seconds", 600),
        **policy_kw,
    )
    return CachedSource(policy, decoders.decode_ucdp_events, durable=durable, telemetry=CacheTelemetry(), clock=clock)


def _fail():
    raise UpstreamError("HTTP 503", status=503)


# --- decoders ----------------------------------------------------------------

@pytest.mark.parametrize("data, ok", [
    ({"data": []}, True),
    ({"data": {}}, False),
    ({}, False),
    (None, False),
    ([], False),
])
def test_decode_ucdp_events(data, ok):
    assert isinstance(decoders.decode_ucdp_events(data), decoders.Decoded) is ok


def test_decode_ais_snapshot_requires_status_object():
    assert isinstance(decoders.decode_ais_snapshot({"status": {}, "disruptions": [], "density": []}), decoders.Decoded)
    bad = decoders.decode_ais_snapshot({"status": "up", "disruptions": [], "density": []})
    assert isinstance(bad, decoders.DecodeFailure)
    assert "status" in bad.reason


def test_decode_summary():
    assert isinstance(decoders.decode_summary({"summary": "x"}), decoders.Decoded)
    assert isinstance(decoders.decode_summary({"summary": " "}), decoders.DecodeFailure)


def test_require_raises_validation_error():
    with pytest.raises(ValidationError) as exc:
        decoders.require(decoders.DecodeFailure("missing field 'data'"), "/api/test")
    assert exc.value.source == "/api/test"


# --- read order and fallback chain -------------------------------------------

def test_cold_key_is_miss_and_populates_both_tiers(durable, clock):
    src = _source(durable, clock)
    out = src.get("k", lambda: GOOD)
    assert out.status == MISS
    assert out.value == GOOD
    durable.drain()
    assert "k" in durable.store
    assert ("SET", "k", durable.store["k"], "EX", 60) in durable.commands
    assert "k" in src.memory


def test_durable_hit_refreshes_memory(durable, clock):
    durable.put("k", GOOD)
    src = _source(durable, clock)
    out = src.get("k", _fail)
    assert out.status == REDIS_HIT
    assert src.memory.get("k") == GOOD


def test_stale_age_after_durable_hit_counts_from_durable_ttl(durable, clock):
    # ttl 60, max age 600: a durable copy is treated as already 60s old
    durable.put("k", GOOD)
    src = _source(durable, clock)
    assert src.get("k", _fail).status == REDIS_HIT
    durable.store.clear()

    clock.advance(530)
    assert src.get("k", _fail).status == STALE

    clock.advance(20)
    out = src.get("k", _fail)
    assert out.status == ERROR
    assert out.value is None


def test_memory_hit_when_durable_unavailable(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    durable.fail = True
    out = src.get("k", _fail)
    assert out.status == MEMORY_HIT
    assert out.value == GOOD


def test_invalid_durable_value_treated_as_absent(durable, clock):
    durable.put("k", {"data": "not a list"})
    src = _source(durable, clock)
    out = src.get("k", lambda: GOOD)
    assert out.status == MISS


def test_stale_on_upstream_error(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    durable.drain()
    durable.store.clear()
    clock.advance(120)
    out = src.get("k", _fail)
    assert out.status == STALE
    assert out.value == GOOD
    assert out.is_stale
    assert src.browser_max_age(out) == 600


def test_invalid_upstream_payload_falls_back_to_stale(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    durable.drain()
    durable.store.clear()
    clock.advance(120)
    out = src.get("k", lambda: {"data": None})
    assert out.status == STALE
    assert isinstance(out.error, ValidationError)


def test_custom_stale_marker(durable, clock):
    src = _source(durable, clock, stale_status=MEMORY_ERROR_FALLBACK)
    src.get("k", lambda: GOOD)
    durable.drain()
    durable.store.clear()
    clock.advance(120)
    out = src.get("k", _fail)
    assert out.status == MEMORY_ERROR_FALLBACK
    assert src.browser_max_age(out) == 3600


def test_error_when_stale_copy_too_old(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    durable.drain()
    durable.store.clear()
    clock.advance(601)
    out = src.get("k", _fail)
    assert out.status == ERROR
    assert out.value is None
    assert isinstance(out.error, UpstreamError)


def test_configuration_error_never_falls_back(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    durable.drain()
    durable.store.clear()
    clock.advance(120)

    def unconfigured():
        raise ConfigurationError("AIS relay not configured")

    out = src.get("k", unconfigured)
    assert out.status == NO_RELAY_CONFIG
    assert out.value is None


def test_every_outcome_reaches_telemetry(durable, clock):
    src = _source(durable, clock)
    src.get("k", lambda: GOOD)
    src.get("k", _fail)
    src.get("other", _fail)
    t = src.telemetry
    assert t.count("/api/test", MISS) == 1
    assert t.count("/api/test", MEMORY_HIT) + t.count("/api/test", REDIS_HIT) == 1
    assert t.count("/api/test", ERROR) == 1
    assert t.payload()["totals"][ERROR] == 1
