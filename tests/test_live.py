"""Checks against a running relay.

Marks: integration (requires live relay).
Run:   RELAY_BASE=http://myserver:8501 pytest tests/test_live.py -v
"""

from __future__ import annotations

import pytest
import requests

pytestmark = pytest.mark.integration


def test_health(relay_base):
    r = requests.get(f"{relay_base}/api/health", timeout=10)
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers.get("X-Request-Id")


def test_worldpop_countries_carry_cache_header(relay_base):
    r = requests.get(f"{relay_base}/api/worldpop-exposure", timeout=30)
    assert r.status_code == 200
    assert r.headers["X-Cache"] in ("MISS", "MEMORY-HIT", "REDIS-HIT")


def test_method_gate(relay_base):
    r = requests.delete(f"{relay_base}/api/ucdp-events", timeout=10)
    assert r.status_code == 405
