"""Shared pytest fixtures for relay tests."""

from __future__ import annotations

import json
import os
import tempfile
from unittest.mock import MagicMock

os.environ.setdefault("RELAY_LOG_DIR", os.path.join(tempfile.gettempdir(), "crisis-relay-test-logs"))

import pytest
import requests

from relay.durable_cache import DurableCache
from relay.services.app_state import AppState

RELAY_BASE = os.environ.get("RELAY_BASE", "http://127.0.0.1:8501")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstash(DurableCache):
    """DurableCache whose REST commands hit an in-memory dict."""

    def __init__(self):
        super().__init__("https://fake.upstash.io", "test-token")
        self.store = {}
        self.commands = []
        self.fail = False

    def _command(self, *args):
        self.commands.append(args)
        if self.fail:
            raise requests.ConnectionError("upstash down")
        op = args[0]
        if op == "GET":
            return self.store.get(args[1])
        if op == "SET":
            self.store[args[1]] = args[2]
            return "OK"
        raise AssertionError(f"unexpected command {args!r}")

    def put(self, key, value):
        self.store[key] = json.dumps(value)

    def drain(self):
        """Wait for pending background writes."""
        self.close(wait=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def durable():
    d = FakeUpstash()
    yield d
    d.close(wait=True)


@pytest.fixture
def state(clock, durable):
    return AppState(
        session=MagicMock(spec=requests.Session),
        durable=durable,
        clock=clock,
        ws_relay_url="wss://relay.example.com/",
        groq_api_key="gsk-test",
    )


@pytest.fixture
def client(state):
    from fastapi.testclient import TestClient

    from relay.app import create_app

    return TestClient(create_app(state))


def _reachable(url: str, timeout: float = 3.0) -> bool:
    try:
        r = requests.get(url + "/api/health", timeout=timeout)
        return r.status_code == 200
    except requests.RequestException:
        return False


@pytest.fixture(scope="session")
def relay_base():
    """URL of a running relay. Skip if not reachable."""
    if not _reachable(RELAY_BASE):
        pytest.skip(f"Relay not reachable at {RELAY_BASE}; set RELAY_BASE or start relay.app.")
    return RELAY_BASE
