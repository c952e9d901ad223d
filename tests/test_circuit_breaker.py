"""Tests for relay/dashboard/circuit_breaker.py state transitions."""

from __future__ import annotations

import threading

from relay.dashboard.circuit_breaker import BreakerState, CircuitBreaker

from conftest import FakeClock

FALLBACK = {"success": False, "data": []}


def _boom():
    raise RuntimeError("upstream down")


def _tripped(clock, max_failures=2):
    b = CircuitBreaker("test", max_failures=max_failures, cooldown_seconds=300, clock=clock)
    for _ in range(max_failures):
        assert b.execute(_boom, FALLBACK) is FALLBACK
    return b


def test_success_passes_through():
    b = CircuitBreaker("test", clock=FakeClock())
    assert b.execute(lambda: {"ok": 1}, FALLBACK) == {"ok": 1}
    assert b.state is BreakerState.CLOSED
    assert b.status() == "ok"


def test_opens_after_consecutive_failures():
    clock = FakeClock()
    b = CircuitBreaker("test", max_failures=3, clock=clock)
    b.execute(_boom, FALLBACK)
    b.execute(_boom, FALLBACK)
    assert b.state is BreakerState.CLOSED
    b.execute(_boom, FALLBACK)
    assert b.state is BreakerState.OPEN
    assert b.opened_at == clock.now


def test_success_resets_failure_count():
    b = CircuitBreaker("test", max_failures=2, clock=FakeClock())
    b.execute(_boom, FALLBACK)
    b.execute(lambda: 1, FALLBACK)
    b.execute(_boom, FALLBACK)
    assert b.state is BreakerState.CLOSED


def test_open_never_invokes_fn():
    clock = FakeClock()
    b = _tripped(clock)
    calls = []
    clock.advance(299)
    assert b.execute(lambda: calls.append(1), FALLBACK) is FALLBACK
    assert calls == []
    assert b.status() == "cooldown 1s"


def test_trial_success_closes():
    clock = FakeClock()
    b = _tripped(clock)
    clock.advance(300)
    assert b.execute(lambda: "fresh", FALLBACK) == "fresh"
    assert b.state is BreakerState.CLOSED
    assert b.consecutive_failures == 0


def test_trial_failure_reopens_with_new_cooldown():
    clock = FakeClock()
    b = _tripped(clock)
    clock.advance(301)
    assert b.execute(_boom, FALLBACK) is FALLBACK
    assert b.state is BreakerState.OPEN
    assert b.opened_at == clock.now
    clock.advance(100)
    calls = []
    b.execute(lambda: calls.append(1), FALLBACK)
    assert calls == []


def test_half_open_allows_single_trial():
    clock = FakeClock()
    b = _tripped(clock)
    clock.advance(300)
    entered, release = threading.Event(), threading.Event()
    trial_result = []

    def trial():
        entered.set()
        release.wait(5)
        return "trial"

    t = threading.Thread(target=lambda: trial_result.append(b.execute(trial, FALLBACK)))
    t.start()
    assert entered.wait(5)
    calls = []
    assert b.execute(lambda: calls.append(1), FALLBACK) is FALLBACK
    assert b.status() == "half-open"
    release.set()
    t.join(5)
    assert calls == []
    assert trial_result == ["trial"]
    assert b.state is BreakerState.CLOSED


def test_snapshot_shape():
    clock = FakeClock()
    b = _tripped(clock)
    snap = b.snapshot()
    assert snap["name"] == "test"
    assert snap["state"] == "open"
    assert snap["consecutiveFailures"] == 2
    assert snap["cooldownRemaining"] == 300
    assert snap["lastError"] == "upstream down"
