"""Tests for relay/coalesce.py: one upstream call per key under concurrency."""

from __future__ import annotations

import threading
import time

import pytest

from relay.coalesce import RequestCoalescer
from relay.errors import UpstreamError


def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _run_concurrently(coalescer, key, fn, n_waiters=4):
    results, errors = [], []

    def call():
        try:
            results.append(coalescer.run(key, fn))
        except Exception as e:
            errors.append(e)

    owner = threading.Thread(target=call)
    owner.start()
    return owner, [threading.Thread(target=call) for _ in range(n_waiters)], results, errors


def test_concurrent_callers_share_one_fetch():
    coalescer = RequestCoalescer()
    started, release = threading.Event(), threading.Event()
    calls = []

    def fetch():
        calls.append(1)
        started.set()
        release.wait(5)
        return {"value": 42}

    owner, waiters, results, errors = _run_concurrently(coalescer, "k", fetch)
    assert started.wait(5)
    for t in waiters:
        t.start()
    assert _wait_for(lambda: coalescer.metrics["waits"] == 4)
    release.set()
    for t in [owner, *waiters]:
        t.join(5)

    assert len(calls) == 1
    assert errors == []
    assert results == [{"value": 42}] * 5
    assert coalescer.pending_count() == 0


def test_failure_is_shared_and_entry_removed():
    coalescer = RequestCoalescer()
    started, release = threading.Event(), threading.Event()
    calls = []

    def fetch():
        calls.append(1)
        started.set()
        release.wait(5)
        raise UpstreamError("boom", status=502)

    owner, waiters, results, errors = _run_concurrently(coalescer, "k", fetch, n_waiters=2)
    assert started.wait(5)
    for t in waiters:
        t.start()
    assert _wait_for(lambda: coalescer.metrics["waits"] == 2)
    release.set()
    for t in [owner, *waiters]:
        t.join(5)

    assert len(calls) == 1
    assert results == []
    assert len(errors) == 3
    assert all(isinstance(e, UpstreamError) for e in errors)
    assert not coalescer.in_flight("k")


def test_sequential_calls_fetch_again():
    coalescer = RequestCoalescer()
    calls = []

    def fetch():
        calls.append(1)
        return len(calls)

    assert coalescer.run("k", fetch) == 1
    assert coalescer.run("k", fetch) == 2
    assert coalescer.pending_count() == 0


def test_distinct_keys_do_not_coalesce():
    coalescer = RequestCoalescer()
    assert coalescer.run("a", lambda: "A") == "A"
    assert coalescer.run("b", lambda: "B") == "B"
    assert coalescer.metrics["owners"] == 2


def test_waiter_timeout_raises_upstream_error():
    coalescer = RequestCoalescer(wait_timeout=0.05)
    started, release = threading.Event(), threading.Event()

    def slow():
        started.set()
        release.wait(5)
        return 1

    owner = threading.Thread(target=lambda: coalescer.run("k", slow))
    owner.start()
    assert started.wait(5)
    try:
        with pytest.raises(UpstreamError):
            coalescer.run("k", lambda: 2)
    finally:
        release.set()
        owner.join(5)
    assert coalescer.pending_count() == 0


def test_failure_counter_is_exact_across_threads():
    coalescer = RequestCoalescer()

    def fail():
        raise UpstreamError("HTTP 503", status=503)

    def worker(n):
        for i in range(50):
            with pytest.raises(UpstreamError):
                coalescer.run(f"{n}-{i}", fail)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    stats = coalescer.stats_payload()
    assert stats["metrics"]["failures"] == 400
    assert stats["metrics"]["owners"] == 400
    assert stats["inFlight"] == 0
