"""Tests for relay/services/ucdp.py: version discovery, pagination, transform."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from relay.errors import UpstreamError
from relay.services import ucdp


def _event(date, **kw):
    ev = {
        "id": kw.pop("id", date),
        "date_start": date,
        "date_end": date,
        "latitude": "33.5",
        "longitude": "36.3",
        "country": "Syria",
        "side_a": "Government of Syria",
        "side_b": "IS",
        "best": "3",
        "low": "2",
        "high": "5",
        "type_of_violence": "1",
        "source_original": "Reuters",
    }
    ev.update(kw)
    return ev


def _page(dates, total_pages):
    return {"Result": [_event(d) for d in dates], "TotalPages": total_pages}


def test_version_candidates_deduplicated_in_order():
    assert ucdp.build_version_candidates(datetime(2026, 3, 1, tzinfo=timezone.utc)) == ["26.1", "25.1", "24.1"]
    assert ucdp.build_version_candidates(datetime(2025, 3, 1, tzinfo=timezone.utc)) == ["25.1", "24.1"]


def test_discover_skips_failing_and_malformed_versions():
    def fetch_page(version, page):
        if version == "26.1":
            raise UpstreamError("HTTP 404", status=404)
        if version == "25.1":
            return {"Result": "nope"}
        return {"Result": [], "TotalPages": 1}

    version, page0 = ucdp.discover_ged_version(fetch_page, ["26.1", "25.1", "24.1"])
    assert version == "24.1"
    assert page0["TotalPages"] == 1


def test_discover_no_working_version_is_hard_failure():
    def fetch_page(version, page):
        raise UpstreamError("down")

    with pytest.raises(UpstreamError):
        ucdp.discover_ged_version(fetch_page, ["25.1", "24.1"])


def test_collect_stops_once_page_predates_window():
    pages = {
        9: _page(["2025-06-01", "2025-06-30"], 10),
        8: _page(["2025-01-01", "2025-05-31"], 10),
        7: _page(["2024-05-01", "2024-12-31"], 10),
        6: _page(["2023-01-01"], 10),
    }
    fetched = []

    def fetch_page(p):
        fetched.append(p)
        return pages[p]

    events, latest_ts, n = ucdp.collect_trailing_window(fetch_page, {"Result": [], "TotalPages": 10})
    assert fetched == [9, 8, 7]
    assert n == 3
    assert latest_ts == datetime(2025, 6, 30, tzinfo=timezone.utc).timestamp()
    assert len(events) == 6


def test_collect_never_exceeds_page_cap():
    fetched = []

    def fetch_page(p):
        fetched.append(p)
        return _page(["2025-06-01"], 100)

    _, _, n = ucdp.collect_trailing_window(fetch_page, {"Result": [], "TotalPages": 100}, max_pages=12)
    assert n == 12
    assert fetched == list(range(99, 87, -1))


def test_collect_reuses_page0_for_single_page_dataset():
    page0 = _page(["2025-01-01"], 1)
    fetch_page = MagicMock()
    events, _, n = ucdp.collect_trailing_window(fetch_page, page0)
    fetch_page.assert_not_called()
    assert n == 1
    assert len(events) == 1


def test_transform_filters_window_and_sorts_desc():
    latest = datetime(2025, 6, 30, tzinfo=timezone.utc).timestamp()
    raw = [
        _event("2025-01-01", id="mid"),
        _event("2023-01-01", id="old"),
        _event("2025-06-30", id="new", side_a="x" * 500, type_of_violence="7"),
    ]
    out = ucdp.transform_events(raw, latest)
    assert [e["id"] for e in out] == ["new", "mid"]
    assert len(out[0]["side_a"]) == 200
    assert out[0]["type_of_violence"] == "state-based"
    assert out[1]["deaths_best"] == 3
    assert out[1]["latitude"] == 33.5


def test_transform_unparseable_dates_sort_last_without_window():
    out = ucdp.transform_events([_event("garbage", id="bad"), _event("2025-01-01", id="ok")], None)
    assert [e["id"] for e in out] == ["ok", "bad"]


def test_fetch_ucdp_events_end_to_end(monkeypatch):
    responses = {
        ("25.1", 0): {"Result": [], "TotalPages": 2},
        ("25.1", 1): _page(["2025-05-01", "2025-05-02"], 2),
    }

    def fake_fetch(session, version, page, *, base_url):
        if (version, page) not in responses:
            raise UpstreamError("missing")
        return responses[(version, page)]

    monkeypatch.setattr(ucdp, "fetch_ged_page", fake_fetch)
    result = ucdp.fetch_ucdp_events(MagicMock(), candidates=["26.1", "25.1"])
    assert result["success"] is True
    assert result["version"] == "25.1"
    assert result["count"] == 2
    assert result["data"][0]["date_start"] == "2025-05-02"
