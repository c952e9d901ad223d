"""UCDP GED conflict events: version discovery, trailing-window pagination, transform.

The GED API is versioned by release (``25.1``, ``24.1``...) and pages are
ordered oldest to newest, so the newest events live on the last page.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

import requests

from relay.constants import UCDP_MAX_PAGES, UCDP_PAGE_SIZE, UCDP_TRAILING_WINDOW_SECONDS
from relay.errors import UpstreamError
from relay.events import GeoEvent
from relay.services.upstream import fetch_json, parse_date_ts, utc_now_iso

logger = logging.getLogger(__name__)

UCDP_API_BASE = "https://ucdpapi.pcr.uu.se/api/gedevents"
FALLBACK_VERSIONS = ("25.1", "24.1")


def build_version_candidates(now: Optional[datetime] = None) -> List[str]:
    year = (now or datetime.now(timezone.utc)).year - 2000
    candidates: List[str] = []
    for v in (f"{year}.1", f"{year - 1}.1", *FALLBACK_VERSIONS):
        if v not in candidates:
            candidates.append(v)
    return candidates


def fetch_ged_page(session: requests.Session, version: str, page: int, *, base_url: str = UCDP_API_BASE) -> Any:
    return fetch_json(
        session,
        f"{base_url}/{version}",
        params={"pagesize": UCDP_PAGE_SIZE, "page": page},
        label=f"UCDP GED API ({version}, page {page})",
    )


def _page_events(raw: Any) -> list:
    if isinstance(raw, dict) and isinstance(raw.get("Result"), list):
        return raw["Result"]
    return []


def discover_ged_version(fetch_page: Callable[[str, int], Any], candidates: List[str]) -> Tuple[str, dict]:
    """Return the first version whose page 0 is well formed, with that page."""
    for version in candidates:
        try:
            page0 = fetch_page(version, 0)
        except UpstreamError as e:
            logger.info("UCDP version %s unavailable: %s", version, e)
            continue
        if isinstance(page0, dict) and isinstance(page0.get("Result"), list):
            return version, page0
        logger.info("UCDP version %s returned a malformed first page", version)
    raise UpstreamError("Unable to fetch UCDP GED metadata from known API versions")


def collect_trailing_window(
    fetch_page: Callable[[int], Any],
    page0: dict,
    *,
    max_pages: int = UCDP_MAX_PAGES,
    window_seconds: float = UCDP_TRAILING_WINDOW_SECONDS,
) -> Tuple[list, Optional[float], int]:
    """Walk pages newest -> oldest until the trailing window is covered.

    Stops once the oldest record on the current page predates
    ``latest - window_seconds``, and never fetches more than ``max_pages``.
    Returns (raw events, latest event timestamp, pages fetched).
    """
    try:
        total_pages = max(1, int(page0.get("TotalPages") or 1))
    except (TypeError, ValueError):
        total_pages = 1
    newest_page = total_pages - 1

    events: list = []
    latest_ts: Optional[float] = None
    pages = 0
    for offset in range(max_pages):
        page = newest_page - offset
        if page < 0:
            break
        raw = page0 if page == 0 else fetch_page(page)
        pages += 1
        page_events = _page_events(raw)
        events.extend(page_events)

        stamps = [ts for ts in (parse_date_ts(e.get("date_start")) for e in page_events if isinstance(e, dict)) if ts is not None]
        if not stamps:
            continue
        if latest_ts is None:
            latest_ts = max(stamps)
        if min(stamps) < latest_ts - window_seconds:
            break

    return events, latest_ts, pages


def transform_events(raw_events: list, latest_ts: Optional[float], window_seconds: float = UCDP_TRAILING_WINDOW_SECONDS) -> List[dict]:
    """Window filter, sanitise, and sort by date_start descending (stable)."""
    kept = []
    for e in raw_events:
        if not isinstance(e, dict):
            continue
        if latest_ts is not None:
            ts = parse_date_ts(e.get("date_start"))
            if ts is None or ts < latest_ts - window_seconds:
                continue
        kept.append(GeoEvent.from_ged(e))
    kept.sort(key=lambda ev: -(ev.start_ts or 0.0))
    return [ev.to_dict() for ev in kept]


def fetch_ucdp_events(
    session: requests.Session,
    *,
    candidates: Optional[List[str]] = None,
    base_url: str = UCDP_API_BASE,
) -> dict:
    """One full fetch cycle; raises UpstreamError if no version works."""
    version, page0 = discover_ged_version(
        lambda v, p: fetch_ged_page(session, v, p, base_url=base_url),
        candidates or build_version_candidates(),
    )
    raw_events, latest_ts, pages = collect_trailing_window(
        lambda p: fetch_ged_page(session, version, p, base_url=base_url),
        page0,
    )
    data = transform_events(raw_events, latest_ts)
    logger.info("UCDP GED %s: %d events from %d pages", version, len(data), pages)
    return {
        "success": True,
        "count": len(data),
        "data": data,
        "version": version,
        "cached_at": utc_now_iso(),
    }
