"""Shared upstream HTTP and record-coercion helpers for source fetchers."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from relay.constants import UPSTREAM_TIMEOUT_SECONDS, USER_AGENT
from relay.errors import UpstreamError

logger = logging.getLogger(__name__)


def fetch_json(
    session: requests.Session,
    url: str,
    *,
    params: Optional[dict] = None,
    timeout: float = UPSTREAM_TIMEOUT_SECONDS,
    label: str = "upstream",
) -> Any:
    """GET *url* and return its JSON body; any failure becomes UpstreamError."""
    try:
        resp = session.get(
            url,
            params=params,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise UpstreamError(f"{label} request failed: {e}") from e
    if resp.status_code != 200:
        raise UpstreamError(f"{label} HTTP {resp.status_code}", status=resp.status_code)
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError(f"{label} returned invalid JSON") from e


def to_number(value: Any) -> float:
    """Numeric coercion with a zero default for missing/unparseable values."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def to_int(value: Any) -> int:
    return int(to_number(value))


def truncate(value: Any, limit: int) -> str:
    if value is None:
        return ""
    return str(value)[:limit]


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO date/datetime string as UTC; None if absent or malformed."""
    if not value:
        return None
    text = str(value).strip().replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_date_ts(value: Any) -> Optional[float]:
    dt = parse_date(value)
    return dt.timestamp() if dt is not None else None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
