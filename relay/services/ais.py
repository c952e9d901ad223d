"""AIS maritime snapshot fetched over HTTP from the websocket relay host."""

from __future__ import annotations

from typing import Any, Optional

import requests

from relay.errors import ConfigurationError
from relay.services.upstream import fetch_json


def relay_base_url(raw: Optional[str]) -> str:
    """HTTP base for the relay given its ws:// or wss:// URL."""
    if not raw:
        raise ConfigurationError("AIS relay not configured")
    return raw.replace("wss://", "https://", 1).replace("ws://", "http://", 1).rstrip("/")


def fetch_ais_snapshot(session: requests.Session, base_url: str, include_candidates: bool) -> Any:
    return fetch_json(
        session,
        f"{base_url}/ais/snapshot",
        params={"candidates": "true" if include_candidates else "false"},
        label="AIS relay",
    )
