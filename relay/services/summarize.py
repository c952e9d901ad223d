"""Headline summarization through Groq's OpenAI-compatible chat API."""

from __future__ import annotations

import hashlib
import logging
import time
from typing import List, Optional

import requests

from relay.constants import GROQ_API_URL, GROQ_MAX_HEADLINES, GROQ_MODEL, UPSTREAM_TIMEOUT_SECONDS
from relay.errors import ConfigurationError, UpstreamError
from relay.reference_data import summary_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODE = "brief"


def summary_cache_key(headlines: List[str], mode: str) -> str:
    """Same first-N headline set and mode share a key regardless of order."""
    joined = "|".join(sorted(str(h) for h in headlines[:GROQ_MAX_HEADLINES]))
    digest = hashlib.sha1(f"{mode}:{joined}".encode("utf-8")).hexdigest()[:16]
    return f"summary:{digest}"


def build_messages(headlines: List[str], mode: str) -> list:
    numbered = "\n".join(f"{i}. {h}" for i, h in enumerate(headlines[:GROQ_MAX_HEADLINES], start=1))
    prompt = summary_prompt(mode)
    return [
        {"role": "system", "content": prompt["system"]},
        {"role": "user", "content": prompt["user"].format(headlines=numbered)},
    ]


def summarize_headlines(
    session: requests.Session,
    api_key: Optional[str],
    headlines: List[str],
    mode: str = DEFAULT_MODE,
    *,
    url: str = GROQ_API_URL,
    timeout: float = UPSTREAM_TIMEOUT_SECONDS,
) -> dict:
    if not api_key:
        raise ConfigurationError("Groq API key not configured")

    try:
        resp = session.post(
            url,
            json={
                "model": GROQ_MODEL,
                "messages": build_messages(headlines, mode),
                "temperature": 0.3,
                "max_tokens": 200,
                "top_p": 0.9,
            },
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise UpstreamError(f"Groq request failed: {e}") from e

    if resp.status_code != 200:
        logger.error("Groq API error %s: %s", resp.status_code, resp.text[:500])
        if resp.status_code == 429:
            raise UpstreamError("Rate limited", status=429)
        raise UpstreamError("Groq API error", status=resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamError("Groq returned invalid JSON") from e

    try:
        summary = (data["choices"][0]["message"]["content"] or "").strip()
    except (KeyError, IndexError, TypeError):
        summary = ""
    if not summary:
        raise UpstreamError("Empty response")

    usage = data.get("usage") or {}
    return {
        "summary": summary,
        "model": GROQ_MODEL,
        "timestamp": int(time.time() * 1000),
        "tokens": usage.get("total_tokens") or 0,
    }
