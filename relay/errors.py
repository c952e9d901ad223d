"""Error taxonomy for the relay data-access layer.

``ConfigurationError`` is fatal for the request and never retried.
``ValidationError`` and ``UpstreamError`` feed the stale-fallback chain and
only surface as 5xx when no cached copy exists. ``RateLimitError`` is a
policy decision rather than a failure.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigurationError(RelayError):
    """Required upstream connection config is missing."""


class ValidationError(RelayError):
    """A payload from a cache tier or upstream failed its decoder."""

    def __init__(self, reason: str, *, source: Optional[str] = None):
        self.reason = reason
        self.source = source
        msg = f"{source}: {reason}" if source else reason
        super().__init__(msg)


class UpstreamError(RelayError):
    """Non-2xx answer or network failure from a third-party API."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class RateLimitError(RelayError):
    """Client exceeded its request budget for the current window."""

    def __init__(self, key: str, retry_after: int = 60):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"rate limited: {key}")


def error_message(exc: BaseException | None) -> str:
    if exc is None:
        return "unknown error"
    return str(exc) or exc.__class__.__name__
