"""Durable cache tier backed by Upstash Redis over its REST API.

This is the tier of record shared by every relay instance. Redis enforces the
TTL (``SET ... EX``). Reads and writes never raise: an unconfigured or
unreachable tier behaves like a permanent miss, and failures are logged.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

import requests

from relay.constants import (
    DURABLE_TIMEOUT_SECONDS,
    DURABLE_WRITE_WORKERS,
    UPSTASH_REDIS_REST_TOKEN,
    UPSTASH_REDIS_REST_URL,
)

logger = logging.getLogger(__name__)


class DurableCache:
    def __init__(
        self,
        url: str = UPSTASH_REDIS_REST_URL,
        token: str = UPSTASH_REDIS_REST_TOKEN,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DURABLE_TIMEOUT_SECONDS,
        write_workers: int = DURABLE_WRITE_WORKERS,
    ):
        self.url = (url or "").rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self._session = session
        self._write_workers = max(1, int(write_workers))
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self.metrics = {"reads": 0, "hits": 0, "writes": 0, "errors": 0}
        self._metrics_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.url and self.token)

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _count(self, name: str) -> None:
        # background writers update these too
        with self._metrics_lock:
            self.metrics[name] += 1

    def _command(self, *args: Any) -> Any:
        resp = self._get_session().post(
            self.url,
            json=[str(a) for a in args],
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        if isinstance(body, dict) and body.get("error"):
            raise RuntimeError(f"Upstash error: {body['error']}")
        return body.get("result") if isinstance(body, dict) else None

    def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded JSON stored at *key*, or None on miss/failure."""
        if not self.configured:
            return None
        self._count("reads")
        try:
            raw = self._command("GET", key)
        except Exception as e:
            self._count("errors")
            logger.warning("Durable cache read failed key=%s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            value = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError:
            self._count("errors")
            logger.warning("Durable cache value is not JSON key=%s", key)
            return None
        self._count("hits")
        return value

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store *value* with a TTL. Returns False (after logging) on failure."""
        if not self.configured:
            return False
        try:
            payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            self._command("SET", key, payload, "EX", int(ttl_seconds))
        except Exception as e:
            self._count("errors")
            logger.warning("Durable cache write failed key=%s: %s", key, e)
            return False
        self._count("writes")
        return True

    def set_json_background(self, key: str, value: Any, ttl_seconds: int) -> Optional[Future]:
        """Fire-and-forget write; the response path never waits on it."""
        if not self.configured:
            return None
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._write_workers, thread_name_prefix="durable-write"
                )
            executor = self._executor
        future = executor.submit(self.set_json, key, value, ttl_seconds)
        future.add_done_callback(_log_write_failure)
        return future

    def close(self, wait: bool = False) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def stats_payload(self) -> dict:
        with self._metrics_lock:
            metrics = dict(self.metrics)
        return {"configured": self.configured, "metrics": metrics}


def _log_write_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background durable write crashed: %s", exc)
