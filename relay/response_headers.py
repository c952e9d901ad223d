"""Shared HTTP response header builders for relay endpoints."""

from __future__ import annotations


def _merge_expose(headers: dict, names: list[str]) -> None:
    expose = [x.strip() for x in headers.get("Access-Control-Expose-Headers", "").split(",") if x.strip()]
    for k in names:
        if k not in expose:
            expose.append(k)
    headers["Access-Control-Expose-Headers"] = ", ".join(expose)


def build_cache_headers(*, max_age: int, cache: str | None, cors: dict | None = None, extra: dict | None = None) -> dict:
    headers = dict(cors or {})
    headers["Cache-Control"] = f"public, max-age={int(max_age)}"
    if cache is not None:
        headers["X-Cache"] = cache
        _merge_expose(headers, ["X-Cache"])
    if extra:
        headers.update(extra)
        _merge_expose(headers, [k for k in extra.keys() if k not in ("Cache-Control", "Retry-After")])
    return headers


def build_error_headers(*, cors: dict | None = None, cache: str | None = None, retry_after: int | None = None) -> dict:
    headers = dict(cors or {})
    if cache is not None:
        headers["X-Cache"] = cache
        _merge_expose(headers, ["X-Cache"])
    if retry_after is not None:
        headers["Retry-After"] = str(int(retry_after))
    return headers
