"""UNHCR population statistics: displacement by origin, asylum and flow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import requests

from relay.constants import UNHCR_MAX_PAGES, UNHCR_PAGE_LIMIT, UNHCR_TOP_FLOWS, UNHCR_YEARS_BACK
from relay.errors import UpstreamError
from relay.reference_data import country_centroids
from relay.services.upstream import fetch_json, to_number, utc_now_iso

logger = logging.getLogger(__name__)

UNHCR_POPULATION_URL = "https://api.unhcr.org/population/v1/population/"


def fetch_year_items(
    fetch_page: Callable[[int], dict],
    *,
    limit: int = UNHCR_PAGE_LIMIT,
    max_pages: int = UNHCR_MAX_PAGES,
) -> Optional[list]:
    """Accumulate all items for one year, or None if the year is unavailable.

    Stops at the API's ``maxPages``, on an empty/short page, or at ``max_pages``.
    """
    items: list = []
    for page in range(1, max_pages + 1):
        try:
            data = fetch_page(page)
        except UpstreamError as e:
            logger.info("UNHCR page %d unavailable: %s", page, e)
            return None
        page_items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(page_items, list) or not page_items:
            break
        items.extend(page_items)

        try:
            api_max_pages = int(data.get("maxPages"))
        except (TypeError, ValueError):
            api_max_pages = 0
        if api_max_pages > 0:
            if page >= api_max_pages:
                break
            continue
        if len(page_items) < limit:
            break
    return items


def _blank(name: str) -> dict:
    return {"refugees": 0, "asylumSeekers": 0, "idps": 0, "stateless": 0, "name": name}


def aggregate_population(raw_items: list, centroids: Dict[str, tuple]) -> dict:
    by_origin: Dict[str, dict] = {}
    by_asylum: Dict[str, dict] = {}
    flows: Dict[str, dict] = {}
    totals = {"refugees": 0, "asylumSeekers": 0, "idps": 0, "stateless": 0}

    for item in raw_items:
        if not isinstance(item, dict):
            continue
        origin = item.get("coo_iso") or ""
        asylum = item.get("coa_iso") or ""
        refugees = int(to_number(item.get("refugees")))
        asylum_seekers = int(to_number(item.get("asylum_seekers")))
        idps = int(to_number(item.get("idps")))
        stateless = int(to_number(item.get("stateless")))

        totals["refugees"] += refugees
        totals["asylumSeekers"] += asylum_seekers
        totals["idps"] += idps
        totals["stateless"] += stateless

        if origin:
            row = by_origin.setdefault(origin, _blank(item.get("coo_name") or origin))
            row["refugees"] += refugees
            row["asylumSeekers"] += asylum_seekers
            row["idps"] += idps
            row["stateless"] += stateless

        if asylum:
            row = by_asylum.setdefault(asylum, _blank(item.get("coa_name") or asylum))
            row["refugees"] += refugees
            row["asylumSeekers"] += asylum_seekers

        if origin and asylum and refugees > 0:
            flow = flows.setdefault(f"{origin}->{asylum}", {
                "originCode": origin,
                "originName": item.get("coo_name") or origin,
                "asylumCode": asylum,
                "asylumName": item.get("coa_name") or asylum,
                "refugees": 0,
            })
            flow["refugees"] += refugees

    def _centroid(code: str) -> tuple:
        return centroids.get(code, (None, None))

    countries: Dict[str, dict] = {}
    for code, row in by_origin.items():
        lat, lon = _centroid(code)
        countries[code] = {
            "code": code,
            "name": row["name"],
            "refugees": row["refugees"],
            "asylumSeekers": row["asylumSeekers"],
            "idps": row["idps"],
            "stateless": row["stateless"],
            "totalDisplaced": row["refugees"] + row["asylumSeekers"] + row["idps"] + row["stateless"],
            "hostRefugees": 0,
            "hostAsylumSeekers": 0,
            "hostTotal": 0,
            "lat": lat,
            "lon": lon,
        }
    for code, row in by_asylum.items():
        host = {
            "hostRefugees": row["refugees"],
            "hostAsylumSeekers": row["asylumSeekers"],
            "hostTotal": row["refugees"] + row["asylumSeekers"],
        }
        if code in countries:
            countries[code].update(host)
            continue
        lat, lon = _centroid(code)
        countries[code] = {
            "code": code,
            "name": row["name"],
            "refugees": 0,
            "asylumSeekers": 0,
            "idps": 0,
            "stateless": 0,
            "totalDisplaced": 0,
            **host,
            "lat": lat,
            "lon": lon,
        }

    top_flows = []
    for f in sorted(flows.values(), key=lambda f: -f["refugees"])[:UNHCR_TOP_FLOWS]:
        o_lat, o_lon = _centroid(f["originCode"])
        a_lat, a_lon = _centroid(f["asylumCode"])
        top_flows.append({**f, "originLat": o_lat, "originLon": o_lon, "asylumLat": a_lat, "asylumLon": a_lon})

    return {
        "globalTotals": {**totals, "total": sum(totals.values())},
        "countries": sorted(
            countries.values(),
            key=lambda c: -max(c["totalDisplaced"] or 0, c["hostTotal"] or 0),
        ),
        "topFlows": top_flows,
    }


def fetch_unhcr_population(session: requests.Session, *, current_year: Optional[int] = None) -> dict:
    """Most recent year (current, then up to two back) that has any items."""
    current_year = current_year or datetime.now(timezone.utc).year
    years: List[int] = list(range(current_year, current_year - UNHCR_YEARS_BACK - 1, -1))

    for year in years:
        items = fetch_year_items(
            lambda page, year=year: fetch_json(
                session,
                UNHCR_POPULATION_URL,
                params={"year": year, "limit": UNHCR_PAGE_LIMIT, "page": page},
                label=f"UNHCR population ({year}, page {page})",
            )
        )
        if items:
            logger.info("UNHCR population %d: %d items", year, len(items))
            return {
                "success": True,
                "year": year,
                **aggregate_population(items, country_centroids()),
                "cached_at": utc_now_iso(),
            }
    raise UpstreamError(f"UNHCR returned no population data for years {years[-1]}-{years[0]}")
