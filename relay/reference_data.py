"""Loader for the static reference tables in reference_data.yaml."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

import yaml

REFERENCE_DATA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "reference_data.yaml")


@lru_cache(maxsize=1)
def load_reference_data(path: str = REFERENCE_DATA_PATH) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    for section in ("climate_zones", "country_centroids", "priority_countries", "summary_prompts"):
        if section not in data:
            raise ValueError(f"reference data missing section '{section}': {path}")
    return data


def climate_zones() -> list[dict]:
    return list(load_reference_data()["climate_zones"])


def country_centroids() -> Dict[str, tuple[float, float]]:
    return {code: (float(c[0]), float(c[1])) for code, c in load_reference_data()["country_centroids"].items()}


def priority_countries() -> Dict[str, dict]:
    return dict(load_reference_data()["priority_countries"])


def summary_prompt(mode: str) -> dict:
    prompts = load_reference_data()["summary_prompts"]
    return prompts.get(mode) or prompts["default"]
