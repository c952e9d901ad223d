"""Every third-party module imported by relay/ is a declared dependency."""

from __future__ import annotations

import ast
import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# import name -> distribution name where they differ
DIST_NAMES = {"yaml": "pyyaml"}


def _declared_dependencies():
    text = (ROOT / "pyproject.toml").read_text()
    block = re.search(r"^dependencies = \[(.*?)^\]", text, re.S | re.M).group(1)
    return {re.split(r"[<>=\[ ]", name, 1)[0].lower() for name in re.findall(r'"([^"]+)"', block)}


def _top_level_imports():
    found = set()
    for path in (ROOT / "relay").rglob("*.py"):
        for node in ast.walk(ast.parse(path.read_text())):
            if isinstance(node, ast.Import):
                found.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                found.add(node.module.split(".")[0])
    return found


def test_third_party_imports_are_declared():
    third_party = {
        name for name in _top_level_imports()
        if name not in sys.stdlib_module_names and name not in ("relay", "__future__")
    }
    missing = {DIST_NAMES.get(name, name) for name in third_party} - _declared_dependencies()
    assert not missing
