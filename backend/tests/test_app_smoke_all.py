from __future__ import annotations

import ast
from pathlib import Path

import pytest

BACKEND_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = BACKEND_DIR / "safewalk"
SCRIPTS_DIR = BACKEND_DIR / "scripts"

EXPECTED_PACKAGE_FILES = {
    "__init__.py",
    "advice.py",
    "danger_zones.py",
    "geo.py",
    "graph_assets.py",
    "logging_utils.py",
    "main.py",
    "metrics_store.py",
    "models.py",
    "route_cache.py",
    "route_engine.py",
    "route_stats.py",
    "routing_errors.py",
    "routing_graph.py",
    "safety_rules.py",
    "settings.py",
    "shortest_path.py",
}

EXPECTED_SCRIPT_FILES = {"route_cli.py", "validate_graph_asset.py"}


def _py_files(directory: Path) -> list[Path]:
    return sorted(path for path in directory.glob("*.py") if path.is_file())


def test_package_inventory_is_complete() -> None:
    assert {path.name for path in _py_files(PACKAGE_DIR)} == EXPECTED_PACKAGE_FILES
    assert {path.name for path in _py_files(SCRIPTS_DIR)} == EXPECTED_SCRIPT_FILES
    assert (PACKAGE_DIR / "assets" / "popayan_centro.json").is_file()


@pytest.mark.parametrize("module_path", _py_files(PACKAGE_DIR) + _py_files(SCRIPTS_DIR), ids=lambda p: p.name)
def test_module_parses(module_path: Path) -> None:
    source = module_path.read_text(encoding="utf-8")
    ast.parse(source, filename=str(module_path))
