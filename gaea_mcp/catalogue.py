"""Catalogue helpers for Gaea node types.

Provides lazy loading of the reference JSON so the graph tools and the
validator can look up a node's ``$type`` and default ports without
duplicating IO logic.
"""

from __future__ import annotations

import difflib
import json
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

CATALOGUE_VERSION = os.environ.get("GAEA_MCP_CATALOGUE_VERSION", "2.2")
_DEFAULT_NAME = f"gaea_node_types_{CATALOGUE_VERSION.replace('.', '_')}.json"
_FALLBACK_NAME = "gaea_node_types.json"
_CATALOGUE_ENV_VAR = "GAEA_MCP_CATALOGUE_PATH"

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent
_REFERENCE_DIR = _PROJECT_ROOT / "reference"

DOTNET_NAMESPACE = "QuadSpinner.Gaea.Nodes"
DOTNET_ASSEMBLY = "Gaea.Nodes"


_NODE_CATALOGUE: Optional[List[Dict]] = None
_NODE_INDEX: Dict[str, Dict] = {}
_DOTNET_INDEX: Dict[str, Dict] = {}
_NODE_SOURCE: Optional[str] = None


def dotnet_type_name(short_name: str) -> str:
    """Build the ``$type`` string Gaea uses for a node class name."""
    return f"{DOTNET_NAMESPACE}.{short_name}, {DOTNET_ASSEMBLY}"


def _candidate_catalogue_paths(preferred_path: Optional[str]) -> Iterable[Path]:
    env_path = os.environ.get(_CATALOGUE_ENV_VAR)

    candidates: List[Path] = []
    if preferred_path:
        candidates.append(Path(preferred_path))
    if env_path:
        candidates.append(Path(env_path))

    for name in (_DEFAULT_NAME, _FALLBACK_NAME):
        for base in (_REFERENCE_DIR, _PROJECT_ROOT, _PACKAGE_DIR):
            candidates.append(base / name)

    seen: set = set()
    for path in candidates:
        resolved = path.expanduser()
        if resolved in seen:
            continue
        seen.add(resolved)
        yield resolved


def _resolve_catalogue_path(preferred_path: Optional[str]) -> Optional[Path]:
    for path in _candidate_catalogue_paths(preferred_path):
        if path.exists():
            return path
    return None


def _read_catalogue_file(resolved: Path):
    with resolved.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    if isinstance(data, dict):
        nodes = data.get("nodes", [])
    elif isinstance(data, list):
        nodes = data
    else:
        raise ValueError(f"Unsupported catalogue format in {resolved}")

    for entry in nodes:
        if not entry.get("type") and entry.get("key"):
            entry["type"] = dotnet_type_name(entry["key"])

    index = {entry["key"].lower(): entry for entry in nodes if entry.get("key")}
    dotnet_index = {entry["type"]: entry for entry in nodes if entry.get("type")}
    return nodes, index, dotnet_index


def load_node_catalogue(path: Optional[str] = None, force_reload: bool = False) -> List[Dict]:
    """Load and cache the node catalogue data structure."""
    global _NODE_CATALOGUE, _NODE_INDEX, _DOTNET_INDEX, _NODE_SOURCE

    if _NODE_CATALOGUE and not force_reload and not path:
        return _NODE_CATALOGUE

    resolved = _resolve_catalogue_path(path)
    if not resolved:
        raise FileNotFoundError(
            "Could not locate the Gaea node catalogue. Set GAEA_MCP_CATALOGUE_PATH or "
            f"place {_DEFAULT_NAME} in the reference/ directory."
        )

    nodes, index, dotnet_index = _read_catalogue_file(resolved)

    _NODE_CATALOGUE = nodes
    _NODE_INDEX = index
    _DOTNET_INDEX = dotnet_index
    _NODE_SOURCE = str(resolved)
    return _NODE_CATALOGUE


def reset_catalogue() -> None:
    """Drop cached catalogue data so the next lookup reloads it."""
    global _NODE_CATALOGUE, _NODE_INDEX, _DOTNET_INDEX, _NODE_SOURCE
    _NODE_CATALOGUE = None
    _NODE_INDEX = {}
    _DOTNET_INDEX = {}
    _NODE_SOURCE = None


def get_node_type(key: str) -> Optional[Dict]:
    """Return the catalogue entry for a node key (case-insensitive), or None."""
    if not key:
        return None
    load_node_catalogue()
    return _NODE_INDEX.get(key.lower())


def get_node_type_by_dotnet(dotnet_type: str) -> Optional[Dict]:
    """Return the catalogue entry whose ``$type`` matches exactly, or None."""
    load_node_catalogue()
    return _DOTNET_INDEX.get(dotnet_type)


def list_node_types(category: Optional[str] = None) -> List[Dict]:
    """Return catalogue entries, optionally filtered by category (case-insensitive)."""
    nodes = load_node_catalogue()
    if not category:
        return list(nodes)
    wanted = category.lower()
    return [entry for entry in nodes if (entry.get("category") or "").lower() == wanted]


def list_categories() -> List[str]:
    """Return categories in first-seen order."""
    categories: List[str] = []
    for entry in load_node_catalogue():
        category = entry.get("category")
        if category and category not in categories:
            categories.append(category)
    return categories


def suggest_node_types(query: str, limit: int = 3) -> List[str]:
    """Return close node-key matches for a misspelt query."""
    if not query:
        return []
    load_node_catalogue()
    by_lower = {entry_key: entry["key"] for entry_key, entry in _NODE_INDEX.items()}
    matches = difflib.get_close_matches(query.lower(), list(by_lower), n=limit, cutoff=0.6)
    return [by_lower[match] for match in matches]


def get_catalogue_source() -> Optional[str]:
    """Return the resolved catalogue path currently in use."""
    return _NODE_SOURCE


__all__ = [
    "CATALOGUE_VERSION",
    "dotnet_type_name",
    "load_node_catalogue",
    "reset_catalogue",
    "get_node_type",
    "get_node_type_by_dotnet",
    "list_node_types",
    "list_categories",
    "suggest_node_types",
    "get_catalogue_source",
]
