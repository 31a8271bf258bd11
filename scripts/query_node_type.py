#!/usr/bin/env python3
"""Quickly look up a Gaea node type (.NET type, category, ports).

Example:
    python scripts/query_node_type.py --node Erosion2

The script searches the catalogue (reference/gaea_node_types_2_2.json) so you
don't have to grep JSON manually. Unknown names fall back to the closest match.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from gaea_mcp import catalogue  # noqa: E402


def resolve_query(query: str) -> dict[str, Any] | None:
    entry = catalogue.get_node_type(query) or catalogue.get_node_type_by_dotnet(query)
    if entry:
        return entry
    matches = catalogue.suggest_node_types(query, limit=1)
    if matches:
        print(f"No exact match for '{query}', showing '{matches[0]}'\n")
        return catalogue.get_node_type(matches[0])
    return None


def print_metadata(entry: dict[str, Any]) -> None:
    print(f"Key       : {entry.get('key')}")
    print(f"Type      : {entry.get('type')}")
    if entry.get("category"):
        print(f"Category  : {entry['category']}")
    print("Ports     :")
    for port in entry.get("ports", []):
        print(f"  - {port.get('name')} ({port.get('type')})")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--node", required=True, help="Node key (e.g. Mountain) or .NET type name")
    parser.add_argument("--catalogue", help="Catalogue JSON to use instead of the default")
    args = parser.parse_args()

    try:
        catalogue.load_node_catalogue(args.catalogue)
    except FileNotFoundError as exc:
        sys.exit(str(exc))

    entry = resolve_query(args.node)
    if not entry:
        sys.exit(f"Node '{args.node}' not found. Try a different name.")

    print_metadata(entry)


if __name__ == "__main__":
    main()
