#!/usr/bin/env python3
"""Scan Gaea example .terrain files and report the node types they use.

Example:
    python scripts/scan_examples.py --dir "C:/Users/me/AppData/Local/Programs/Gaea 2.0/Examples"

For each node type the report lists how often it occurs, its .NET ``$type``,
the ports seen on it and the property keys seen on it. Useful when extending
reference/gaea_node_types_2_2.json.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from gaea_mcp.graph import INTERNAL_KEYS, short_type_name  # noqa: E402
from gaea_mcp.refs import VALUES_KEY  # noqa: E402

DEFAULT_DIR = Path(os.environ.get("LOCALAPPDATA", "")) / "Programs" / "Gaea 2.0" / "Examples"


def scan_file(path: Path, node_types: dict[str, dict[str, Any]]) -> None:
    with open(path, "r", encoding="utf-8-sig") as fh:
        raw = json.load(fh)
    assets = raw.get("Assets", {}).get(VALUES_KEY) or [{}]
    nodes = assets[0].get("Terrain", {}).get("Nodes", {})

    for key, node in nodes.items():
        if not key.isdigit() or not isinstance(node, dict) or "$type" not in node:
            continue
        name = short_type_name(node["$type"])
        info = node_types.setdefault(
            name,
            {"dotnetType": node["$type"], "ports": {}, "properties": set(), "count": 0},
        )
        info["count"] += 1
        for port in (node.get("Ports") or {}).get(VALUES_KEY, []):
            if isinstance(port, dict) and port.get("Name") and port.get("Type"):
                info["ports"][port["Name"]] = port["Type"]
        info["properties"].update(k for k in node if k not in INTERNAL_KEYS)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--dir", type=Path, default=DEFAULT_DIR, help="Directory holding .terrain files")
    args = parser.parse_args()

    if not args.dir.is_dir():
        sys.exit(f"Not a directory: {args.dir}")

    files = sorted(args.dir.glob("*.terrain"))
    node_types: dict[str, dict[str, Any]] = {}
    for path in files:
        try:
            scan_file(path, node_types)
        except (OSError, ValueError) as exc:
            print(f"ERR: {path.name}: {exc}", file=sys.stderr)

    print(f"Scanned {len(files)} files, found {len(node_types)} node types\n")
    for name, info in sorted(node_types.items(), key=lambda item: -item[1]["count"]):
        ports = ", ".join(f"{port}:{kind}" for port, kind in info["ports"].items())
        print(f"{name} ({info['count']}x)")
        print(f"  $type: {info['dotnetType']}")
        print(f"  ports: {ports}")
        print(f"  props: {', '.join(sorted(info['properties']))}")
        print()


if __name__ == "__main__":
    main()
