"""In-memory model of a Gaea .terrain document.

A .terrain file is JSON written by Newtonsoft.Json with reference
preservation. The document is kept as plain dicts/lists so that unknown
node properties survive a load/save cycle untouched; ``TerrainFile`` only
adds shortcuts into the sections the graph tools work with.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

from .errors import FormatError
from .refs import ID_KEY, VALUES_KEY, build_ref_index, is_alias, new_allocator, resolve

GAEA_VERSION = "2.2.9.0"


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a time the way Gaea stores it: ``2024-05-01 13:45:09Z``."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S") + "Z"


@dataclass
class TerrainFile:
    """A loaded .terrain document plus shortcuts into it.

    Attributes:
        raw: The whole JSON tree.
        asset: ``raw["Assets"]["$values"][0]``.
        terrain: ``asset["Terrain"]`` (the graph section).
        nodes: ``terrain["Nodes"]``; maps decimal node ids to node objects.
            Also holds the mapping's own ``"$id"`` entry.
        path: Source path, if the document came from disk.
    """

    raw: Dict[str, Any]
    asset: Dict[str, Any]
    terrain: Dict[str, Any]
    nodes: Dict[str, Any]
    path: Optional[str] = None
    _ref_index: Optional[Dict[str, Dict[str, Any]]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_raw(cls, raw: Any, path: Optional[str] = None) -> "TerrainFile":
        if not isinstance(raw, dict):
            raise FormatError("Invalid .terrain file: top level is not an object")
        assets = raw.get("Assets")
        values = assets.get(VALUES_KEY) if isinstance(assets, dict) else None
        asset = values[0] if isinstance(values, list) and values else None
        if not isinstance(asset, dict):
            raise FormatError("Invalid .terrain file: no Assets.$values[0]")
        terrain = asset.get("Terrain")
        if not isinstance(terrain, dict):
            raise FormatError("Invalid .terrain file: no Terrain section")
        nodes = terrain.get("Nodes")
        if nodes is None:
            nodes = {ID_KEY: new_allocator(raw).allocate()}
            terrain["Nodes"] = nodes
        elif not isinstance(nodes, dict):
            raise FormatError("Invalid .terrain file: Terrain.Nodes is not an object")
        return cls(raw=raw, asset=asset, terrain=terrain, nodes=nodes, path=path)

    # -- reference index ---------------------------------------------------

    def ref_index(self, refresh: bool = False) -> Dict[str, Dict[str, Any]]:
        """Return the ``$id`` -> object index, rebuilding it when asked."""
        if self._ref_index is None or refresh:
            self._ref_index = build_ref_index(self.raw)
        return self._ref_index

    def invalidate_refs(self) -> None:
        self._ref_index = None

    def resolve(self, value: Any) -> Any:
        """Follow ``value`` if it is an alias, using a fresh index on a miss."""
        if not is_alias(value):
            return value
        index = self.ref_index()
        if value["$ref"] not in index:
            index = self.ref_index(refresh=True)
        return resolve(value, index)

    # -- node access -------------------------------------------------------

    def node_keys(self) -> Iterator[str]:
        """Yield the keys of ``nodes`` that are node ids (skips ``$id``)."""
        for key in self.nodes:
            if key.isdigit():
                yield key

    def iter_nodes(self) -> Iterator[Tuple[int, Dict[str, Any]]]:
        """Yield ``(node_id, node)`` pairs, resolving aliased entries."""
        for key in list(self.node_keys()):
            node = self.nodes[key]
            if not isinstance(node, dict):
                continue
            yield int(key), self.resolve(node)

    def max_node_id(self) -> int:
        return max((int(key) for key in self.node_keys()), default=0)

    @property
    def state(self) -> Optional[Dict[str, Any]]:
        state = self.asset.get("State")
        return state if isinstance(state, dict) else None


def _reject_constant(name: str):
    raise FormatError(f"Invalid .terrain file: non-finite number {name} is not JSON")


def loads(text: str, path: Optional[str] = None) -> TerrainFile:
    """Parse .terrain text into a ``TerrainFile``.

    Raises:
        FormatError: if the text is not strict JSON (``NaN`` and ``Infinity``
            are refused) or the Assets/Terrain sections are missing.
    """
    try:
        raw = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid .terrain file: {exc}") from exc
    return TerrainFile.from_raw(raw, path=path)


def create_empty_terrain(path: Optional[str] = None) -> TerrainFile:
    """Build a fresh, node-less project matching Gaea 2.2.9 native output."""
    now = format_timestamp()
    project_id = uuid.uuid4().hex[:8]
    terrain_id = str(uuid.uuid4())

    raw: Dict[str, Any] = {
        "$id": "1",
        "Assets": {
            "$id": "2",
            "$values": [
                {
                    "$id": "3",
                    "Terrain": {
                        "$id": "4",
                        "Id": terrain_id,
                        "Metadata": {
                            "$id": "5",
                            "Name": "",
                            "Description": "",
                            "Version": GAEA_VERSION,
                            "DateCreated": now,
                            "DateLastBuilt": now,
                            "DateLastSaved": now,
                        },
                        "Nodes": {"$id": "6"},
                        "Groups": {"$id": "7"},
                        "Notes": {"$id": "8"},
                        "GraphTabs": {
                            "$id": "9",
                            "$values": [
                                {
                                    "$id": "10",
                                    "Name": "Graph 1",
                                    "Color": "Brass",
                                    "ZoomFactor": 1.0,
                                    "ViewportLocation": {"$id": "11", "X": 26000.0, "Y": 26000.0},
                                },
                            ],
                        },
                        "Width": 5000.0,
                        "Height": 2500.0,
                        "Ratio": 0.5,
                        "Regions": {"$id": "12", "$values": []},
                    },
                    "Automation": {
                        "$id": "13",
                        "Bindings": {"$id": "14", "$values": []},
                        "Expressions": {"$id": "15"},
                        "Variables": {"$id": "16"},
                    },
                    "BuildDefinition": {
                        "$id": "17",
                        "Type": "Standard",
                        "Destination": "<Builds>\\[Filename]\\[+++]",
                        "Resolution": 1024,
                        "BakeResolution": 2048,
                        "TileResolution": 1024,
                        "BucketResolution": 2048,
                        "NumberOfTiles": 3,
                        "EdgeBlending": 0.25,
                        "TileZeroIndex": True,
                        "TilePattern": "_y%Y%_x%X%",
                        "OrganizeFiles": "NodeSubFolder",
                        "ColorSpace": "sRGB",
                    },
                    "State": {
                        "$id": "18",
                        "BakeResolution": 2048,
                        "PreviewResolution": 1024,
                        "HDResolution": 4096,
                        "SelectedNode": -1,
                        "NodeBookmarks": {"$id": "19", "$values": []},
                        "Viewport": {
                            "$id": "20",
                            "CameraPosition": {"$id": "21", "$values": []},
                            "Camera": {"$id": "22"},
                            "RenderMode": "Realistic",
                            "AmbientOcclusion": True,
                            "Shadows": True,
                        },
                    },
                    "BuildProfiles": {"$id": "23"},
                },
            ],
        },
        "Id": project_id,
        "Branch": 1,
        "Metadata": {
            "$id": "24",
            "Name": "",
            "Description": "",
            "Version": GAEA_VERSION,
            "Edition": "Community",
            "Owner": "",
            "DateCreated": now,
            "DateLastBuilt": now,
            "DateLastSaved": now,
            "ModifiedVersion": GAEA_VERSION,
        },
    }
    return TerrainFile.from_raw(raw, path=path)


__all__ = [
    "GAEA_VERSION",
    "TerrainFile",
    "format_timestamp",
    "loads",
    "create_empty_terrain",
]
