"""Ordered JSON writer for .terrain documents.

Gaea reads .terrain files with Newtonsoft.Json in a single forward pass, so
``$id`` must come before any ``$ref`` that points at it, and the metadata
keys ``$id``, ``$ref``, ``$type`` and ``$values`` must lead every object.
Generic serializers that sort keys (or hosts that order integer-like keys
first) produce files Gaea refuses to open; ``dumps`` never reorders
anything except those four keys.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Optional

from .refs import ID_KEY, REF_KEY, TYPE_KEY, VALUES_KEY
from .terrain import TerrainFile, format_timestamp

PRIORITY_KEYS = (ID_KEY, REF_KEY, TYPE_KEY, VALUES_KEY)


def ordered_keys(obj):
    """Return the keys of ``obj`` in write order."""
    leading = [key for key in PRIORITY_KEYS if key in obj]
    return leading + [key for key in obj if key not in PRIORITY_KEYS]


def _render_scalar(value) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Cannot write non-finite number {value!r} to a .terrain file")
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _render(value, depth: int, indent: int, parts: list) -> None:
    if isinstance(value, dict):
        if not value:
            parts.append("{}")
            return
        inner = " " * ((depth + 1) * indent)
        parts.append("{\n")
        for index, key in enumerate(ordered_keys(value)):
            if index:
                parts.append(",\n")
            parts.append(inner)
            parts.append(json.dumps(str(key), ensure_ascii=False))
            parts.append(": ")
            _render(value[key], depth + 1, indent, parts)
        parts.append("\n" + " " * (depth * indent) + "}")
    elif isinstance(value, (list, tuple)):
        if not value:
            parts.append("[]")
            return
        inner = " " * ((depth + 1) * indent)
        parts.append("[\n")
        for index, item in enumerate(value):
            if index:
                parts.append(",\n")
            parts.append(inner)
            _render(item, depth + 1, indent, parts)
        parts.append("\n" + " " * (depth * indent) + "]")
    else:
        parts.append(_render_scalar(value))


def dumps(value: Any, indent: int = 2) -> str:
    """Serialize ``value`` with Gaea's key ordering and fixed indentation."""
    parts: list = []
    _render(value, 0, indent, parts)
    return "".join(parts)


def stamp_saved(tf: TerrainFile, now: Optional[datetime] = None) -> str:
    """Update both ``DateLastSaved`` fields and return the stamp used."""
    stamp = format_timestamp(now)
    terrain_meta = tf.terrain.get("Metadata")
    if isinstance(terrain_meta, dict):
        terrain_meta["DateLastSaved"] = stamp
    outer_meta = tf.raw.get("Metadata")
    if isinstance(outer_meta, dict):
        outer_meta["DateLastSaved"] = stamp
    return stamp


def write(tf: TerrainFile, now: Optional[datetime] = None, indent: int = 2) -> str:
    """Stamp the save time on ``tf`` and return its text."""
    stamp_saved(tf, now)
    return dumps(tf.raw, indent=indent)


__all__ = ["PRIORITY_KEYS", "ordered_keys", "dumps", "stamp_saved", "write"]
