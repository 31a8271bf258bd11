"""Tests for the ordered .terrain writer."""

import json
from datetime import datetime, timezone

import pytest

from gaea_mcp import graph
from gaea_mcp.serializer import dumps, ordered_keys, stamp_saved, write
from gaea_mcp.terrain import loads


def test_metadata_keys_lead_in_fixed_order():
    obj = {"Name": "x", "$values": [], "$type": "T", "$id": "4"}
    assert ordered_keys(obj) == ["$id", "$type", "$values", "Name"]


def test_numeric_keys_keep_insertion_order():
    obj = {"$id": "6", "10": {"$id": "7"}, "2": {"$id": "8"}, "Z": 1, "A": 2}
    text = dumps(obj)
    positions = [text.index(f'"{key}"') for key in ("$id", "10", "2", "Z", "A")]
    assert positions == sorted(positions)


def test_id_written_before_ref_to_it():
    obj = {"$ref": "1", "$id": "2"}
    assert dumps(obj).index('"$id"') < dumps(obj).index('"$ref"')


def test_exact_layout():
    obj = {"$id": "1", "Empty": {}, "List": [], "Values": [1, 2.5, "a"], "Flag": True, "Nothing": None}
    assert dumps(obj) == (
        "{\n"
        '  "$id": "1",\n'
        '  "Empty": {},\n'
        '  "List": [],\n'
        '  "Values": [\n'
        "    1,\n"
        "    2.5,\n"
        '    "a"\n'
        "  ],\n"
        '  "Flag": true,\n'
        '  "Nothing": null\n'
        "}"
    )


def test_floats_keep_decimal_point():
    assert dumps({"X": 26000.0}) == '{\n  "X": 26000.0\n}'


def test_non_ascii_written_verbatim():
    assert "Café" in dumps({"Name": "Café"})


def test_strings_are_escaped():
    text = dumps({"Path": 'C:\\Gaea\\"x"'})
    assert json.loads(text)["Path"] == 'C:\\Gaea\\"x"'


def test_non_finite_numbers_rejected():
    with pytest.raises(ValueError):
        dumps({"X": float("nan")})


def test_unsupported_type_rejected():
    with pytest.raises(TypeError):
        dumps({"X": object()})


def test_round_trip_preserves_document(scenario_terrain):
    graph.set_node_property(scenario_terrain, 2, "Seed", 12345)
    reloaded = loads(dumps(scenario_terrain.raw))
    assert reloaded.raw == scenario_terrain.raw
    assert dumps(reloaded.raw) == dumps(scenario_terrain.raw)


def test_nodes_mapping_written_with_id_first(scenario_terrain):
    text = dumps(scenario_terrain.raw)
    nodes_at = text.index('"Nodes"')
    assert text.index('"$id"', nodes_at) < text.index('"1"', nodes_at)


def test_stamp_saved_updates_both_metadata(empty_terrain):
    moment = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    stamp = stamp_saved(empty_terrain, moment)
    assert stamp == "2025-01-02 03:04:05Z"
    assert empty_terrain.terrain["Metadata"]["DateLastSaved"] == stamp
    assert empty_terrain.raw["Metadata"]["DateLastSaved"] == stamp


def test_write_stamps_then_serializes(empty_terrain):
    moment = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    created = empty_terrain.raw["Metadata"]["DateCreated"]
    text = write(empty_terrain, now=moment)
    data = json.loads(text)
    assert data["Metadata"]["DateLastSaved"] == "2025-01-02 03:04:05Z"
    assert data["Metadata"]["DateCreated"] == created
    assert text.startswith('{\n  "$id": "1",')
