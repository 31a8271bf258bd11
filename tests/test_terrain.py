"""Tests for loading .terrain text and the empty-project skeleton."""

import json
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from gaea_mcp.errors import FormatError
from gaea_mcp.refs import iter_ids, scan_max_id
from gaea_mcp.terrain import GAEA_VERSION, create_empty_terrain, format_timestamp, loads


def _minimal(nodes=None):
    terrain = {"$id": "3", "Metadata": {"$id": "4"}}
    if nodes is not None:
        terrain["Nodes"] = nodes
    return {"$id": "1", "Assets": {"$id": "2", "$values": [{"$id": "5", "Terrain": terrain}]}}


def test_loads_minimal_document():
    tf = loads(json.dumps(_minimal({"$id": "6"})), path="x.terrain")
    assert tf.path == "x.terrain"
    assert tf.nodes == {"$id": "6"}
    assert list(tf.iter_nodes()) == []


def test_loads_rejects_invalid_json():
    with pytest.raises(FormatError):
        loads("{not json")


def test_loads_rejects_non_object():
    with pytest.raises(FormatError):
        loads("[1, 2, 3]")


def test_loads_requires_assets():
    with pytest.raises(FormatError, match="Assets"):
        loads(json.dumps({"$id": "1"}))


def test_loads_requires_terrain_section():
    raw = {"$id": "1", "Assets": {"$id": "2", "$values": [{"$id": "3"}]}}
    with pytest.raises(FormatError, match="Terrain"):
        loads(json.dumps(raw))


def test_format_error_is_value_error():
    with pytest.raises(ValueError):
        loads("")


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_loads_rejects_non_finite_numbers(literal):
    text = json.dumps(_minimal({"$id": "6"})).replace('"$id": "4"', f'"$id": "4", "Ratio": {literal}')
    with pytest.raises(FormatError, match=literal):
        loads(text)


def test_missing_nodes_section_is_created_with_fresh_id():
    tf = loads(json.dumps(_minimal()))
    assert tf.terrain["Nodes"] == {"$id": "6"}
    assert tf.nodes is tf.terrain["Nodes"]


def test_iter_nodes_skips_id_key_and_resolves_aliases():
    node = {"$id": "10", "$type": "X", "Id": 1, "Name": "A"}
    raw = _minimal({"$id": "6", "1": node, "2": {"$ref": "10"}})
    tf = loads(json.dumps(raw))
    nodes = dict(tf.iter_nodes())
    assert set(nodes) == {1, 2}
    assert nodes[2] is nodes[1]
    assert tf.max_node_id() == 2


def test_unknown_fields_are_preserved():
    raw = _minimal({"$id": "6"})
    raw["Assets"]["$values"][0]["Terrain"]["FutureThing"] = {"$id": "9", "Deep": [1, 2]}
    tf = loads(json.dumps(raw))
    assert tf.terrain["FutureThing"] == {"$id": "9", "Deep": [1, 2]}


def test_format_timestamp_utc():
    moment = datetime(2024, 5, 1, 13, 45, 9, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2024-05-01 13:45:09Z"


def test_format_timestamp_converts_to_utc():
    moment = datetime(2024, 5, 1, 15, 45, 9, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(moment) == "2024-05-01 13:45:09Z"


class TestEmptyTerrain:
    def test_has_no_nodes(self, empty_terrain):
        assert list(empty_terrain.node_keys()) == []
        assert empty_terrain.max_node_id() == 0

    def test_ids_are_unique_and_dense(self, empty_terrain):
        ids = list(iter_ids(empty_terrain.raw))
        assert not [i for i, c in Counter(ids).items() if c > 1]
        assert scan_max_id(empty_terrain.raw) == 24
        assert sorted(int(i) for i in ids) == list(range(1, 25))

    def test_selected_node_unset(self, empty_terrain):
        assert empty_terrain.state["SelectedNode"] == -1

    def test_metadata_versions(self, empty_terrain):
        assert empty_terrain.terrain["Metadata"]["Version"] == GAEA_VERSION
        assert empty_terrain.raw["Metadata"]["ModifiedVersion"] == GAEA_VERSION

    def test_project_ids_differ(self):
        first, second = create_empty_terrain(), create_empty_terrain()
        assert first.raw["Id"] != second.raw["Id"]
        assert len(first.raw["Id"]) == 8
