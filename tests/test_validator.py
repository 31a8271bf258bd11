"""Tests for connection checks and whole-document validation."""

from conftest import EROSION, EROSION_PORTS, MOUNTAIN_PORTS
from gaea_mcp import graph
from gaea_mcp.validator import check_selected_node, validate_connection, validate_terrain


def _check(result, name):
    return next(check for check in result["checks"] if check["name"] == name)


# -- validate_connection ---------------------------------------------------

def test_output_to_input_ok(scenario_terrain):
    assert validate_connection(scenario_terrain, 1, "Out", 2, "In") == (True, None)


def test_secondary_output_ok(scenario_terrain):
    graph.add_node(scenario_terrain, EROSION, EROSION_PORTS)
    assert validate_connection(scenario_terrain, 2, "Flow", 3, "In") == (True, None)


def test_input_as_source_rejected(scenario_terrain):
    ok, error = validate_connection(scenario_terrain, 2, "In", 1, "In")
    assert not ok
    assert "not an output" in error


def test_output_as_destination_rejected(scenario_terrain):
    ok, error = validate_connection(scenario_terrain, 1, "Out", 2, "Wear")
    assert not ok
    assert "not an input" in error


def test_self_connection_rejected(scenario_terrain):
    ok, error = validate_connection(scenario_terrain, 2, "Out", 2, "In")
    assert not ok
    assert "itself" in error


def test_missing_port_reported(scenario_terrain):
    ok, error = validate_connection(scenario_terrain, 1, "Out", 2, "Mask")
    assert not ok
    assert "Mask" in error


# -- validate_terrain ------------------------------------------------------

def test_empty_terrain_is_ok(empty_terrain):
    result = validate_terrain(empty_terrain)
    assert result["status"] == "OK", f"Issues: {result['issues']}"
    assert result["warnings"] == []


def test_edited_terrain_is_ok(scenario_terrain):
    graph.set_node_property(scenario_terrain, 2, "Seed", 3)
    result = validate_terrain(scenario_terrain)
    assert result["status"] == "OK", f"Issues: {result['issues']}"
    assert all(check["ok"] for check in result["checks"])


def test_duplicate_ids_flagged(scenario_terrain):
    graph.get_node(scenario_terrain, 2)["Position"]["$id"] = graph.get_node(scenario_terrain, 1)["$id"]
    result = validate_terrain(scenario_terrain)
    assert result["status"] == "ERROR"
    assert not _check(result, "unique_ref_ids")["ok"]


def test_dangling_ref_flagged(scenario_terrain):
    graph.find_port(scenario_terrain, 2, "Out")["Parent"] = {"$ref": "999"}
    result = validate_terrain(scenario_terrain)
    assert not _check(result, "refs_resolve")["ok"]


def test_node_key_mismatch_flagged(scenario_terrain):
    graph.get_node(scenario_terrain, 1)["Id"] = 5
    result = validate_terrain(scenario_terrain)
    assert not _check(result, "node_keys_match_ids")["ok"]


def test_record_from_missing_node_flagged(scenario_terrain):
    graph.find_port(scenario_terrain, 2, "In")["Record"]["From"] = 40
    result = validate_terrain(scenario_terrain)
    assert not _check(result, "records_resolve")["ok"]


def test_record_on_output_flagged(scenario_terrain):
    graph.find_port(scenario_terrain, 2, "Out")["Record"] = {
        "$id": "500", "From": 1, "To": 2, "FromPort": "Out", "ToPort": "Out", "IsValid": True,
    }
    result = validate_terrain(scenario_terrain)
    assert not _check(result, "records_on_inputs")["ok"]


def test_duplicate_port_names_flagged(scenario_terrain):
    graph.find_port(scenario_terrain, 2, "Flow")["Name"] = "Wear"
    result = validate_terrain(scenario_terrain)
    assert not _check(result, "unique_port_names")["ok"]


def test_unknown_type_is_only_a_warning(empty_terrain):
    graph.add_node(empty_terrain, "Vendor.Custom.Thing, Vendor", MOUNTAIN_PORTS)
    result = validate_terrain(empty_terrain)
    assert result["status"] == "OK"
    assert result["warnings"]
    assert not _check(result, "known_node_types")["ok"]


def test_selected_node(scenario_terrain):
    assert check_selected_node(scenario_terrain) is None
    scenario_terrain.state["SelectedNode"] = 2
    assert check_selected_node(scenario_terrain) is None
    scenario_terrain.state["SelectedNode"] = 9
    assert "SelectedNode 9" in check_selected_node(scenario_terrain)
    assert validate_terrain(scenario_terrain)["status"] == "ERROR"
