"""Shared fixtures for gaea_mcp tests.

Provides fresh in-memory documents, a document on disk under ``tmp_path``
and a catalogue pinned to the bundled reference JSON.
"""

from pathlib import Path

import pytest

from gaea_mcp import catalogue, graph
from gaea_mcp.store import write_terrain
from gaea_mcp.terrain import create_empty_terrain

REPO_ROOT = Path(__file__).resolve().parent.parent
REFERENCE_DIR = REPO_ROOT / "reference"
CATALOGUE_PATH = REFERENCE_DIR / "gaea_node_types_2_2.json"

MOUNTAIN = "QuadSpinner.Gaea.Nodes.Mountain, Gaea.Nodes"
EROSION = "QuadSpinner.Gaea.Nodes.Erosion2, Gaea.Nodes"

MOUNTAIN_PORTS = [("In", "PrimaryIn"), ("Out", "PrimaryOut")]
EROSION_PORTS = [
    ("In", "PrimaryIn, Required"),
    ("Out", "PrimaryOut"),
    ("Flow", "Out"),
    ("Wear", "Out"),
    ("Deposits", "Out"),
]


@pytest.fixture(autouse=True)
def node_catalogue(monkeypatch):
    """Load the bundled catalogue fresh for every test."""
    monkeypatch.delenv("GAEA_MCP_CATALOGUE_PATH", raising=False)
    catalogue.reset_catalogue()
    catalogue.load_node_catalogue(path=str(CATALOGUE_PATH), force_reload=True)
    yield
    catalogue.reset_catalogue()


@pytest.fixture
def empty_terrain():
    return create_empty_terrain()


@pytest.fixture
def scenario_terrain(empty_terrain):
    """Mountain (1) feeding Erosion2 (2) through Out -> In."""
    tf = empty_terrain
    graph.add_node(tf, MOUNTAIN, MOUNTAIN_PORTS)
    graph.add_node(tf, EROSION, EROSION_PORTS)
    graph.connect_ports(tf, 1, "Out", 2, "In")
    return tf


@pytest.fixture
def terrain_path(tmp_path, empty_terrain):
    """An empty project written to disk; returns its path."""
    path = tmp_path / "test.terrain"
    write_terrain(empty_terrain, path)
    return path
