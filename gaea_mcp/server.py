"""gaea_mcp.server - MCP server exposing .terrain editing and Gaea builds.

Each tool is a thin wrapper around a module-level function that takes the
runtime ``Config`` explicitly, so the behaviour can be exercised without an
MCP client. Tools report failures as ``{"status": "error", "error": ...}``
rather than raising.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from . import catalogue, graph, validator
from .config import Config, get_config, list_terrain_files, resolve_terrain_path
from .errors import TerrainError
from .store import edit_terrain, read_terrain, write_terrain
from .swarm import BuildError, build_terrain, get_gaea_version
from .terrain import create_empty_terrain

logger = logging.getLogger(__name__)

SERVER_NAME = "gaea-mcp-server"
LOG_LEVEL_ENV_VAR = "GAEA_MCP_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"

MCP_SERVER_INSTRUCTIONS = """\
Edit Gaea 2 .terrain project files and build them with Gaea.Swarm.exe.

Workflow: create_terrain or list_projects -> read_terrain_graph ->
list_node_types -> add_node / connect_nodes / set_node_property ->
validate_terrain -> build_terrain.

Relative filenames are resolved against the projects directory. Every edit
reads the whole file, applies one change and writes it back.
"""


def configure_logging(level: Optional[str] = None) -> None:
    """Send log output to stderr; stdout carries the MCP stdio protocol."""
    level_name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _error(message: str) -> Dict[str, Any]:
    return {"status": "error", "error": message}


# ─────────────────────────────────────────────────────────────────────────────
# Gaea install / build tools
# ─────────────────────────────────────────────────────────────────────────────


def _check_gaea_status(config: Config) -> Dict[str, Any]:
    gaea = config.gaea
    return {
        "found": gaea.found,
        "installDir": gaea.install_dir,
        "gaeaExe": gaea.gaea_exe,
        "swarmExe": gaea.swarm_exe,
        "projectDir": str(config.project_dir),
        "outputDir": str(config.output_dir),
        "hint": (
            "Ready to build terrains with Gaea.Swarm.exe"
            if gaea.swarm_exe
            else 'Gaea not found. Set GAEA_INSTALL_DIR in .env (e.g. "C:/Program Files/QuadSpinner/Gaea")'
        ),
    }


def _get_gaea_version(config: Config) -> Dict[str, Any]:
    if not config.gaea.gaea_exe:
        return _error("Gaea.exe not found. Set GAEA_INSTALL_DIR in .env.")
    try:
        return {"status": "success", "version": get_gaea_version(config.gaea.gaea_exe)}
    except BuildError as e:
        return _error(f"Failed to get version: {e}")


def _list_projects(config: Config) -> Dict[str, Any]:
    return {"projectDir": str(config.project_dir), "files": list_terrain_files(config)}


def _build_terrain(
    config: Config,
    filename: str,
    profile: Optional[str] = None,
    region: Optional[str] = None,
    seed: Optional[int] = None,
    variables: Optional[Dict[str, str]] = None,
    vars_file: Optional[str] = None,
    ignore_cache: bool = False,
    verbose: bool = False,
) -> Dict[str, Any]:
    if not config.gaea.swarm_exe:
        return _error(
            'Gaea.Swarm.exe not found. Set GAEA_INSTALL_DIR in .env (e.g. "C:/Program Files/QuadSpinner/Gaea")'
        )
    terrain_path = resolve_terrain_path(filename, config)
    if not terrain_path.exists():
        return _error(f"Terrain file not found: {terrain_path}")
    try:
        return build_terrain(
            config.gaea.swarm_exe,
            str(terrain_path),
            profile=profile,
            region=region,
            seed=seed,
            variables=variables,
            vars_file=vars_file,
            ignore_cache=ignore_cache,
            verbose=verbose,
        )
    except BuildError as e:
        return _error(f"Build failed: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# Graph tools
# ─────────────────────────────────────────────────────────────────────────────


def _list_node_types(category: Optional[str] = None) -> Dict[str, Any]:
    types = catalogue.list_node_types(category)
    return {
        "categories": catalogue.list_categories(),
        "nodeTypes": [
            {
                "key": entry["key"],
                "category": entry.get("category"),
                "ports": [f"{port['name']} ({port['type']})" for port in entry.get("ports", [])],
            }
            for entry in types
        ],
    }


def _read_terrain_graph(config: Config, filename: str) -> Dict[str, Any]:
    try:
        tf = read_terrain(resolve_terrain_path(filename, config))
        nodes = graph.list_nodes(tf)
        build = tf.asset.get("BuildDefinition") or {}
        return {
            "file": tf.path,
            "terrainSize": {"width": tf.terrain.get("Width"), "height": tf.terrain.get("Height")},
            "buildResolution": build.get("Resolution"),
            "nodeCount": len(nodes),
            "nodes": nodes,
            "connections": graph.list_connections(tf),
        }
    except TerrainError as e:
        return _error(str(e))


def _get_node_details(config: Config, filename: str, node_id: int) -> Dict[str, Any]:
    try:
        tf = read_terrain(resolve_terrain_path(filename, config))
        return graph.summarize_node(graph.get_node(tf, node_id), tf.resolve)
    except TerrainError as e:
        return _error(str(e))


def _add_node(
    config: Config,
    filename: str,
    node_type: str,
    name: Optional[str] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    properties: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    type_def = catalogue.get_node_type(node_type)
    if not type_def:
        suggestions = catalogue.suggest_node_types(node_type)
        hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
        return _error(f'Unknown node type "{node_type}". Use list_node_types to see available types.{hint}')

    position = None
    if x is not None or y is not None:
        default_x, default_y = graph.DEFAULT_POSITION
        position = (default_x if x is None else x, default_y if y is None else y)

    try:
        with edit_terrain(resolve_terrain_path(filename, config)) as tf:
            node_id = graph.add_node(
                tf,
                type_def["type"],
                type_def.get("ports", []),
                name=name,
                position=position,
                properties=properties,
            )
    except (TerrainError, ValueError) as e:
        return _error(str(e))
    return {
        "status": "success",
        "nodeId": node_id,
        "nodeType": type_def["key"],
        "message": f"Added {type_def['key']} node (id={node_id})",
    }


def _remove_node(config: Config, filename: str, node_id: int) -> Dict[str, Any]:
    try:
        with edit_terrain(resolve_terrain_path(filename, config)) as tf:
            graph.remove_node(tf, node_id)
    except TerrainError as e:
        return _error(str(e))
    return {"status": "success", "message": f"Removed node {node_id}"}


def _connect_nodes(
    config: Config,
    filename: str,
    from_node_id: int,
    to_node_id: int,
    from_port: str = "Out",
    to_port: str = "In",
    strict: bool = False,
) -> Dict[str, Any]:
    try:
        with edit_terrain(resolve_terrain_path(filename, config)) as tf:
            if strict:
                ok, problem = validator.validate_connection(tf, from_node_id, from_port, to_node_id, to_port)
                if not ok:
                    raise ValueError(problem)
            graph.connect_ports(tf, from_node_id, from_port, to_node_id, to_port)
    except (TerrainError, ValueError) as e:
        return _error(str(e))
    return {
        "status": "success",
        "message": f"Connected {from_node_id}:{from_port} → {to_node_id}:{to_port}",
    }


def _disconnect_port(config: Config, filename: str, node_id: int, port_name: str) -> Dict[str, Any]:
    try:
        with edit_terrain(resolve_terrain_path(filename, config)) as tf:
            graph.disconnect_port(tf, node_id, port_name)
    except TerrainError as e:
        return _error(str(e))
    return {"status": "success", "message": f'Disconnected port "{port_name}" on node {node_id}'}


def _set_node_property(config: Config, filename: str, node_id: int, property: str, value: Any) -> Dict[str, Any]:
    try:
        with edit_terrain(resolve_terrain_path(filename, config)) as tf:
            graph.set_node_property(tf, node_id, property, value)
    except (TerrainError, ValueError) as e:
        return _error(str(e))
    return {
        "status": "success",
        "message": f"Set {property}={json.dumps(value)} on node {node_id}",
    }


def _create_terrain(config: Config, name: str) -> Dict[str, Any]:
    if not name or name in (".", "..") or "/" in name or "\\" in name or os.path.isabs(name):
        return _error(f'Invalid terrain name "{name}": use a plain file name without directories')
    config.project_dir.mkdir(parents=True, exist_ok=True)
    file_path = config.project_dir / f"{name}.terrain"
    if file_path.exists():
        return _error(f"File already exists: {file_path}")
    try:
        write_terrain(create_empty_terrain(), file_path)
    except TerrainError as e:
        return _error(str(e))
    return {
        "status": "success",
        "filePath": str(file_path),
        "message": f"Created new terrain: {name}.terrain",
    }


def _validate_terrain(config: Config, filename: str) -> Dict[str, Any]:
    try:
        tf = read_terrain(resolve_terrain_path(filename, config))
    except TerrainError as e:
        return _error(str(e))
    return validator.validate_terrain(tf)


# ─────────────────────────────────────────────────────────────────────────────
# MCP Server Factory
# ─────────────────────────────────────────────────────────────────────────────


def create_server(config: Optional[Config] = None) -> FastMCP:
    """Create the MCP server with all tools registered.

    Args:
        config: Optional pre-built configuration (for testing).

    Returns:
        FastMCP server instance.
    """
    config = config or get_config()
    mcp = FastMCP(SERVER_NAME, instructions=MCP_SERVER_INSTRUCTIONS)

    @mcp.tool()
    def check_gaea_status() -> Dict[str, Any]:
        """Check if Gaea executables (Gaea.exe / Gaea.Swarm.exe) are found and report their paths."""
        return _check_gaea_status(config)

    @mcp.tool(name="get_gaea_version")
    def get_gaea_version_tool() -> Dict[str, Any]:
        """Get the installed Gaea version."""
        return _get_gaea_version(config)

    @mcp.tool()
    def list_projects() -> Dict[str, Any]:
        """List Gaea .terrain project files in the projects directory."""
        return _list_projects(config)

    @mcp.tool(name="build_terrain")
    def build_terrain_tool(
        filename: str,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        seed: Optional[int] = None,
        variables: Optional[Dict[str, str]] = None,
        vars_file: Optional[str] = None,
        ignore_cache: bool = False,
        verbose: bool = False,
    ) -> Dict[str, Any]:
        """Build a Gaea terrain using Gaea.Swarm.exe.

        Args:
            filename: .terrain file name in the projects dir, or an absolute path.
            profile: Build profile (-p).
            region: Region to build (-r).
            seed: Mutation seed (--seed).
            variables: Variable overrides, passed as -v key=value.
            vars_file: Path to a .json or .txt variables file (--vars).
            ignore_cache: Ignore the baked cache (--ignorecache).
            verbose: Verbose build log (--verbose).
        """
        return _build_terrain(
            config, filename, profile, region, seed, variables, vars_file, ignore_cache, verbose
        )

    @mcp.tool()
    def list_node_types(category: Optional[str] = None) -> Dict[str, Any]:
        """List known Gaea node types with their categories and ports.

        Args:
            category: Optional filter, e.g. Terrain, Simulate, Modify.
        """
        return _list_node_types(category)

    @mcp.tool()
    def read_terrain_graph(filename: str) -> Dict[str, Any]:
        """Read a .terrain file and summarise all nodes and connections."""
        return _read_terrain_graph(config, filename)

    @mcp.tool()
    def get_node_details(filename: str, node_id: int) -> Dict[str, Any]:
        """Get the ports and properties of one node."""
        return _get_node_details(config, filename, node_id)

    @mcp.tool()
    def add_node(
        filename: str,
        node_type: str,
        name: Optional[str] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Add a node to a .terrain file. Use list_node_types to see available types.

        Args:
            filename: .terrain file.
            node_type: Node type key, e.g. Mountain, Erosion2, Combine.
            name: Display name.
            x: Canvas X position (default 26500).
            y: Canvas Y position (default 26250).
            properties: Initial property values, e.g. {"Seed": 12345}.
        """
        return _add_node(config, filename, node_type, name, x, y, properties)

    @mcp.tool()
    def remove_node(filename: str, node_id: int) -> Dict[str, Any]:
        """Remove a node and every connection to or from it."""
        return _remove_node(config, filename, node_id)

    @mcp.tool()
    def connect_nodes(
        filename: str,
        from_node_id: int,
        to_node_id: int,
        from_port: str = "Out",
        to_port: str = "In",
        strict: bool = False,
    ) -> Dict[str, Any]:
        """Connect an output port of one node to an input port of another.

        Args:
            strict: Refuse output-to-output, input-to-input and self connections.
        """
        return _connect_nodes(config, filename, from_node_id, to_node_id, from_port, to_port, strict)

    @mcp.tool()
    def disconnect_port(filename: str, node_id: int, port_name: str) -> Dict[str, Any]:
        """Remove the incoming connection on an input port (e.g. In, Mask, Alternate)."""
        return _disconnect_port(config, filename, node_id, port_name)

    @mcp.tool()
    def set_node_property(filename: str, node_id: int, property: str, value: Any) -> Dict[str, Any]:
        """Set a property value on a node (e.g. Seed, Duration, Scale, Style)."""
        return _set_node_property(config, filename, node_id, property, value)

    @mcp.tool()
    def create_terrain(name: str) -> Dict[str, Any]:
        """Create a new empty .terrain file in the projects directory (name without extension)."""
        return _create_terrain(config, name)

    @mcp.tool()
    def validate_terrain(filename: str) -> Dict[str, Any]:
        """Check ids, references, ports and connection records of a .terrain file."""
        return _validate_terrain(config, filename)

    return mcp


def run_server(transport: str = "stdio") -> None:
    """Run the MCP server.

    Args:
        transport: Transport type ('stdio' or 'sse').
    """
    configure_logging()
    mcp = create_server()
    logger.info("[%s] Server starting on %s transport", SERVER_NAME, transport)
    mcp.run(transport=transport)
