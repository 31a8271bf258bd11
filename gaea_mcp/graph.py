"""
Graph editing for .terrain documents.

Node, port and connection operations work directly on the JSON tree held
by a ``TerrainFile``. Every operation checks its arguments before touching
the tree, so a failed call leaves the document exactly as it was.

Connections are stored on the destination port as a ``Record``:

    {"$id": "57", "From": 1, "To": 2, "FromPort": "Out", "ToPort": "In", "IsValid": true}

Output ports never carry a record.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import AlreadyDisconnectedError, NotFoundError
from .refs import ID_KEY, REF_KEY, TYPE_KEY, VALUES_KEY, IdAllocator, new_allocator
from .terrain import TerrainFile

logger = logging.getLogger(__name__)

DEFAULT_POSITION = (26500, 26250)

# Keys every node ends with, in this order. New properties go in front of them.
TRAILING_NODE_KEYS = ("Id", "Name", "Position", "Ports", "Modifiers")

# Structural keys that property edits must never overwrite
RESERVED_PROPERTY_KEYS = frozenset({ID_KEY, REF_KEY, TYPE_KEY, VALUES_KEY, "Id", "Position", "Ports", "Modifiers"})

# Keys that are not type-specific properties when summarising a node
INTERNAL_KEYS = frozenset({
    ID_KEY, TYPE_KEY, "Id", "Name", "Position", "Ports", "Modifiers",
    "Version", "NodeSize", "GraphIndex",
})

PORT_TYPES = (
    "PrimaryIn",
    "PrimaryIn, Required",
    "PrimaryOut",
    "In",
    "In, Required",
    "Out",
)
OUTPUT_PORT_TYPES = frozenset({"PrimaryOut", "Out"})

_SHORT_TYPE_RE = re.compile(r"\.(\w+),")


# ============================================================================
# LOOKUP HELPERS
# ============================================================================

def short_type_name(dotnet_type):
    """Extract the class name from a .NET ``$type``.

    ``"QuadSpinner.Gaea.Nodes.Erosion2, Gaea.Nodes"`` -> ``"Erosion2"``
    """
    if not dotnet_type:
        return "Unknown"
    match = _SHORT_TYPE_RE.search(dotnet_type)
    return match.group(1) if match else dotnet_type


def is_output_port_type(port_type):
    return port_type in OUTPUT_PORT_TYPES


def _node_ports(node) -> List[Dict[str, Any]]:
    ports = node.get("Ports")
    if isinstance(ports, dict):
        values = ports.get(VALUES_KEY)
        if isinstance(values, list):
            return values
    return []


def get_node(tf: TerrainFile, node_id: int) -> Dict[str, Any]:
    """Return the node object for ``node_id``.

    Raises:
        NotFoundError: if no such node exists.
    """
    entry = tf.nodes.get(str(node_id))
    if not isinstance(entry, dict):
        raise NotFoundError(f"Node {node_id} not found")
    return tf.resolve(entry)


def find_port(tf: TerrainFile, node_id: int, port_name: str) -> Dict[str, Any]:
    """Return the port named ``port_name`` on node ``node_id``.

    Raises:
        NotFoundError: if the node or the port does not exist.
    """
    node = get_node(tf, node_id)
    for port in _node_ports(node):
        port = tf.resolve(port)
        if port.get("Name") == port_name:
            return port
    available = [tf.resolve(p).get("Name") for p in _node_ports(node)]
    raise NotFoundError(
        f'Port "{port_name}" not found on node {node_id}. Available: {available}'
    )


# ============================================================================
# PROPERTY VALUES
# ============================================================================

def _adopt_value(value, alloc: IdAllocator):
    """Deep-copy a caller-supplied value, re-minting any ``$id`` inside it.

    Aliases cannot be honoured because their targets live in some other
    document, so they are rejected.
    """
    if isinstance(value, dict):
        if REF_KEY in value:
            raise ValueError(f"Property values may not contain $ref aliases: {value!r}")
        adopted = {}
        if ID_KEY in value:
            adopted[ID_KEY] = alloc()
        for key, item in value.items():
            if key == ID_KEY:
                continue
            adopted[key] = _adopt_value(item, alloc)
        return adopted
    if isinstance(value, list):
        return [_adopt_value(item, alloc) for item in value]
    return value


def _check_property_key(key):
    if not isinstance(key, str) or not key:
        raise ValueError(f"Property name must be a non-empty string, got {key!r}")
    if key in RESERVED_PROPERTY_KEYS:
        raise ValueError(f'"{key}" is a structural node key and cannot be set as a property')


def _insert_before_trailing(node: Dict[str, Any], key: str, value) -> None:
    """Insert a new key ahead of the fixed trailing node keys, in place."""
    items = list(node.items())
    position = next(
        (index for index, (existing, _) in enumerate(items) if existing in TRAILING_NODE_KEYS),
        len(items),
    )
    items.insert(position, (key, value))
    node.clear()
    node.update(items)


# ============================================================================
# MUTATIONS
# ============================================================================

def _normalize_port_defs(port_defs: Iterable[Any]) -> List[Tuple[str, str]]:
    normalized = []
    seen = set()
    for port_def in port_defs:
        if isinstance(port_def, Mapping):
            name, port_type = port_def.get("name"), port_def.get("type")
        else:
            try:
                name, port_type = port_def
            except (TypeError, ValueError):
                raise ValueError(f"Malformed port definition: {port_def!r}") from None
        if not isinstance(name, str) or not name:
            raise ValueError(f"Port definition needs a name: {port_def!r}")
        if port_type not in PORT_TYPES:
            raise ValueError(f'Unknown port type "{port_type}" for port "{name}". Expected one of {list(PORT_TYPES)}')
        if name in seen:
            raise ValueError(f'Duplicate port name "{name}"')
        seen.add(name)
        normalized.append((name, port_type))
    return normalized


def add_node(
    tf: TerrainFile,
    dotnet_type: str,
    port_defs: Iterable[Any],
    name: Optional[str] = None,
    position: Optional[Tuple[float, float]] = None,
    properties: Optional[Mapping[str, Any]] = None,
) -> int:
    """
    Add a node to the graph and return its new node id.

    Args:
        tf: Document to edit.
        dotnet_type: Full ``$type`` string, e.g.
            ``"QuadSpinner.Gaea.Nodes.Mountain, Gaea.Nodes"``.
        port_defs: Port definitions, each a ``{"name", "type"}`` mapping or a
            ``(name, type)`` pair. Types are Gaea capability tags such as
            ``"PrimaryIn, Required"`` or ``"Out"``.
        name: Display name; defaults to the short type name.
        position: ``(x, y)`` canvas position; defaults to ``DEFAULT_POSITION``.
        properties: Initial type-specific properties.

    Returns:
        The new node id (current max + 1).

    Raises:
        ValueError: on malformed port definitions or property names.
    """
    ports = _normalize_port_defs(port_defs)
    properties = dict(properties or {})
    if "Name" in properties:
        display_name = properties.pop("Name")
        if name is None:
            name = display_name
    for key in properties:
        _check_property_key(key)

    node_id = tf.max_node_id() + 1
    # One allocator for the whole node so no two ids collide
    alloc = new_allocator(tf.raw)
    node_ref = alloc()
    adopted = {key: _adopt_value(value, alloc) for key, value in properties.items()}
    x, y = position if position is not None else DEFAULT_POSITION

    port_values = [
        {
            ID_KEY: alloc(),
            "Name": port_name,
            "Type": port_type,
            "IsExporting": True,
            "Parent": {REF_KEY: node_ref},
        }
        for port_name, port_type in ports
    ]

    node: Dict[str, Any] = {ID_KEY: node_ref, TYPE_KEY: dotnet_type}
    node.update(adopted)
    node["Id"] = node_id
    node["Name"] = name if name is not None else short_type_name(dotnet_type)
    node["Position"] = {ID_KEY: alloc(), "X": x, "Y": y}
    node["Ports"] = {ID_KEY: alloc(), VALUES_KEY: port_values}
    node["Modifiers"] = {ID_KEY: alloc(), VALUES_KEY: []}

    tf.nodes[str(node_id)] = node
    tf.invalidate_refs()
    logger.debug("Added node %s (%s) with %d ports", node_id, node["Name"], len(port_values))
    return node_id


def remove_node(tf: TerrainFile, node_id: int) -> None:
    """
    Remove a node and every connection that leaves it.

    Records on the removed node's own ports go away with it; records on
    other nodes whose ``From`` is the removed node are deleted. A
    ``State.SelectedNode`` pointing at the node is reset to -1.

    Raises:
        NotFoundError: if the node does not exist.
    """
    key = str(node_id)
    get_node(tf, node_id)

    cleared = 0
    for other_id, other in tf.iter_nodes():
        if other_id == node_id:
            continue
        for port in _node_ports(other):
            port = tf.resolve(port)
            record = port.get("Record")
            if isinstance(record, dict) and record.get("From") == node_id:
                del port["Record"]
                cleared += 1

    del tf.nodes[key]
    tf.invalidate_refs()

    state = tf.state
    if state is not None and state.get("SelectedNode") == node_id:
        state["SelectedNode"] = -1

    logger.debug("Removed node %s and %d outgoing connection(s)", node_id, cleared)


def connect_ports(tf: TerrainFile, from_id: int, from_port: str, to_id: int, to_port: str) -> Dict[str, Any]:
    """
    Connect ``from_id.from_port`` to ``to_id.to_port``.

    Any existing record on the destination port is replaced. Port
    capability tags are not checked; see ``validator.validate_connection``.

    Returns:
        The new connection record.

    Raises:
        NotFoundError: if either node or port does not exist.
    """
    get_node(tf, to_id)
    get_node(tf, from_id)
    find_port(tf, from_id, from_port)
    destination = find_port(tf, to_id, to_port)

    alloc = new_allocator(tf.raw)
    record = {
        ID_KEY: alloc(),
        "From": from_id,
        "To": to_id,
        "FromPort": from_port,
        "ToPort": to_port,
        "IsValid": True,
    }
    destination["Record"] = record
    tf.invalidate_refs()
    logger.debug("Connected %s:%s -> %s:%s", from_id, from_port, to_id, to_port)
    return record


def disconnect_port(tf: TerrainFile, node_id: int, port_name: str) -> Dict[str, Any]:
    """
    Remove the incoming connection record from a port.

    Returns:
        The record that was removed.

    Raises:
        NotFoundError: if the node or port does not exist.
        AlreadyDisconnectedError: if the port has no record.
    """
    port = find_port(tf, node_id, port_name)
    if "Record" not in port:
        raise AlreadyDisconnectedError(f'Port "{port_name}" on node {node_id} is not connected')
    record = port.pop("Record")
    tf.invalidate_refs()
    logger.debug("Disconnected %s:%s", node_id, port_name)
    return record


def set_node_property(tf: TerrainFile, node_id: int, key: str, value: Any) -> None:
    """
    Set a type-specific property on a node.

    The value is not checked against the node type. An existing key keeps
    its place; a new key is inserted before the trailing ``Id``/``Name``/
    ``Position``/``Ports``/``Modifiers`` block.

    Raises:
        NotFoundError: if the node does not exist.
        ValueError: for structural keys or values containing ``$ref``.
    """
    node = get_node(tf, node_id)
    _check_property_key(key)
    adopted = _adopt_value(value, new_allocator(tf.raw))
    if key in node:
        node[key] = adopted
    else:
        _insert_before_trailing(node, key, adopted)
    tf.invalidate_refs()
    logger.debug("Set %s=%r on node %s", key, adopted, node_id)


# ============================================================================
# QUERIES
# ============================================================================

def summarize_node(node, resolve=None) -> Dict[str, Any]:
    """Condense a node object into a plain summary dict for reporting."""
    resolve = resolve or (lambda value: value)
    ports = []
    for port in _node_ports(node):
        port = resolve(port)
        entry = {"name": port.get("Name"), "type": port.get("Type")}
        record = port.get("Record")
        if isinstance(record, dict) and record.get("From") is not None:
            entry["connectedFrom"] = record["From"]
            entry["connectedFromPort"] = record.get("FromPort")
        ports.append(entry)

    properties = {key: value for key, value in node.items() if key not in INTERNAL_KEYS}
    position = node.get("Position") or {}

    return {
        "id": node.get("Id"),
        "name": node.get("Name"),
        "type": short_type_name(node.get(TYPE_KEY)),
        "dotnetType": node.get(TYPE_KEY, ""),
        "position": {"x": position.get("X", 0), "y": position.get("Y", 0)},
        "ports": ports,
        "properties": properties,
    }


def list_nodes(tf: TerrainFile) -> List[Dict[str, Any]]:
    return [summarize_node(node, tf.resolve) for _, node in tf.iter_nodes()]


def list_connections(tf: TerrainFile, include_invalid: bool = False) -> List[Dict[str, Any]]:
    """Return every connection record in the graph as ``from/fromPort/to/toPort`` dicts."""
    connections = []
    for _, node in tf.iter_nodes():
        for port in _node_ports(node):
            record = tf.resolve(port).get("Record")
            if not isinstance(record, dict):
                continue
            if not record.get("IsValid") and not include_invalid:
                continue
            connections.append({
                "from": record.get("From"),
                "fromPort": record.get("FromPort"),
                "to": record.get("To"),
                "toPort": record.get("ToPort"),
            })
    return connections


__all__ = [
    "DEFAULT_POSITION",
    "PORT_TYPES",
    "OUTPUT_PORT_TYPES",
    "TRAILING_NODE_KEYS",
    "RESERVED_PROPERTY_KEYS",
    "short_type_name",
    "is_output_port_type",
    "get_node",
    "find_port",
    "add_node",
    "remove_node",
    "connect_ports",
    "disconnect_port",
    "set_node_property",
    "summarize_node",
    "list_nodes",
    "list_connections",
]
