"""
Validation functions for .terrain graphs.

Nothing here is enforced by the graph editing functions. These checks are
advisory: the MCP tools run them on request, and ``validate_terrain``
produces a report instead of raising.
"""

from collections import Counter

from . import catalogue
from .errors import DanglingReferenceError, NotFoundError
from .graph import find_port, get_node, is_output_port_type
from .refs import VALUES_KEY, iter_ids, iter_refs


def validate_connection(tf, from_id, from_port, to_id, to_port):
    """
    Check that a proposed connection runs from an output to an input.

    Args:
        tf: The document.
        from_id, from_port: Source node id and port name.
        to_id, to_port: Destination node id and port name.

    Returns:
        Tuple of (ok: bool, error: str or None)
    """
    try:
        source = find_port(tf, from_id, from_port)
        destination = find_port(tf, to_id, to_port)
    except NotFoundError as e:
        return False, str(e)

    if from_id == to_id:
        return False, f"Cannot connect node {from_id} to itself"
    if not is_output_port_type(source.get("Type")):
        return False, (
            f'Source port is not an output: {from_id}:{from_port} ({source.get("Type")})'
        )
    if is_output_port_type(destination.get("Type")):
        return False, (
            f'Destination port is not an input: {to_id}:{to_port} ({destination.get("Type")})'
        )
    return True, None


def _ports_of(tf, node):
    ports = node.get("Ports")
    values = ports.get(VALUES_KEY) if isinstance(ports, dict) else None
    return [tf.resolve(port) for port in values or []]


def validate_terrain(tf):
    """Run structural checks over the whole document and report the issues found."""
    result = {
        "status": "OK",
        "issues": [],
        "warnings": [],
        "checks": [],
    }

    def _add_check(name, ok, detail=None):
        result["checks"].append({
            "name": name,
            "ok": ok,
            "detail": detail,
        })
        if not ok:
            result["issues"].append(detail or name)

    id_counts = Counter(iter_ids(tf.raw))
    duplicates = sorted(ref_id for ref_id, count in id_counts.items() if count > 1)
    _add_check(
        "unique_ref_ids",
        not duplicates,
        f"Duplicate $id values: {duplicates}" if duplicates else None,
    )

    dangling = sorted({ref for ref in iter_refs(tf.raw) if ref not in id_counts})
    _add_check(
        "refs_resolve",
        not dangling,
        f"Unresolved $ref values: {dangling}" if dangling else None,
    )

    mismatched = []
    unique_ports = []
    bad_records = []
    misplaced_records = []
    unknown_types = []
    try:
        for node_id, node in tf.iter_nodes():
            if node.get("Id") != node_id:
                mismatched.append((node_id, node.get("Id")))

            dotnet_type = node.get("$type")
            if dotnet_type and not catalogue.get_node_type_by_dotnet(dotnet_type):
                unknown_types.append((node_id, dotnet_type))

            ports = _ports_of(tf, node)
            names = Counter(port.get("Name") for port in ports)
            repeated = sorted(name for name, count in names.items() if count > 1)
            if repeated:
                unique_ports.append((node_id, repeated))

            for port in ports:
                record = port.get("Record")
                if not isinstance(record, dict):
                    continue
                label = f"{node_id}:{port.get('Name')}"
                if is_output_port_type(port.get("Type")):
                    misplaced_records.append(label)
                if record.get("To") != node_id or record.get("ToPort") != port.get("Name"):
                    bad_records.append(f"{label} record points at {record.get('To')}:{record.get('ToPort')}")
                    continue
                try:
                    find_port(tf, record.get("From"), record.get("FromPort"))
                except NotFoundError:
                    bad_records.append(f"{label} from missing {record.get('From')}:{record.get('FromPort')}")
    except DanglingReferenceError as e:
        result["issues"].append(f"Node walk stopped early: {e}")

    _add_check(
        "node_keys_match_ids",
        not mismatched,
        f"Node keys differ from node Id: {mismatched}" if mismatched else None,
    )
    _add_check(
        "unique_port_names",
        not unique_ports,
        f"Duplicate port names: {unique_ports}" if unique_ports else None,
    )
    _add_check(
        "records_resolve",
        not bad_records,
        f"Broken connection records: {bad_records}" if bad_records else None,
    )
    _add_check(
        "records_on_inputs",
        not misplaced_records,
        f"Connection records on output ports: {misplaced_records}" if misplaced_records else None,
    )

    selected_issue = check_selected_node(tf)
    _add_check("selected_node_exists", selected_issue is None, selected_issue)

    # Unknown types are legal; the catalogue only covers common nodes
    result["checks"].append({
        "name": "known_node_types",
        "ok": not unknown_types,
        "detail": f"Node types not in catalogue: {unknown_types}" if unknown_types else None,
    })
    if unknown_types:
        result["warnings"].append(f"Node types not in catalogue: {unknown_types}")

    result["status"] = "ERROR" if result["issues"] else "OK"
    return result


def check_selected_node(tf):
    """Return an issue string if ``State.SelectedNode`` points at a missing node."""
    state = tf.state
    if state is None:
        return None
    selected = state.get("SelectedNode", -1)
    if selected in (-1, None):
        return None
    try:
        get_node(tf, selected)
    except NotFoundError:
        return f"SelectedNode {selected} does not exist"
    return None


__all__ = ["validate_connection", "validate_terrain", "check_selected_node"]
