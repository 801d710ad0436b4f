"""Workflow Validator - Load-time checks on a workflow graph"""
from collections import Counter
from typing import Any, Dict, List, Set

from ..config.settings import settings
from ..domain.models import WorkflowDefinition
from ..domain.enums import NodeType


def validate_workflow(definition: WorkflowDefinition) -> Dict[str, Any]:
    """
    Validate workflow definition

    Errors make the graph unusable by the engine. Warnings flag graphs the
    engine can run but probably not as the author intended: several
    connections on one socket (the first declared one is taken) and nodes that
    cannot be reached from start.

    Returns validation result with errors and warnings
    """
    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []

    nodes = definition.nodes
    connections = definition.connections

    node_ids: Set[str] = set()
    for i, node in enumerate(nodes):
        if node.node_id in node_ids:
            errors.append({
                "type": "DUPLICATE_NODE_ID",
                "message": f"Duplicate node_id: {node.node_id}",
                "path": f"nodes[{i}].node_id"
            })
        node_ids.add(node.node_id)

    starts = [n for n in nodes if n.type == NodeType.START]
    if not starts:
        errors.append({
            "type": "NO_START",
            "message": "Workflow must have a start node",
            "path": "nodes"
        })
    elif len(starts) > 1:
        errors.append({
            "type": "MULTIPLE_START",
            "message": f"Workflow must have exactly one start node, found {len(starts)}",
            "path": "nodes"
        })

    if not any(n.type == NodeType.END for n in nodes):
        errors.append({
            "type": "NO_END",
            "message": "Workflow must have at least one end node",
            "path": "nodes"
        })

    # Validate connections
    for i, connection in enumerate(connections):
        if connection.from_node_id not in node_ids:
            errors.append({
                "type": "INVALID_CONNECTION_FROM",
                "message": f"Connection references non-existent from node: {connection.from_node_id}",
                "path": f"connections[{i}].from_node_id"
            })
        if connection.to_node_id not in node_ids:
            errors.append({
                "type": "INVALID_CONNECTION_TO",
                "message": f"Connection references non-existent to node: {connection.to_node_id}",
                "path": f"connections[{i}].to_node_id"
            })

    outgoing: Dict[str, List[Any]] = {}
    for connection in connections:
        if connection.to_node_id in node_ids:
            outgoing.setdefault(connection.from_node_id, []).append(connection)

    # Validate nodes
    for i, node in enumerate(nodes):
        edges = outgoing.get(node.node_id, [])

        if node.type == NodeType.END:
            if edges:
                errors.append({
                    "type": "END_HAS_OUTGOING",
                    "message": f"End node {node.node_id} must not have outgoing connections",
                    "path": f"nodes[{i}]"
                })
            continue

        if node.type.is_gate and not node.approvers:
            errors.append({
                "type": "MISSING_APPROVERS",
                "message": f"{node.type.value.capitalize()} node {node.node_id} must list approvers",
                "path": f"nodes[{i}].approvers"
            })

        if not edges:
            errors.append({
                "type": "NO_OUTGOING",
                "message": f"Node {node.node_id} has no outgoing connection",
                "path": f"nodes[{i}]"
            })
            continue

        sockets = Counter(c.from_point for c in edges)

        if node.type == NodeType.CONDITION:
            for j, rule in enumerate(node.config.condition_rules):
                if rule.output_point not in sockets:
                    errors.append({
                        "type": "CONDITION_SOCKET_UNCONNECTED",
                        "message": f"Rule '{rule.name or j}' on node {node.node_id} uses unconnected socket {rule.output_point}",
                        "path": f"nodes[{i}].config.condition_rules[{j}].output_point"
                    })
            default_socket = node.config.default_output_point or settings.default_condition_output_point
            if default_socket not in sockets:
                errors.append({
                    "type": "CONDITION_DEFAULT_UNCONNECTED",
                    "message": f"Default socket {default_socket} on node {node.node_id} is not connected",
                    "path": f"nodes[{i}].config.default_output_point"
                })
            ambiguous = [point for point, count in sockets.items() if count > 1]
        else:
            ambiguous = list(sockets) if len(edges) > 1 else []

        for point in ambiguous:
            warnings.append({
                "type": "AMBIGUOUS_EDGES",
                "message": f"Node {node.node_id} has several connections on socket {point}; the first declared is taken",
                "path": f"nodes[{i}]"
            })

    # Check for unreachable nodes (warning)
    if len(starts) == 1:
        reachable = _find_reachable_nodes(starts[0].node_id, outgoing)
        for node_id in sorted(node_ids - reachable):
            warnings.append({
                "type": "UNREACHABLE_NODE",
                "message": f"Node {node_id} is not reachable from start",
                "path": None
            })

    return {
        "is_valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings
    }


def _find_reachable_nodes(start_node_id: str, outgoing: Dict[str, List[Any]]) -> Set[str]:
    """Find all nodes reachable from start"""
    reachable = {start_node_id}
    to_visit = [start_node_id]

    while to_visit:
        current = to_visit.pop()
        for connection in outgoing.get(current, []):
            if connection.to_node_id not in reachable:
                reachable.add(connection.to_node_id)
                to_visit.append(connection.to_node_id)

    return reachable
