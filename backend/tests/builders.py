"""Workflow definition builders shared by the tests"""
from typing import Any, Dict, List, Optional

from signoff.domain.models import WorkflowDefinition


def node(node_id: str, type: str, approvers: Optional[List[str]] = None, **config) -> Dict[str, Any]:
    doc = {"node_id": node_id, "type": type, "label": node_id.replace("_", " ").title()}
    if approvers is not None:
        doc["approvers"] = approvers
    if config:
        doc["config"] = config
    return doc


def edge(from_node_id: str, to_node_id: str, from_point: str = "out") -> Dict[str, Any]:
    return {"from_node_id": from_node_id, "to_node_id": to_node_id, "from_point": from_point}


def rule(output_point: str, field: str, operator: str, value: Any = None, name: str = "") -> Dict[str, Any]:
    return {
        "rule_id": output_point,
        "name": name,
        "condition_group": {
            "logic": "AND",
            "conditions": [{"field": field, "operator": operator, "value": value}]
        },
        "output_point": output_point
    }


def workflow(workflow_id: str, nodes: List[Dict[str, Any]], connections: List[Dict[str, Any]]) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate({
        "workflow_id": workflow_id,
        "name": workflow_id,
        "nodes": nodes,
        "connections": connections
    })


def amount_workflow() -> WorkflowDefinition:
    """start -> single(A) -> condition(amount > 1000: out-high, else out-low) -> end"""
    return workflow(
        "wf-amount",
        [
            node("start", "start"),
            node("review", "single", ["A"]),
            node(
                "amount_check", "condition",
                condition_rules=[rule("out-high", "amount", ">", 1000, name="Large amount")],
                default_output_point="out-low"
            ),
            node("end_high", "end"),
            node("end_low", "end"),
        ],
        [
            edge("start", "review"),
            edge("review", "amount_check"),
            edge("amount_check", "end_high", "out-high"),
            edge("amount_check", "end_low", "out-low"),
        ]
    )


def gate_workflow(gate_type: str, approvers: List[str]) -> WorkflowDefinition:
    """start -> <gate> -> end"""
    return workflow(
        f"wf-{gate_type}",
        [node("start", "start"), node("gate", gate_type, approvers), node("end", "end")],
        [edge("start", "gate"), edge("gate", "end")]
    )

