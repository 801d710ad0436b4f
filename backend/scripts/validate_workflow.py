"""
Script to validate a workflow definition

Run:
    python -m scripts.validate_workflow path/to/workflow.json
    python -m scripts.validate_workflow --workflow-id purchase-request
"""
import argparse
import json
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from signoff.domain.models import WorkflowDefinition
from signoff.engine.workflow_validator import validate_workflow
from signoff.repositories import get_repositories


def load_definition(args) -> WorkflowDefinition:
    if args.workflow_id:
        return get_repositories().workflows.get_by_id_or_raise(args.workflow_id)
    with open(args.path, encoding="utf-8") as f:
        return WorkflowDefinition.model_validate(json.load(f))


def print_report(definition: WorkflowDefinition, result: dict) -> None:
    print(f"Workflow: {definition.name or definition.workflow_id}")
    print(f"   Nodes: {len(definition.nodes)}")
    print(f"   Connections: {len(definition.connections)}")
    print()

    node_types = {}
    for node in definition.nodes:
        node_types[node.type.value] = node_types.get(node.type.value, 0) + 1
    for node_type, count in node_types.items():
        print(f"   - {node_type}: {count}")
    print()

    print("=" * 60)
    if result["is_valid"]:
        print("[OK] Workflow is valid")
    else:
        print(f"[FAIL] {len(result['errors'])} error(s)")
    for error in result["errors"]:
        print(f"   ERROR   {error['type']}: {error['message']}")
    for warning in result["warnings"]:
        print(f"   WARNING {warning['type']}: {warning['message']}")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(description="Validate a sign-off workflow definition")
    parser.add_argument("path", nargs="?", help="JSON file holding the workflow definition")
    parser.add_argument("--workflow-id", help="Validate a stored workflow instead of a file")
    args = parser.parse_args()

    if not args.path and not args.workflow_id:
        parser.error("give a JSON file or --workflow-id")

    definition = load_definition(args)
    result = validate_workflow(definition)
    print_report(definition, result)
    sys.exit(0 if result["is_valid"] else 1)


if __name__ == "__main__":
    main()
