"""
Seed Data Script - Creates sample workflows for testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from signoff.repositories import build_mongo_repositories
from signoff.repositories.mongo_client import create_indexes
from signoff.domain.models import WorkflowDefinition
from signoff.services.workflow_service import WorkflowService


PURCHASE_WORKFLOW = {
    "workflow_id": "purchase-request",
    "name": "Purchase Request",
    "description": "Large purchases need both finance approvers, small ones the team lead",
    "nodes": [
        {"node_id": "start", "type": "start", "label": "Start"},
        {
            "node_id": "amount_check",
            "type": "condition",
            "label": "Amount check",
            "config": {
                "condition_rules": [
                    {
                        "rule_id": "large",
                        "name": "Over 1000",
                        "condition_group": {
                            "logic": "AND",
                            "conditions": [{"field": "amount", "operator": ">", "value": 1000}]
                        },
                        "output_point": "out-high"
                    }
                ],
                "default_output_point": "out-low"
            }
        },
        {
            "node_id": "finance",
            "type": "parallel",
            "label": "Finance sign-off",
            "approvers": ["finance.lead", "finance.controller"]
        },
        {"node_id": "team_lead", "type": "single", "label": "Team lead", "approvers": ["team.lead"]},
        {"node_id": "end", "type": "end", "label": "Done"}
    ],
    "connections": [
        {"from_node_id": "start", "to_node_id": "amount_check"},
        {"from_node_id": "amount_check", "to_node_id": "finance", "from_point": "out-high"},
        {"from_node_id": "amount_check", "to_node_id": "team_lead", "from_point": "out-low"},
        {"from_node_id": "finance", "to_node_id": "end"},
        {"from_node_id": "team_lead", "to_node_id": "end"}
    ]
}

LEAVE_WORKFLOW = {
    "workflow_id": "leave-request",
    "name": "Leave Request",
    "description": "Manager then HR, in that order",
    "nodes": [
        {"node_id": "start", "type": "start", "label": "Start"},
        {
            "node_id": "review",
            "type": "sequential",
            "label": "Manager and HR review",
            "approvers": ["manager", "hr.partner"]
        },
        {"node_id": "end", "type": "end", "label": "Done"}
    ],
    "connections": [
        {"from_node_id": "start", "to_node_id": "review"},
        {"from_node_id": "review", "to_node_id": "end"}
    ]
}


def create_sample_workflows():
    """Store the sample workflows, skipping ones that already exist"""
    service = WorkflowService(build_mongo_repositories())

    for raw in (PURCHASE_WORKFLOW, LEAVE_WORKFLOW):
        definition = WorkflowDefinition.model_validate(raw)
        if service.repo.get_by_id(definition.workflow_id):
            print(f"Workflow {definition.workflow_id} already exists. Skipping.")
            continue
        result = service.save_workflow(definition)
        warnings = result["validation"]["warnings"]
        print(f"Created workflow: {definition.workflow_id} ({len(warnings)} warnings)")

    print("\n[OK] Seed data created successfully!")


def main():
    print("=== Seeding database ===")
    print("-" * 40)

    create_indexes()
    create_sample_workflows()

    print("-" * 40)
    print("Done!")


if __name__ == "__main__":
    main()
