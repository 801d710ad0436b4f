"""Approval Engine - Workflow execution core"""
from .approval_engine import ApprovalEngine
from .condition_evaluator import ConditionEvaluator
from .workflow_graph import WorkflowGraph
from .workflow_validator import validate_workflow
from .audit_writer import AuditWriter

__all__ = [
    "ApprovalEngine",
    "ConditionEvaluator",
    "WorkflowGraph",
    "validate_workflow",
    "AuditWriter",
]
