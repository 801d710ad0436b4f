"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class InstanceStatus(str, Enum):
    """Form instance status"""
    DRAFT = "draft"        # Applied but not yet submitted into the workflow
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (InstanceStatus.APPROVED, InstanceStatus.REJECTED)


class NodeType(str, Enum):
    """Types of workflow graph nodes"""
    START = "start"
    SINGLE = "single"          # One approver signs off
    PARALLEL = "parallel"      # Every listed approver signs off, any order
    SEQUENTIAL = "sequential"  # Every listed approver signs off, in list order
    CONDITION = "condition"    # Automatic branch on form data
    END = "end"

    @property
    def is_gate(self) -> bool:
        """Human sign-off node"""
        return self in (NodeType.SINGLE, NodeType.PARALLEL, NodeType.SEQUENTIAL)


class ApprovalResult(str, Enum):
    """Decision submitted by an approver"""
    APPROVE = "approve"
    REJECT = "reject"


class HistoryAction(str, Enum):
    """Actions recorded in approval history"""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    WITHDRAW = "withdraw"
    CONDITION = "condition"
    COMPLETE = "complete"


class HistoryResult(str, Enum):
    """Outcome recorded alongside a history action"""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    MATCHED = "matched"    # Condition rule matched
    DEFAULT = "default"    # Condition fell through to default socket


class ConditionOperator(str, Enum):
    """Condition operators for branch rules"""
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_THAN_OR_EQUALS = ">="
    LESS_THAN_OR_EQUALS = "<="
    EQUALS = "=="
    NOT_EQUALS = "!="
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"


class ConditionLogic(str, Enum):
    """How conditions in a group combine"""
    AND = "AND"
    OR = "OR"


class AuditAction(str, Enum):
    """Audit log actions for applications"""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    WITHDRAW = "withdraw"
