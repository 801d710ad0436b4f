"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import (
    InstanceStatus, NodeType, HistoryAction, HistoryResult, AuditAction
)


DEFAULT_OUTPUT_POINT = "out"
DEFAULT_INPUT_POINT = "in"


# ============================================================================
# Condition Rules
# ============================================================================

class Condition(BaseModel):
    """Single comparison against one form field"""
    model_config = ConfigDict(extra="ignore")

    field: str = Field(..., description="Form field key (dot notation allowed)")
    # Kept as a plain string: unknown operators evaluate to False instead of failing to load
    operator: str = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Value to compare against")


class ConditionGroup(BaseModel):
    """Group of conditions with AND/OR logic"""
    model_config = ConfigDict(extra="ignore")

    logic: str = Field("AND", description="AND or OR")
    conditions: List[Condition] = Field(default_factory=list)


class ConditionRule(BaseModel):
    """Branch rule on a condition node"""
    model_config = ConfigDict(extra="ignore")

    rule_id: Optional[str] = Field(None, description="Unique rule ID")
    name: str = Field("", description="Display name")
    condition_group: ConditionGroup = Field(default_factory=ConditionGroup)
    output_point: str = Field(..., description="Output socket taken when the rule matches")


class NodeConfig(BaseModel):
    """Node configuration (condition nodes only)"""
    model_config = ConfigDict(extra="ignore")

    condition_rules: List[ConditionRule] = Field(default_factory=list)
    default_output_point: Optional[str] = Field(
        None,
        description="Socket taken when no rule matches (engine default applies when unset)"
    )


# ============================================================================
# Workflow Definition
# ============================================================================

class WorkflowNode(BaseModel):
    """Workflow graph node"""
    model_config = ConfigDict(extra="ignore")

    node_id: str = Field(..., description="Unique node ID")
    type: NodeType = Field(..., description="Node type")
    label: str = Field("", description="Display label")
    approvers: List[str] = Field(default_factory=list, description="Ordered approver identities")
    config: NodeConfig = Field(default_factory=NodeConfig)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        # Older designer builds saved sequential nodes as "serial"
        if value == "serial":
            return NodeType.SEQUENTIAL
        return value


class WorkflowConnection(BaseModel):
    """Directed edge between two nodes"""
    model_config = ConfigDict(extra="ignore")

    from_node_id: str = Field(..., description="Source node ID")
    to_node_id: str = Field(..., description="Target node ID")
    from_point: str = Field(DEFAULT_OUTPUT_POINT, description="Output socket on the source node")
    to_point: str = Field(DEFAULT_INPUT_POINT, description="Input socket on the target node")


class WorkflowDefinition(BaseModel):
    """Workflow graph - read-only once referenced by an instance"""
    model_config = ConfigDict(extra="ignore")

    workflow_id: str
    name: str = ""
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# Instance & Gate State
# ============================================================================

class ParallelGateState(BaseModel):
    """Progress of an all-of parallel gate"""
    approved: List[str] = Field(default_factory=list)
    required: int = 0


class SequentialGateState(BaseModel):
    """Progress of an in-order sequential gate"""
    current_index: int = 0
    # Snapshot taken on first visit; later edits to the node do not affect it
    approvers: List[str] = Field(default_factory=list)


class FormInstance(BaseModel):
    """One submission traversing a workflow"""
    model_config = ConfigDict(extra="ignore")

    instance_id: str
    application_no: str = ""
    workflow_id: str
    form_name: str = ""
    applicant_id: str
    applicant_name: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    status: InstanceStatus = InstanceStatus.DRAFT
    current_node_id: Optional[str] = None
    parallel_state: Dict[str, ParallelGateState] = Field(default_factory=dict)
    sequential_state: Dict[str, SequentialGateState] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


# ============================================================================
# History & Audit
# ============================================================================

class HistoryRecord(BaseModel):
    """Approval history record (append-only)"""
    model_config = ConfigDict(extra="ignore")

    history_id: str
    instance_id: str
    sequence: int = Field(..., description="Per-instance monotonic order")
    node_id: Optional[str] = None
    node_name: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    action: HistoryAction
    comment: str = ""
    result: HistoryResult
    timestamp: datetime


class AuditLogEntry(BaseModel):
    """Audit log entry (append-only)"""
    model_config = ConfigDict(extra="ignore")

    audit_log_id: str
    action: AuditAction
    module: str = "application"
    target_id: str
    target_name: str = ""
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    result: str = "success"
    details: str = ""
    timestamp: datetime
    correlation_id: Optional[str] = None


# ============================================================================
# Engine Results
# ============================================================================

class GateProgress(BaseModel):
    """Sign-off progress at a multi-approver gate"""
    approved: int
    required: int


class ApprovalOutcome(BaseModel):
    """Result of an engine transition"""
    status: InstanceStatus
    message: str
    current_node_id: Optional[str] = None
    progress: Optional[GateProgress] = None
    next_node: Optional[WorkflowNode] = None


class CurrentNodeInfo(BaseModel):
    """Read-only snapshot of the current node for display"""
    node: WorkflowNode
    approved_count: int = 0
    total_count: int = 1
    approvers: List[str] = Field(default_factory=list)
    next_approvers: List[str] = Field(default_factory=list)
