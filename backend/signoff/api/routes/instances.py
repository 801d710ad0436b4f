"""Instance API Routes - Apply, submit, sign off and inspect applications"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import BaseModel, Field

from ..deps import get_correlation_id_dep, get_instance_service
from ...domain.models import (
    FormInstance, HistoryRecord, AuditLogEntry, ApprovalOutcome, CurrentNodeInfo
)
from ...services.instance_service import InstanceService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class ApplyRequest(BaseModel):
    """Request to create a draft application"""
    workflow_id: str = Field(..., min_length=1)
    applicant_id: str = Field(..., min_length=1)
    applicant_name: str = ""
    form_name: str = Field("", max_length=200)
    data: Dict[str, Any] = Field(default_factory=dict)


class ApproveRequest(BaseModel):
    """Request for approve/reject"""
    actor_id: str = Field(..., min_length=1)
    actor_name: str = ""
    result: str = Field(..., description="approve or reject")
    comment: Optional[str] = Field(None, max_length=2000)


class WithdrawRequest(BaseModel):
    """Request to withdraw a pending application"""
    actor_id: str = Field(..., min_length=1)
    actor_name: str = ""


class InstanceListResponse(BaseModel):
    """Response for instance list"""
    items: List[FormInstance]
    total: int


class ApproversResponse(BaseModel):
    """Who may sign off right now"""
    instance_id: str
    approvers: List[str]


# ============================================================================
# Routes
# ============================================================================

@router.post("", response_model=FormInstance, status_code=status.HTTP_201_CREATED)
def apply(
    request: ApplyRequest,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Create a draft application

    The application number is assigned here; the workflow starts on initialize.
    """
    return service.apply(
        workflow_id=request.workflow_id,
        applicant_id=request.applicant_id,
        applicant_name=request.applicant_name,
        data=request.data,
        form_name=request.form_name
    )


@router.get("/pending", response_model=InstanceListResponse)
def list_pending(
    actor_id: str = Query(..., min_length=1),
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Applications currently waiting on the given actor"""
    items = service.list_pending_for(actor_id)
    return InstanceListResponse(items=items, total=len(items))


@router.post("/{instance_id}/initialize", response_model=ApprovalOutcome)
def initialize(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Submit a draft application into its workflow"""
    return service.submit(instance_id)


@router.post("/{instance_id}/approve", response_model=ApprovalOutcome)
def approve(
    instance_id: str,
    request: ApproveRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Approve or reject at the current node

    Resending with the same Idempotency-Key returns the first response.
    """
    return service.approve(
        instance_id=instance_id,
        actor_id=request.actor_id,
        actor_name=request.actor_name,
        result=request.result,
        comment=request.comment,
        idempotency_key=idempotency_key
    )


@router.post("/{instance_id}/withdraw", response_model=FormInstance)
def withdraw(
    instance_id: str,
    request: WithdrawRequest,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Applicant withdraws a pending application"""
    return service.withdraw(instance_id, request.actor_id, request.actor_name)


@router.get("/{instance_id}", response_model=FormInstance)
def get_instance(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    return service.get_instance(instance_id)


@router.get("/{instance_id}/current-node", response_model=Optional[CurrentNodeInfo])
def get_current_node(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Current node with gate progress; null before submission"""
    return service.get_current_node_info(instance_id)


@router.get("/{instance_id}/approvers", response_model=ApproversResponse)
def get_approvers(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    return ApproversResponse(
        instance_id=instance_id,
        approvers=service.get_current_approvers(instance_id)
    )


@router.get("/{instance_id}/history", response_model=List[HistoryRecord])
def get_history(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Approval history in the order it was written"""
    return service.get_history(instance_id)


@router.get("/{instance_id}/audit-log", response_model=List[AuditLogEntry])
def get_audit_log(
    instance_id: str,
    service: InstanceService = Depends(get_instance_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    return service.get_audit_log(instance_id)
