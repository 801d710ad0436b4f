"""Workflow API Routes - Store and validate workflow definitions"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_correlation_id_dep, get_workflow_service
from ...domain.models import WorkflowDefinition
from ...domain.errors import ValidationError
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class ValidationResult(BaseModel):
    """Validation result"""
    is_valid: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class SaveWorkflowResponse(BaseModel):
    """Response after storing a workflow"""
    workflow: WorkflowDefinition
    validation: ValidationResult


# ============================================================================
# Routes
# ============================================================================

@router.post("/validate", response_model=ValidationResult)
def validate_definition(
    definition: WorkflowDefinition,
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Validate a workflow definition without storing it

    Errors make the graph unusable; warnings flag ambiguous or unreachable parts.
    """
    return ValidationResult(**service.validate(definition))


@router.put("/{workflow_id}", response_model=SaveWorkflowResponse)
def save_workflow(
    workflow_id: str,
    definition: WorkflowDefinition,
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Store a workflow definition; refused when validation reports errors"""
    if definition.workflow_id != workflow_id:
        raise ValidationError(
            "workflow_id in body does not match the path",
            details={"path": workflow_id, "body": definition.workflow_id}
        )

    saved = service.save_workflow(definition)
    logger.info(f"Stored workflow: {workflow_id}", extra={"workflow_id": workflow_id})
    return SaveWorkflowResponse(
        workflow=saved["workflow"],
        validation=ValidationResult(**saved["validation"])
    )


@router.get("/{workflow_id}", response_model=WorkflowDefinition)
def get_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    return service.get_workflow(workflow_id)
