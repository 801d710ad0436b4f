"""Workflow Service - Workflow definition management"""
from typing import Any, Dict, Optional

from ..domain.models import WorkflowDefinition
from ..domain.errors import WorkflowValidationError
from ..repositories import Repositories, get_repositories
from ..engine.workflow_validator import validate_workflow
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """Service for workflow operations"""

    def __init__(self, repositories: Optional[Repositories] = None):
        self.repo = (repositories or get_repositories()).workflows

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Get workflow by ID"""
        return self.repo.get_by_id_or_raise(workflow_id)

    def validate(self, definition: WorkflowDefinition) -> Dict[str, Any]:
        """Validation report without storing anything"""
        return validate_workflow(definition)

    def save_workflow(self, definition: WorkflowDefinition) -> Dict[str, Any]:
        """
        Store a workflow definition

        Warnings are returned alongside; errors refuse the save.

        Raises:
            WorkflowValidationError: If validation reports errors
        """
        validation = validate_workflow(definition)
        if not validation["is_valid"]:
            raise WorkflowValidationError(
                "Workflow validation failed",
                details={"workflow_id": definition.workflow_id, "errors": validation["errors"]}
            )

        existing = self.repo.get_by_id(definition.workflow_id)
        now = utc_now()
        workflow = definition.model_copy(update={
            "created_at": existing.created_at if existing and existing.created_at else now,
            "updated_at": now
        })
        self.repo.save(workflow)

        if validation["warnings"]:
            logger.warning(
                f"Saved workflow {workflow.workflow_id} with {len(validation['warnings'])} warnings",
                extra={"workflow_id": workflow.workflow_id}
            )
        return {"workflow": workflow, "validation": validation}
