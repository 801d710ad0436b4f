"""Workflow Repository - Read access to workflow definitions"""
from typing import Optional
from pymongo.collection import Collection
from pydantic import ValidationError

from .mongo_client import get_collection
from ..domain.models import WorkflowDefinition
from ..domain.errors import WorkflowNotFoundError, WorkflowConfigurationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowRepository:
    """Repository for workflow definitions (the engine only reads)"""

    def __init__(self):
        self._workflows: Collection = get_collection("workflows")

    def get_by_id(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        """Get workflow by ID"""
        doc = self._workflows.find_one({"workflow_id": workflow_id})
        if not doc:
            return None
        doc.pop("_id", None)
        try:
            return WorkflowDefinition.model_validate(doc)
        except ValidationError as e:
            logger.error(
                f"Corrupted workflow data for {workflow_id}. Validation failed: {str(e)[:500]}",
                extra={"workflow_id": workflow_id}
            )
            raise WorkflowConfigurationError(
                f"Workflow {workflow_id} could not be loaded",
                details={"workflow_id": workflow_id, "error_count": len(e.errors())}
            )

    def get_by_id_or_raise(self, workflow_id: str) -> WorkflowDefinition:
        """Get workflow by ID or raise error"""
        workflow = self.get_by_id(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Upsert a workflow definition (seeding and fixtures)"""
        doc = workflow.model_dump()
        doc["_id"] = workflow.workflow_id
        self._workflows.replace_one({"_id": workflow.workflow_id}, doc, upsert=True)
        logger.info(f"Saved workflow: {workflow.workflow_id}", extra={"workflow_id": workflow.workflow_id})
        return workflow
