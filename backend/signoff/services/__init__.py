"""Service modules - Business logic layer"""
from .instance_service import InstanceService
from .instance_locks import InstanceLockRegistry
from .workflow_service import WorkflowService

__all__ = [
    "InstanceService",
    "InstanceLockRegistry",
    "WorkflowService",
]
