"""Repository modules - Data access layer"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from ..config.settings import settings
from .memory import (
    InMemoryWorkflowRepository,
    InMemoryInstanceRepository,
    InMemoryHistoryRepository,
    InMemoryAuditRepository,
)


@dataclass
class Repositories:
    """The stores the engine and services work against"""
    instances: Any
    workflows: Any
    history: Any
    audit: Any


def build_memory_repositories() -> Repositories:
    """Fresh, empty in-process stores"""
    return Repositories(
        instances=InMemoryInstanceRepository(),
        workflows=InMemoryWorkflowRepository(),
        history=InMemoryHistoryRepository(),
        audit=InMemoryAuditRepository(),
    )


def build_mongo_repositories() -> Repositories:
    """MongoDB-backed stores"""
    # Imported lazily so the memory backend never opens a connection
    from .instance_repo import InstanceRepository
    from .workflow_repo import WorkflowRepository
    from .history_repo import HistoryRepository
    from .audit_repo import AuditRepository

    return Repositories(
        instances=InstanceRepository(),
        workflows=WorkflowRepository(),
        history=HistoryRepository(),
        audit=AuditRepository(),
    )


@lru_cache()
def get_repositories() -> Repositories:
    """Process-wide stores for the configured storage backend"""
    if settings.uses_memory_storage:
        return build_memory_repositories()
    return build_mongo_repositories()


__all__ = [
    "Repositories",
    "build_memory_repositories",
    "build_mongo_repositories",
    "get_repositories",
]
