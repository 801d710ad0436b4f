"""
Pytest Configuration and Fixtures

Tests run against the in-memory repositories; nothing talks to MongoDB.
"""

import os

# Must be set before signoff.config.settings is first imported
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from typing import Any, Dict, Optional

from signoff.repositories import Repositories, build_memory_repositories
from signoff.domain.models import WorkflowDefinition, FormInstance
from signoff.domain.enums import InstanceStatus
from signoff.utils.time import utc_now


@pytest.fixture
def repos() -> Repositories:
    """Fresh, empty stores per test"""
    return build_memory_repositories()


@pytest.fixture
def make_instance(repos):
    """Store a workflow and a draft instance on it; returns the instance ID"""
    counter = {"n": 0}

    def _make(
        definition: WorkflowDefinition,
        data: Optional[Dict[str, Any]] = None,
        applicant_id: str = "applicant",
        **fields
    ) -> str:
        counter["n"] += 1
        if repos.workflows.get_by_id(definition.workflow_id) is None:
            repos.workflows.save(definition)
        now = utc_now()
        instance = FormInstance(
            instance_id=f"INS-{counter['n']}",
            application_no=f"20260101-{counter['n']:03d}",
            workflow_id=definition.workflow_id,
            form_name="Test form",
            applicant_id=applicant_id,
            applicant_name=applicant_id.title(),
            data=data or {},
            status=fields.pop("status", InstanceStatus.DRAFT),
            created_at=now,
            updated_at=now,
            **fields
        )
        repos.instances.create(instance)
        return instance.instance_id

    return _make
