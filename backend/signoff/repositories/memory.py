"""In-memory repositories - same surface as the MongoDB repositories

Used when the engine runs as an in-process library (storage_backend=memory)
and by the test suite. Stored objects are deep copies, so callers never share
state with the store.
"""
import threading
from collections import defaultdict
from typing import Dict, List, Optional

from ..domain.models import FormInstance, WorkflowDefinition, HistoryRecord, AuditLogEntry
from ..domain.enums import InstanceStatus
from ..domain.errors import InstanceNotFoundError, WorkflowNotFoundError, AlreadyExistsError


class InMemoryWorkflowRepository:
    """Workflow definitions keyed by workflow_id"""

    def __init__(self):
        self._workflows: Dict[str, WorkflowDefinition] = {}

    def get_by_id(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    def get_by_id_or_raise(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self.get_by_id(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    def save(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        self._workflows[workflow.workflow_id] = workflow.model_copy(deep=True)
        return workflow


class InMemoryInstanceRepository:
    """Form instances keyed by instance_id"""

    def __init__(self):
        self._instances: Dict[str, FormInstance] = {}

    def create(self, instance: FormInstance) -> FormInstance:
        if instance.instance_id in self._instances:
            raise AlreadyExistsError(f"Instance {instance.instance_id} already exists")
        self._instances[instance.instance_id] = instance.model_copy(deep=True)
        return instance

    def get_by_id(self, instance_id: str) -> Optional[FormInstance]:
        instance = self._instances.get(instance_id)
        return instance.model_copy(deep=True) if instance else None

    def get_by_id_or_raise(self, instance_id: str) -> FormInstance:
        instance = self.get_by_id(instance_id)
        if not instance:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")
        return instance

    def save(self, instance: FormInstance) -> FormInstance:
        self._instances[instance.instance_id] = instance.model_copy(deep=True)
        return instance

    def list_by_status(self, status: InstanceStatus) -> List[FormInstance]:
        matches = [i for i in self._instances.values() if i.status == status]
        matches.sort(key=lambda i: i.created_at)
        return [i.model_copy(deep=True) for i in matches]

    def count_for_prefix(self, application_no_prefix: str) -> int:
        return sum(
            1 for i in self._instances.values()
            if i.application_no.startswith(application_no_prefix)
        )


class InMemoryHistoryRepository:
    """Append-only history with per-instance sequence counters"""

    def __init__(self):
        self._records: List[HistoryRecord] = []
        self._sequences: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def next_sequence(self, instance_id: str) -> int:
        with self._lock:
            self._sequences[instance_id] += 1
            return self._sequences[instance_id]

    def append(self, record: HistoryRecord) -> HistoryRecord:
        with self._lock:
            self._records.append(record.model_copy(deep=True))
        return record

    def list_for_instance(self, instance_id: str) -> List[HistoryRecord]:
        records = [r for r in self._records if r.instance_id == instance_id]
        records.sort(key=lambda r: r.sequence)
        return [r.model_copy(deep=True) for r in records]


class InMemoryAuditRepository:
    """Append-only audit log"""

    def __init__(self):
        self._entries: List[AuditLogEntry] = []

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        self._entries.append(entry.model_copy(deep=True))
        return entry

    def list_for_target(self, target_id: str, limit: int = 100) -> List[AuditLogEntry]:
        entries = [e for e in self._entries if e.target_id == target_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return [e.model_copy(deep=True) for e in entries[:limit]]
