"""Audit Repository - Data access for audit log entries"""
from typing import List
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import AuditLogEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit log operations (append-only)"""

    def __init__(self):
        self._audit_logs: Collection = get_collection("audit_logs")

    def create_entry(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Create an audit log entry (append-only)"""
        doc = entry.model_dump()
        doc["_id"] = entry.audit_log_id

        self._audit_logs.insert_one(doc)
        logger.info(
            f"Created audit log entry: {entry.action.value}",
            extra={"instance_id": entry.target_id, "actor_id": entry.actor_id}
        )
        return entry

    def list_for_target(self, target_id: str, limit: int = 100) -> List[AuditLogEntry]:
        """Audit entries for one target, newest first"""
        cursor = self._audit_logs.find({"target_id": target_id}).sort("timestamp", DESCENDING).limit(limit)

        entries = []
        for doc in cursor:
            doc.pop("_id", None)
            entries.append(AuditLogEntry.model_validate(doc))
        return entries
