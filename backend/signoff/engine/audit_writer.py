"""Audit Writer - Append-only audit log entries"""
from typing import Optional

from ..domain.models import AuditLogEntry, FormInstance
from ..domain.enums import AuditAction
from ..utils.idgen import generate_audit_log_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit log entries (append-only)

    Every application-level action produces one entry. History records track
    the workflow itself; audit entries track who did what to an application.
    """

    def __init__(self, repo):
        self.repo = repo

    def write_entry(
        self,
        instance: FormInstance,
        action: AuditAction,
        actor_id: Optional[str],
        actor_name: Optional[str],
        details: str
    ) -> AuditLogEntry:
        """Write a single audit log entry"""
        entry = AuditLogEntry(
            audit_log_id=generate_audit_log_id(),
            action=action,
            target_id=instance.instance_id,
            target_name=self._target_name(instance),
            actor_id=actor_id,
            actor_name=actor_name,
            details=details,
            timestamp=utc_now(),
            correlation_id=get_correlation_id()
        )
        return self.repo.create_entry(entry)

    def write_submit(self, instance: FormInstance) -> AuditLogEntry:
        """Write application submission entry"""
        return self.write_entry(
            instance,
            AuditAction.SUBMIT,
            instance.applicant_id,
            instance.applicant_name,
            f"Submitted application {instance.application_no}"
        )

    def write_approve(
        self,
        instance: FormInstance,
        actor_id: str,
        actor_name: str,
        comment: Optional[str] = None
    ) -> AuditLogEntry:
        """Write approval entry"""
        return self.write_entry(
            instance,
            AuditAction.APPROVE,
            actor_id,
            actor_name,
            f"Approved application {instance.application_no}" + (f" ({comment})" if comment else "")
        )

    def write_reject(
        self,
        instance: FormInstance,
        actor_id: str,
        actor_name: str,
        comment: Optional[str] = None
    ) -> AuditLogEntry:
        """Write rejection entry"""
        return self.write_entry(
            instance,
            AuditAction.REJECT,
            actor_id,
            actor_name,
            f"Rejected application {instance.application_no}" + (f" ({comment})" if comment else "")
        )

    def write_withdraw(self, instance: FormInstance, actor_id: str, actor_name: str) -> AuditLogEntry:
        """Write withdrawal entry"""
        return self.write_entry(
            instance,
            AuditAction.WITHDRAW,
            actor_id,
            actor_name,
            f"Withdrew application {instance.application_no}"
        )

    @staticmethod
    def _target_name(instance: FormInstance) -> str:
        if instance.form_name:
            return f"{instance.form_name} ({instance.application_no})"
        return instance.application_no
