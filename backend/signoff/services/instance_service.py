"""Instance Service - Application lifecycle around the approval engine"""
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..domain.models import (
    FormInstance, HistoryRecord, ApprovalOutcome, CurrentNodeInfo, AuditLogEntry
)
from ..domain.enums import InstanceStatus, HistoryAction, HistoryResult
from ..domain.errors import (
    DomainError, PermissionDeniedError, InstanceClosedError, InvalidStateError,
    IdempotencyKeyReusedError
)
from ..repositories import Repositories, get_repositories
from ..engine.approval_engine import ApprovalEngine
from ..engine.audit_writer import AuditWriter
from .instance_locks import InstanceLockRegistry
from ..utils.idgen import generate_instance_id, generate_history_id, generate_application_no
from ..utils.time import utc_now, date_stamp
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InstanceService:
    """
    Service for form instance operations

    Every mutation of an existing instance runs under that instance's lock.
    """

    def __init__(
        self,
        repositories: Optional[Repositories] = None,
        locks: Optional[InstanceLockRegistry] = None,
        idempotency_cache_size: Optional[int] = None
    ):
        self.repos = repositories or get_repositories()
        self.locks = locks or InstanceLockRegistry()
        self.audit_writer = AuditWriter(self.repos.audit)
        self._apply_lock = threading.Lock()
        self._cache_lock = threading.Lock()
        self._idempotency_cache_size = idempotency_cache_size or settings.idempotency_cache_size
        # (instance_id, key) -> (actor_id, result, outcome), oldest first
        self._idempotent_outcomes: Dict[Tuple[str, str], Tuple[str, str, ApprovalOutcome]] = OrderedDict()

    def _engine(self, instance_id: str) -> ApprovalEngine:
        return ApprovalEngine(instance_id, repositories=self.repos)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def apply(
        self,
        workflow_id: str,
        applicant_id: str,
        applicant_name: str,
        data: Dict[str, Any],
        form_name: str = ""
    ) -> FormInstance:
        """Create a draft instance with today's next application number"""
        self.repos.workflows.get_by_id_or_raise(workflow_id)

        now = utc_now()
        date_str = date_stamp(now)

        with self._apply_lock:
            application_no = generate_application_no(
                date_str, self.repos.instances.count_for_prefix(date_str)
            )
            instance = FormInstance(
                instance_id=generate_instance_id(),
                application_no=application_no,
                workflow_id=workflow_id,
                form_name=form_name,
                applicant_id=applicant_id,
                applicant_name=applicant_name,
                data=data,
                status=InstanceStatus.DRAFT,
                created_at=now,
                updated_at=now
            )
            self.repos.instances.create(instance)

        logger.info(
            f"Created application {application_no}",
            extra={"instance_id": instance.instance_id, "workflow_id": workflow_id}
        )
        return instance

    def submit(self, instance_id: str) -> ApprovalOutcome:
        """Start the approval workflow for a draft instance"""
        with self.locks.hold(instance_id):
            return self._engine(instance_id).initialize()

    def approve(
        self,
        instance_id: str,
        actor_id: str,
        actor_name: str,
        result: str,
        comment: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> ApprovalOutcome:
        """
        Apply a sign-off decision

        A repeated idempotency key for the same instance, actor and result
        returns the first outcome without touching the instance again.

        Raises:
            IdempotencyKeyReusedError: Key already used by another actor or decision
        """
        with self.locks.hold(instance_id):
            cache_key = (instance_id, idempotency_key) if idempotency_key else None
            if cache_key:
                with self._cache_lock:
                    cached = self._idempotent_outcomes.get(cache_key)
                if cached is not None:
                    return self._replay(cache_key, cached, actor_id, result)

            outcome = self._engine(instance_id).approve(actor_id, actor_name, comment, result)

            if cache_key:
                self._remember(cache_key, actor_id, result, outcome)
            return outcome

    def _replay(
        self,
        cache_key: Tuple[str, str],
        cached: Tuple[str, str, ApprovalOutcome],
        actor_id: str,
        result: str
    ) -> ApprovalOutcome:
        instance_id, idempotency_key = cache_key
        first_actor, first_result, outcome = cached
        if (first_actor, first_result) != (actor_id, result):
            raise IdempotencyKeyReusedError(
                "Idempotency key was already used for a different sign-off",
                details={
                    "instance_id": instance_id,
                    "idempotency_key": idempotency_key,
                    "actor_id": actor_id,
                    "result": result
                }
            )
        logger.info(
            f"Replaying sign-off for idempotency key {idempotency_key}",
            extra={"instance_id": instance_id, "actor_id": actor_id}
        )
        return outcome

    def _remember(
        self,
        cache_key: Tuple[str, str],
        actor_id: str,
        result: str,
        outcome: ApprovalOutcome
    ) -> None:
        with self._cache_lock:
            self._idempotent_outcomes[cache_key] = (actor_id, result, outcome)
            while len(self._idempotent_outcomes) > self._idempotency_cache_size:
                self._idempotent_outcomes.popitem(last=False)

    def withdraw(self, instance_id: str, actor_id: str, actor_name: str) -> FormInstance:
        """Applicant pulls a pending application; closes it as rejected"""
        with self.locks.hold(instance_id):
            instance = self.repos.instances.get_by_id_or_raise(instance_id)

            if instance.applicant_id != actor_id:
                raise PermissionDeniedError(
                    "Only the applicant can withdraw an application",
                    details={"instance_id": instance_id, "actor_id": actor_id}
                )
            if instance.status.is_terminal:
                raise InstanceClosedError(
                    "This application is already closed",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )
            if instance.status != InstanceStatus.PENDING:
                raise InvalidStateError(
                    "Only submitted applications can be withdrawn",
                    details={"instance_id": instance_id, "status": instance.status.value}
                )

            now = utc_now()
            instance.status = InstanceStatus.REJECTED
            instance.updated_at = now
            self.repos.instances.save(instance)

            self.repos.history.append(HistoryRecord(
                history_id=generate_history_id(),
                instance_id=instance_id,
                sequence=self.repos.history.next_sequence(instance_id),
                actor_id=actor_id,
                actor_name=actor_name,
                action=HistoryAction.WITHDRAW,
                result=HistoryResult.REJECTED,
                comment="Withdrawn by applicant",
                timestamp=now
            ))
            self.audit_writer.write_withdraw(instance, actor_id, actor_name)

        logger.info(
            f"Application {instance.application_no} withdrawn",
            extra={"instance_id": instance_id, "actor_id": actor_id, "action": "withdraw"}
        )
        return instance

    # =========================================================================
    # Queries
    # =========================================================================

    def get_instance(self, instance_id: str) -> FormInstance:
        return self.repos.instances.get_by_id_or_raise(instance_id)

    def get_current_node_info(self, instance_id: str) -> Optional[CurrentNodeInfo]:
        return self._engine(instance_id).get_current_node_info()

    def get_current_approvers(self, instance_id: str) -> List[str]:
        return self._engine(instance_id).get_current_approvers()

    def get_history(self, instance_id: str) -> List[HistoryRecord]:
        self.repos.instances.get_by_id_or_raise(instance_id)
        return self.repos.history.list_for_instance(instance_id)

    def get_audit_log(self, instance_id: str) -> List[AuditLogEntry]:
        self.repos.instances.get_by_id_or_raise(instance_id)
        return self.repos.audit.list_for_target(instance_id)

    def list_pending_for(self, actor_id: str) -> List[FormInstance]:
        """Pending instances currently waiting on the actor"""
        waiting = []
        for instance in self.repos.instances.list_by_status(InstanceStatus.PENDING):
            try:
                engine = self._engine(instance.instance_id)
            except DomainError as e:
                logger.warning(
                    f"Skipping instance {instance.instance_id}: {e.message}",
                    extra={"instance_id": instance.instance_id, "error_code": e.error_code}
                )
                continue
            if actor_id in engine.get_current_approvers():
                waiting.append(engine.instance)
        return waiting
