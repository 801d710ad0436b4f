"""
Approval Engine - Drives one form instance through its workflow graph

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor loads the instance and its workflow definition
   - initialize: enter the node after start and mark the instance pending

2. SIGN-OFF
   - approve: approve/reject at the current node
   - _process_parallel: all-of gate, idempotent per approver
   - _process_sequential: in-order gate with a snapshot of the approver list

3. TRANSITIONS
   - _move_to_next_node: follow the first outgoing connection
   - _enter_node: land on a node (end completes, condition auto-routes)
   - _process_condition: evaluate branch rules and follow the chosen socket

4. READ MODELS
   - get_current_approvers / get_current_node_info / get_history

=============================================================================
PERSISTENCE
=============================================================================

Each public mutation runs inside _transaction(): state changes are applied to a
working copy of the instance and history entries are staged. Only when the
whole call succeeds is the instance saved and the history appended, so a
configuration error halfway through a condition chain leaves the stores as
they were.
=============================================================================
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from ..config.settings import settings
from ..domain.models import (
    FormInstance, WorkflowNode, HistoryRecord, ParallelGateState, SequentialGateState,
    ApprovalOutcome, GateProgress, CurrentNodeInfo
)
from ..domain.enums import (
    InstanceStatus, NodeType, ApprovalResult, HistoryAction, HistoryResult
)
from ..domain.errors import (
    InstanceNotFoundError, WorkflowNotFoundError, NodeNotFoundError,
    InstanceClosedError, InvalidStateError, NotYourTurnError, PermissionDeniedError,
    WorkflowConfigurationError, ValidationError
)
from ..repositories import Repositories, get_repositories
from .audit_writer import AuditWriter
from .condition_evaluator import ConditionEvaluator
from .workflow_graph import WorkflowGraph
from ..utils.idgen import generate_history_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ApprovalEngine:
    """
    Stateful per-instance orchestrator

    Responsibilities:
    - Enter the workflow at submission and auto-route condition nodes
    - Apply approve/reject decisions according to the current node type
    - Track partial progress of parallel and sequential gates
    - Record every transition as an append-only history record
    """

    def __init__(
        self,
        instance_id: str,
        repositories: Optional[Repositories] = None,
        condition_evaluator: Optional[ConditionEvaluator] = None
    ):
        repos = repositories or get_repositories()
        self.instance_repo = repos.instances
        self.workflow_repo = repos.workflows
        self.history_repo = repos.history
        self.audit_writer = AuditWriter(repos.audit)
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

        instance = self.instance_repo.get_by_id(instance_id)
        if instance is None:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")

        workflow = self.workflow_repo.get_by_id(instance.workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Workflow {instance.workflow_id} not found",
                details={"instance_id": instance_id}
            )

        self.instance: FormInstance = instance
        self.graph = WorkflowGraph(workflow)

        self._working: Optional[FormInstance] = None
        self._staged: List[Dict[str, Any]] = []

    # =========================================================================
    # Initialization
    # =========================================================================

    def initialize(self) -> ApprovalOutcome:
        """
        Enter the workflow

        Algorithm:
        1. Resolve the unique start node and the node it connects to
        2. Mark the instance pending and record the submission
        3. Enter the first node (a condition node routes immediately)

        Raises:
            InstanceClosedError: If the instance is already approved/rejected
            InvalidStateError: If the instance already sits on a node
            WorkflowConfigurationError: If the graph has no usable start
        """
        if self.instance.status.is_terminal:
            raise InstanceClosedError(
                "This application is already closed",
                details={"instance_id": self.instance.instance_id, "status": self.instance.status.value}
            )
        if self.instance.current_node_id:
            raise InvalidStateError(
                "This application has already been submitted",
                details={"instance_id": self.instance.instance_id}
            )

        start_node = self.graph.get_start_node()
        first_node = self.graph.resolve_next_node(start_node.node_id)

        with self._transaction() as instance:
            instance.status = InstanceStatus.PENDING
            self._record(
                None,
                HistoryAction.SUBMIT,
                HistoryResult.SUBMITTED,
                "Application submitted",
                actor_id=instance.applicant_id,
                actor_name=instance.applicant_name
            )
            outcome = self._enter_node(first_node)

        self.audit_writer.write_submit(self.instance)
        logger.info(
            f"Initialized instance {self.instance.instance_id} at {self.instance.current_node_id}",
            extra={
                "instance_id": self.instance.instance_id,
                "workflow_id": self.graph.workflow_id,
                "node_id": self.instance.current_node_id,
                "status": outcome.status.value
            }
        )
        return outcome

    # =========================================================================
    # Sign-off
    # =========================================================================

    def approve(
        self,
        actor_id: str,
        actor_name: str,
        comment: Optional[str],
        result: str
    ) -> ApprovalOutcome:
        """
        Apply an approver's decision at the current node

        Args:
            actor_id: Identity of the approver
            actor_name: Display name recorded in history
            comment: Free text recorded in history
            result: "approve" or "reject"

        Raises:
            InstanceClosedError: Instance already approved/rejected
            NodeNotFoundError: Current node is not part of the workflow
            PermissionDeniedError: Actor is not an approver of the current node
            NotYourTurnError: Sequential gate is waiting on someone else
        """
        try:
            decision = ApprovalResult(result)
        except ValueError:
            raise ValidationError(
                f"Unknown approval result: {result}",
                details={"result": result, "allowed": [r.value for r in ApprovalResult]}
            )

        self._ensure_open()
        node = self._get_current_node_or_raise()
        self._ensure_may_act(node, actor_id)

        with self._transaction() as instance:
            if decision == ApprovalResult.REJECT:
                # Reject overrides node semantics: close without moving
                instance.status = InstanceStatus.REJECTED
                self._record(
                    node, HistoryAction.REJECT, HistoryResult.REJECTED, comment,
                    actor_id=actor_id, actor_name=actor_name
                )
                outcome = ApprovalOutcome(
                    status=InstanceStatus.REJECTED,
                    message="Application rejected",
                    current_node_id=node.node_id
                )
            else:
                self._record(
                    node, HistoryAction.APPROVE, HistoryResult.APPROVED, comment,
                    actor_id=actor_id, actor_name=actor_name
                )
                outcome = self._process_approval(node, actor_id)

        if decision == ApprovalResult.REJECT:
            self.audit_writer.write_reject(self.instance, actor_id, actor_name, comment)
        else:
            self.audit_writer.write_approve(self.instance, actor_id, actor_name, comment)

        logger.info(
            f"{decision.value} by {actor_id} at {node.node_id}: {outcome.message}",
            extra={
                "instance_id": self.instance.instance_id,
                "node_id": node.node_id,
                "actor_id": actor_id,
                "action": decision.value,
                "status": outcome.status.value
            }
        )
        return outcome

    def _process_approval(self, node: WorkflowNode, actor_id: str) -> ApprovalOutcome:
        """Dispatch an approval on the node type"""
        if node.type == NodeType.SINGLE:
            return self._move_to_next_node(node)

        if node.type == NodeType.PARALLEL:
            return self._process_parallel(node, actor_id)

        if node.type == NodeType.SEQUENTIAL:
            return self._process_sequential(node, actor_id)

        if node.type == NodeType.CONDITION:
            return self._process_condition(node, set())

        if node.type == NodeType.END:
            return self._complete(node)

        raise InvalidStateError(
            f"Cannot sign off at a {node.type.value} node",
            details={"node_id": node.node_id}
        )

    def _process_parallel(self, node: WorkflowNode, actor_id: str) -> ApprovalOutcome:
        """All listed approvers must sign off, in any order"""
        instance = self._working
        state = instance.parallel_state.get(node.node_id)
        if state is None:
            state = ParallelGateState(approved=[], required=len(node.approvers))
            instance.parallel_state[node.node_id] = state

        # Repeat sign-offs by the same approver count once
        if actor_id not in state.approved:
            state.approved.append(actor_id)

        if len(state.approved) >= state.required:
            del instance.parallel_state[node.node_id]
            return self._move_to_next_node(node)

        return ApprovalOutcome(
            status=InstanceStatus.PENDING,
            message=f"Parallel sign-off in progress ({len(state.approved)}/{state.required})",
            current_node_id=node.node_id,
            progress=GateProgress(approved=len(state.approved), required=state.required)
        )

    def _process_sequential(self, node: WorkflowNode, actor_id: str) -> ApprovalOutcome:
        """Listed approvers sign off one after another"""
        instance = self._working
        state = instance.sequential_state.get(node.node_id)
        if state is None:
            state = SequentialGateState(current_index=0, approvers=list(node.approvers))
            instance.sequential_state[node.node_id] = state

        if not state.approvers:
            raise WorkflowConfigurationError(
                "Sequential node has no approvers",
                details={"workflow_id": self.graph.workflow_id, "node_id": node.node_id}
            )

        expected = (
            state.approvers[state.current_index]
            if state.current_index < len(state.approvers) else None
        )
        if expected != actor_id:
            raise NotYourTurnError(
                "It is not your turn to sign off",
                details={
                    "node_id": node.node_id,
                    "actor_id": actor_id,
                    "expected_approver": expected
                }
            )

        state.current_index += 1

        if state.current_index >= len(state.approvers):
            del instance.sequential_state[node.node_id]
            return self._move_to_next_node(node)

        return ApprovalOutcome(
            status=InstanceStatus.PENDING,
            message=f"Sequential sign-off in progress ({state.current_index}/{len(state.approvers)})",
            current_node_id=node.node_id,
            progress=GateProgress(approved=state.current_index, required=len(state.approvers))
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def _move_to_next_node(self, node: WorkflowNode) -> ApprovalOutcome:
        """Follow the first declared outgoing connection of a satisfied node"""
        next_node = self.graph.resolve_next_node(node.node_id)
        return self._enter_node(next_node)

    def _enter_node(
        self,
        node: WorkflowNode,
        visited_conditions: Optional[Set[str]] = None
    ) -> ApprovalOutcome:
        """Land on a node"""
        if node.type == NodeType.END:
            return self._complete(node)

        if node.type == NodeType.START:
            raise WorkflowConfigurationError(
                "Connection leads back into the start node",
                details={"workflow_id": self.graph.workflow_id, "node_id": node.node_id}
            )

        self._working.current_node_id = node.node_id

        if node.type == NodeType.CONDITION:
            return self._process_condition(node, visited_conditions or set())

        return ApprovalOutcome(
            status=InstanceStatus.PENDING,
            message=f"Moved to: {node.label or node.node_id}",
            current_node_id=node.node_id,
            next_node=node
        )

    def _process_condition(self, node: WorkflowNode, visited: Set[str]) -> ApprovalOutcome:
        """
        Route through a condition node

        The first matching rule picks the output socket; with no match the
        node's default socket is used. The socket must have a connection.
        """
        if node.node_id in visited:
            raise WorkflowConfigurationError(
                "Condition nodes form a cycle",
                details={"workflow_id": self.graph.workflow_id, "node_id": node.node_id}
            )
        visited.add(node.node_id)

        instance = self._working
        instance.current_node_id = node.node_id

        rule = self.condition_evaluator.evaluate_rules(instance.data, node.config.condition_rules)
        if rule is not None:
            socket = rule.output_point
            result = HistoryResult.MATCHED
            comment = f"Condition matched: {rule.name or rule.rule_id or socket}, taking {socket} branch"
        else:
            socket = node.config.default_output_point or settings.default_condition_output_point
            result = HistoryResult.DEFAULT
            comment = "No condition matched, taking default branch"

        next_node = self.graph.resolve_next_node(node.node_id, socket)
        self._record(node, HistoryAction.CONDITION, result, comment)

        logger.info(
            f"Condition {node.node_id} -> {next_node.node_id} via {socket}",
            extra={"instance_id": instance.instance_id, "node_id": node.node_id}
        )

        return self._enter_node(next_node, visited)

    def _complete(self, end_node: WorkflowNode) -> ApprovalOutcome:
        """Close the instance as approved"""
        instance = self._working
        instance.status = InstanceStatus.APPROVED
        instance.current_node_id = end_node.node_id
        self._record(end_node, HistoryAction.COMPLETE, HistoryResult.APPROVED, "Workflow completed")
        return ApprovalOutcome(
            status=InstanceStatus.APPROVED,
            message="Application approved",
            current_node_id=end_node.node_id
        )

    # =========================================================================
    # Read Models
    # =========================================================================

    def get_current_approvers(self) -> List[str]:
        """Actors who may sign off right now"""
        if self.instance.status != InstanceStatus.PENDING:
            return []
        node = self.graph.get_node(self.instance.current_node_id)
        if node is None:
            return []

        if node.type == NodeType.SINGLE:
            return list(node.approvers)

        if node.type == NodeType.PARALLEL:
            state = self.instance.parallel_state.get(node.node_id)
            if state is None:
                return list(node.approvers)
            return [a for a in node.approvers if a not in state.approved]

        if node.type == NodeType.SEQUENTIAL:
            state = self.instance.sequential_state.get(node.node_id)
            if state is None:
                return node.approvers[:1]
            if state.current_index < len(state.approvers):
                return [state.approvers[state.current_index]]
            return []

        return []

    def get_current_node_info(self) -> Optional[CurrentNodeInfo]:
        """Display snapshot of the current node; never mutates the instance"""
        node = self.graph.get_node(self.instance.current_node_id)
        if node is None:
            return None

        approved_count = 0
        total_count = 1

        if node.type == NodeType.PARALLEL:
            state = self.instance.parallel_state.get(node.node_id)
            total_count = state.required if state else len(node.approvers)
            approved_count = len(state.approved) if state else 0
        elif node.type == NodeType.SEQUENTIAL:
            state = self.instance.sequential_state.get(node.node_id)
            total_count = len(state.approvers) if state else len(node.approvers)
            approved_count = state.current_index if state else 0

        return CurrentNodeInfo(
            node=node.model_copy(deep=True),
            approved_count=approved_count,
            total_count=total_count,
            approvers=list(node.approvers),
            next_approvers=self.get_current_approvers()
        )

    def get_history(self) -> List[HistoryRecord]:
        """History of this instance in sequence order"""
        return self.history_repo.list_for_instance(self.instance.instance_id)

    # =========================================================================
    # Guards
    # =========================================================================

    def _ensure_open(self) -> None:
        if self.instance.status.is_terminal:
            raise InstanceClosedError(
                "This application is already closed",
                details={"instance_id": self.instance.instance_id, "status": self.instance.status.value}
            )
        if self.instance.status != InstanceStatus.PENDING:
            raise InvalidStateError(
                "This application has not been submitted",
                details={"instance_id": self.instance.instance_id, "status": self.instance.status.value}
            )

    def _get_current_node_or_raise(self) -> WorkflowNode:
        node = self.graph.get_node(self.instance.current_node_id)
        if node is None:
            raise NodeNotFoundError(
                "Current node does not exist in the workflow",
                details={
                    "instance_id": self.instance.instance_id,
                    "node_id": self.instance.current_node_id
                }
            )
        return node

    def _ensure_may_act(self, node: WorkflowNode, actor_id: str) -> None:
        """Node-level approver list membership; an empty single or parallel list admits anyone"""
        if not node.type.is_gate:
            return

        approvers = node.approvers
        if node.type == NodeType.SEQUENTIAL:
            state = self.instance.sequential_state.get(node.node_id)
            if state is not None:
                approvers = state.approvers

        if approvers and actor_id not in approvers:
            raise PermissionDeniedError(
                "You are not an approver of the current step",
                details={"node_id": node.node_id, "actor_id": actor_id}
            )

    # =========================================================================
    # Persistence
    # =========================================================================

    @contextmanager
    def _transaction(self) -> Iterator[FormInstance]:
        """Stage changes on a working copy; flush only if the block succeeds"""
        self._working = self.instance.model_copy(deep=True)
        self._staged = []
        try:
            yield self._working
            self._flush()
        finally:
            self._working = None
            self._staged = []

    def _record(
        self,
        node: Optional[WorkflowNode],
        action: HistoryAction,
        result: HistoryResult,
        comment: Optional[str],
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None
    ) -> None:
        self._staged.append({
            "node_id": node.node_id if node else None,
            "node_name": node.label if node else None,
            "actor_id": actor_id,
            "actor_name": actor_name,
            "action": action,
            "result": result,
            "comment": comment or "",
        })

    def _flush(self) -> None:
        instance = self._working
        instance.updated_at = utc_now()
        self.instance_repo.save(instance)

        for entry in self._staged:
            record = HistoryRecord(
                history_id=generate_history_id(),
                instance_id=instance.instance_id,
                sequence=self.history_repo.next_sequence(instance.instance_id),
                timestamp=utc_now(),
                **entry
            )
            self.history_repo.append(record)

        self.instance = instance
