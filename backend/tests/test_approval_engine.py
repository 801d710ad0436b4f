"""Approval engine: routing, gate semantics and history"""
import pytest

from signoff.domain.enums import InstanceStatus, HistoryAction, HistoryResult, AuditAction
from signoff.domain.errors import (
    InstanceNotFoundError, WorkflowNotFoundError, NodeNotFoundError, InstanceClosedError,
    InvalidStateError, NotYourTurnError, PermissionDeniedError, WorkflowConfigurationError,
    ValidationError
)
from signoff.domain.models import FormInstance
from signoff.engine.approval_engine import ApprovalEngine
from signoff.utils.time import utc_now

from tests.builders import node, edge, rule, workflow, amount_workflow, gate_workflow


@pytest.fixture
def start(repos, make_instance):
    """Create an instance, initialize it and return its engine"""
    def _start(definition, data=None, **fields):
        engine = ApprovalEngine(make_instance(definition, data, **fields), repositories=repos)
        engine.initialize()
        return engine
    return _start


def actions(engine):
    return [(r.action, r.actor_id) for r in engine.get_history()]


# =============================================================================
# Scenarios
# =============================================================================

def test_large_amount_takes_matched_branch(start):
    engine = start(amount_workflow(), {"amount": 5000})
    assert engine.instance.status == InstanceStatus.PENDING
    assert engine.instance.current_node_id == "review"
    assert engine.get_current_approvers() == ["A"]

    outcome = engine.approve("A", "A", "ok", "approve")

    assert outcome.status == InstanceStatus.APPROVED
    assert engine.instance.current_node_id == "end_high"
    history = engine.get_history()
    assert [r.action for r in history] == [
        HistoryAction.SUBMIT, HistoryAction.APPROVE, HistoryAction.CONDITION, HistoryAction.COMPLETE
    ]
    assert history[2].result == HistoryResult.MATCHED
    assert [r.sequence for r in history] == [1, 2, 3, 4]


def test_small_amount_takes_default_branch(start):
    engine = start(amount_workflow(), {"amount": 50})
    outcome = engine.approve("A", "A", "ok", "approve")

    assert outcome.status == InstanceStatus.APPROVED
    assert engine.instance.current_node_id == "end_low"
    condition = [r for r in engine.get_history() if r.action == HistoryAction.CONDITION]
    assert condition[0].result == HistoryResult.DEFAULT
    assert condition[0].actor_id is None


def test_first_matching_rule_wins(start):
    definition = workflow(
        "wf-overlap",
        [
            node("start", "start"),
            node(
                "route", "condition",
                condition_rules=[
                    rule("out-vip", "tier", "==", "gold", name="Gold tier"),
                    rule("out-big", "amount", ">", 1000, name="Large amount"),
                ]
            ),
            node("vip", "single", ["vip_desk"]),
            node("big", "single", ["finance"]),
            node("end", "end"),
        ],
        [
            edge("start", "route"),
            edge("route", "vip", "out-vip"),
            edge("route", "big", "out-big"),
            edge("vip", "end"), edge("big", "end"),
        ]
    )
    # Both rules hold; declaration order decides
    engine = start(definition, {"tier": "gold", "amount": 5000})

    assert engine.instance.current_node_id == "vip"
    assert engine.get_current_approvers() == ["vip_desk"]
    condition = [r for r in engine.get_history() if r.action == HistoryAction.CONDITION]
    assert len(condition) == 1
    assert condition[0].result == HistoryResult.MATCHED
    assert condition[0].node_id == "route"
    assert "Gold tier" in condition[0].comment


def test_state_is_persisted(repos, start):
    engine = start(amount_workflow(), {"amount": 5000})
    engine.approve("A", "A", None, "approve")
    stored = repos.instances.get_by_id(engine.instance.instance_id)
    assert stored.status == InstanceStatus.APPROVED
    assert stored.current_node_id == "end_high"


# =============================================================================
# Initialization
# =============================================================================

def test_initialize_start_straight_to_end(repos, make_instance):
    definition = workflow("wf-empty", [node("start", "start"), node("end", "end")], [edge("start", "end")])
    engine = ApprovalEngine(make_instance(definition), repositories=repos)
    outcome = engine.initialize()
    assert outcome.status == InstanceStatus.APPROVED
    assert [r.action for r in engine.get_history()] == [HistoryAction.SUBMIT, HistoryAction.COMPLETE]


def test_initialize_routes_chained_conditions(repos, make_instance):
    definition = workflow(
        "wf-chain",
        [
            node("start", "start"),
            node("c1", "condition", condition_rules=[rule("out-urgent", "urgent", "==", "yes")], default_output_point="out"),
            node("c2", "condition", condition_rules=[rule("out-big", "amount", ">=", 100)]),
            node("big", "single", ["boss"]),
            node("small", "single", ["lead"]),
            node("fast", "single", ["oncall"]),
            node("end", "end"),
        ],
        [
            edge("start", "c1"),
            edge("c1", "fast", "out-urgent"),
            edge("c1", "c2", "out"),
            edge("c2", "big", "out-big"),
            # Falls back to the configured default socket
            edge("c2", "small", "out-right"),
            edge("big", "end"), edge("small", "end"), edge("fast", "end"),
        ]
    )
    engine = ApprovalEngine(make_instance(definition, {"urgent": "no", "amount": 5}), repositories=repos)
    outcome = engine.initialize()

    assert outcome.status == InstanceStatus.PENDING
    assert outcome.current_node_id == "small"
    assert engine.get_current_approvers() == ["lead"]
    assert [r.action for r in engine.get_history()].count(HistoryAction.CONDITION) == 2


def test_initialize_twice_is_refused(start):
    engine = start(gate_workflow("single", ["A"]))
    with pytest.raises(InvalidStateError):
        engine.initialize()


def test_initialize_closed_instance_is_refused(repos, make_instance):
    instance_id = make_instance(gate_workflow("single", ["A"]), status=InstanceStatus.REJECTED)
    with pytest.raises(InstanceClosedError):
        ApprovalEngine(instance_id, repositories=repos).initialize()


def test_condition_cycle_is_a_configuration_error(repos, make_instance):
    definition = workflow(
        "wf-cycle",
        [
            node("start", "start"),
            node("c1", "condition", default_output_point="out"),
            node("c2", "condition", default_output_point="out"),
            node("end", "end"),
        ],
        [edge("start", "c1"), edge("c1", "c2"), edge("c2", "c1")]
    )
    instance_id = make_instance(definition)
    with pytest.raises(WorkflowConfigurationError):
        ApprovalEngine(instance_id, repositories=repos).initialize()

    assert repos.instances.get_by_id(instance_id).status == InstanceStatus.DRAFT
    assert repos.history.list_for_instance(instance_id) == []


def test_missing_instance_or_workflow(repos):
    with pytest.raises(InstanceNotFoundError):
        ApprovalEngine("INS-missing", repositories=repos)

    now = utc_now()
    repos.instances.create(FormInstance(
        instance_id="INS-orphan", workflow_id="wf-gone", applicant_id="x",
        created_at=now, updated_at=now
    ))
    with pytest.raises(WorkflowNotFoundError):
        ApprovalEngine("INS-orphan", repositories=repos)


# =============================================================================
# Gates
# =============================================================================

def test_single_node_advances_to_next(start):
    definition = workflow(
        "wf-two-step",
        [node("start", "start"), node("one", "single", ["a"]), node("two", "single", ["b"]), node("end", "end")],
        [edge("start", "one"), edge("one", "two"), edge("two", "end")]
    )
    engine = start(definition)
    outcome = engine.approve("a", "A", None, "approve")
    assert outcome.status == InstanceStatus.PENDING
    assert outcome.current_node_id == "two"
    assert outcome.next_node.node_id == "two"


def test_parallel_counts_each_approver_once(start):
    engine = start(gate_workflow("parallel", ["a", "b", "c"]))

    first = engine.approve("a", "A", None, "approve")
    again = engine.approve("a", "A", None, "approve")

    assert first.progress.approved == 1
    assert again.progress.approved == 1
    assert again.progress.required == 3
    assert sorted(engine.get_current_approvers()) == ["b", "c"]

    engine.approve("c", "C", None, "approve")
    outcome = engine.approve("b", "B", None, "approve")

    assert outcome.status == InstanceStatus.APPROVED
    assert engine.instance.parallel_state == {}


def test_sequential_enforces_order(repos, start):
    engine = start(gate_workflow("sequential", ["a", "b"]))

    with pytest.raises(NotYourTurnError):
        engine.approve("b", "B", None, "approve")
    # Refused turns write nothing
    assert actions(engine) == [(HistoryAction.SUBMIT, "applicant")]

    outcome = engine.approve("a", "A", None, "approve")
    assert outcome.status == InstanceStatus.PENDING
    assert outcome.progress.approved == 1
    assert engine.get_current_approvers() == ["b"]

    outcome = engine.approve("b", "B", None, "approve")
    assert outcome.status == InstanceStatus.APPROVED
    assert engine.instance.sequential_state == {}


def test_sequential_three_approvers_in_order(start):
    engine = start(gate_workflow("sequential", ["a", "b", "c"]))
    assert engine.get_current_approvers() == ["a"]

    outcome = engine.approve("a", "A", None, "approve")
    assert outcome.progress.approved == 1
    assert outcome.progress.required == 3
    assert engine.get_current_approvers() == ["b"]

    # c is listed but has to wait for b
    with pytest.raises(NotYourTurnError):
        engine.approve("c", "C", None, "approve")
    with pytest.raises(NotYourTurnError):
        engine.approve("a", "A", None, "approve")
    assert engine.get_current_approvers() == ["b"]

    outcome = engine.approve("b", "B", None, "approve")
    assert outcome.status == InstanceStatus.PENDING
    assert outcome.progress.approved == 2
    assert engine.get_current_approvers() == ["c"]

    outcome = engine.approve("c", "C", None, "approve")
    assert outcome.status == InstanceStatus.APPROVED
    assert engine.instance.current_node_id == "end"
    assert actions(engine) == [
        (HistoryAction.SUBMIT, "applicant"),
        (HistoryAction.APPROVE, "a"),
        (HistoryAction.APPROVE, "b"),
        (HistoryAction.APPROVE, "c"),
        (HistoryAction.COMPLETE, None),
    ]


def test_sequential_uses_snapshot_of_approvers(repos, start):
    definition = gate_workflow("sequential", ["a", "b"])
    engine = start(definition)
    engine.approve("a", "A", None, "approve")

    # Later edits to the definition do not change an in-flight gate
    edited = definition.model_copy(deep=True)
    edited.nodes[1].approvers = ["z"]
    repos.workflows.save(edited)
    engine = ApprovalEngine(engine.instance.instance_id, repositories=repos)

    assert engine.get_current_approvers() == ["b"]
    assert engine.approve("b", "B", None, "approve").status == InstanceStatus.APPROVED


def test_non_approver_is_refused(start):
    engine = start(gate_workflow("single", ["a"]))
    with pytest.raises(PermissionDeniedError):
        engine.approve("mallory", "Mallory", None, "approve")
    assert engine.instance.status == InstanceStatus.PENDING


def test_empty_approver_list_admits_anyone(repos, make_instance):
    definition = workflow(
        "wf-open",
        [node("start", "start"), node("gate", "single", []), node("end", "end")],
        [edge("start", "gate"), edge("gate", "end")]
    )
    engine = ApprovalEngine(make_instance(definition), repositories=repos)
    engine.initialize()
    assert engine.approve("anyone", "Anyone", None, "approve").status == InstanceStatus.APPROVED


def test_sequential_without_approvers_is_a_configuration_error(repos, start):
    engine = start(gate_workflow("sequential", []))

    with pytest.raises(WorkflowConfigurationError) as exc:
        engine.approve("anyone", "Anyone", None, "approve")
    assert exc.value.details["node_id"] == "gate"

    stored = repos.instances.get_by_id(engine.instance.instance_id)
    assert stored.status == InstanceStatus.PENDING
    assert stored.current_node_id == "gate"
    assert stored.sequential_state == {}
    assert actions(engine) == [(HistoryAction.SUBMIT, "applicant")]


# =============================================================================
# Reject and closed instances
# =============================================================================

@pytest.mark.parametrize("gate_type", ["single", "parallel", "sequential"])
def test_reject_closes_at_any_gate(start, gate_type):
    engine = start(gate_workflow(gate_type, ["a", "b"]))
    outcome = engine.approve("a", "A", "no budget", "reject")

    assert outcome.status == InstanceStatus.REJECTED
    assert engine.instance.status == InstanceStatus.REJECTED
    assert engine.instance.current_node_id == "gate"
    last = engine.get_history()[-1]
    assert last.action == HistoryAction.REJECT
    assert last.comment == "no budget"

    with pytest.raises(InstanceClosedError):
        engine.approve("b", "B", None, "approve")


def test_each_call_writes_one_actor_record(start):
    engine = start(amount_workflow(), {"amount": 5000})
    engine.approve("A", "A", None, "approve")
    attributed = [r for r in engine.get_history() if r.actor_id == "A"]
    assert len(attributed) == 1


def test_approve_before_submit_is_refused(repos, make_instance):
    engine = ApprovalEngine(make_instance(gate_workflow("single", ["a"])), repositories=repos)
    with pytest.raises(InvalidStateError):
        engine.approve("a", "A", None, "approve")


def test_unknown_result_is_refused(start):
    engine = start(gate_workflow("single", ["a"]))
    with pytest.raises(ValidationError):
        engine.approve("a", "A", None, "maybe")


def test_current_node_must_exist(repos, make_instance):
    instance_id = make_instance(
        gate_workflow("single", ["a"]),
        status=InstanceStatus.PENDING,
        current_node_id="ghost"
    )
    engine = ApprovalEngine(instance_id, repositories=repos)
    with pytest.raises(NodeNotFoundError):
        engine.approve("a", "A", None, "approve")
    assert engine.get_current_node_info() is None
    assert engine.get_current_approvers() == []


def test_unconnected_socket_rolls_back(repos, start):
    definition = workflow(
        "wf-broken",
        [
            node("start", "start"),
            node("review", "single", ["A"]),
            node("check", "condition", condition_rules=[rule("out-high", "amount", ">", 1000)]),
            node("end", "end"),
        ],
        [edge("start", "review"), edge("review", "check"), edge("check", "end", "out-high")]
    )
    engine = start(definition, {"amount": 5})
    before = repos.instances.get_by_id(engine.instance.instance_id)

    with pytest.raises(WorkflowConfigurationError):
        engine.approve("A", "A", None, "approve")

    after = repos.instances.get_by_id(engine.instance.instance_id)
    assert after == before
    assert actions(engine) == [(HistoryAction.SUBMIT, "applicant")]


# =============================================================================
# Read models and audit
# =============================================================================

def test_current_node_info_does_not_mutate(repos, start):
    engine = start(gate_workflow("parallel", ["a", "b", "c"]))
    engine.approve("a", "A", None, "approve")
    before = repos.instances.get_by_id(engine.instance.instance_id)

    info = engine.get_current_node_info()
    info.node.approvers.append("intruder")

    assert info.approved_count == 1
    assert info.total_count == 3
    assert info.next_approvers == ["b", "c"]
    assert repos.instances.get_by_id(engine.instance.instance_id) == before
    assert engine.graph.get_node("gate").approvers == ["a", "b", "c"]


def test_current_node_info_before_submit(repos, make_instance):
    engine = ApprovalEngine(make_instance(gate_workflow("single", ["a"])), repositories=repos)
    assert engine.get_current_node_info() is None


def test_audit_entries_are_written(repos, start):
    engine = start(gate_workflow("single", ["a"]))
    engine.approve("a", "A", "fine", "approve")
    entries = repos.audit.list_for_target(engine.instance.instance_id)
    assert sorted(e.action for e in entries) == [AuditAction.APPROVE, AuditAction.SUBMIT]
    assert all(e.module == "application" for e in entries)
