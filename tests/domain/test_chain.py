"""
Tests for approval chain value types and the step state machine.

Covers:
- build_chain(): first step Pending, rest Waiting, has_next, diagnostic
- transition_step(): legal edges, terminal guard, comment handling
- chain_state() / derive_request_status(): every phase
- RequestRecord helpers
"""

from datetime import datetime, timedelta, timezone

import pytest

from approval_kernel.domain.chain import (
    STEP_TRANSITIONS,
    ApproverTemplate,
    BusinessFields,
    ChainPhase,
    RequestRecord,
    RequestStatus,
    StepStatus,
    build_chain,
    chain_state,
    derive_request_status,
    fallback_comment,
    pending_count,
    replace_step,
    successor_index,
    transition_step,
)
from approval_kernel.domain.notification_policy import ApproverRole
from approval_kernel.exceptions import InvalidStepTransitionError

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

TEMPLATES = (
    ApproverTemplate("a@example.com", "A", "Team Lead"),
    ApproverTemplate("b@example.com", "B", "Engineering Manager"),
    ApproverTemplate("c@example.com", "C", "Director of Finance"),
)


def _ids():
    counter = iter(range(100))
    return lambda: f"task-{next(counter)}"


def _chain(templates=TEMPLATES, **kwargs):
    return build_chain(templates, now=NOW, task_id_factory=_ids(), **kwargs)


class TestBuildChain:
    def test_first_step_pending_rest_waiting(self):
        chain = _chain()
        assert [s.status for s in chain] == [
            StepStatus.PENDING, StepStatus.WAITING, StepStatus.WAITING,
        ]

    def test_has_next_false_only_on_last(self):
        chain = _chain()
        assert [s.has_next for s in chain] == [True, True, False]

    def test_single_step_chain(self):
        chain = _chain(TEMPLATES[:1])
        assert len(chain) == 1
        assert chain[0].status == StepStatus.PENDING
        assert chain[0].has_next is False

    def test_roles_resolved_from_titles(self):
        chain = _chain()
        assert [s.role for s in chain] == [
            ApproverRole.MID_LEVEL, ApproverRole.MANAGER, ApproverRole.HIGH_LEVEL,
        ]

    def test_explicit_role_overrides_title(self):
        template = ApproverTemplate("x@example.com", "X", "Director", ApproverRole.MANAGER)
        assert _chain((template,))[0].role == ApproverRole.MANAGER

    def test_diagnostic_goes_on_first_step_only(self):
        chain = _chain(diagnostic=fallback_comment("Unknown|Combo"))
        assert chain[0].comments == "Invalid routing key: Unknown|Combo"
        assert all(s.comments == "" for s in chain[1:])

    def test_task_ids_unique_by_default(self):
        chain = build_chain(TEMPLATES, now=NOW)
        assert len({s.task_id for s in chain}) == len(chain)

    def test_timestamps_set(self):
        assert all(s.timestamp == NOW for s in _chain())


class TestTransitionStep:
    def test_pending_to_approved(self):
        step = _chain()[0]
        later = NOW + timedelta(hours=1)
        approved = transition_step(step, StepStatus.APPROVED, now=later, comments="ok")
        assert approved.status == StepStatus.APPROVED
        assert approved.timestamp == later
        assert approved.comments == "ok"
        assert step.status == StepStatus.PENDING

    def test_waiting_to_pending(self):
        step = _chain()[1]
        assert transition_step(step, StepStatus.PENDING, now=NOW).status == StepStatus.PENDING

    @pytest.mark.parametrize("target", [StepStatus.APPROVED, StepStatus.REJECTED])
    def test_waiting_cannot_be_decided(self, target):
        with pytest.raises(InvalidStepTransitionError) as exc_info:
            transition_step(_chain()[1], target, now=NOW)
        assert exc_info.value.from_status == "Waiting"
        assert exc_info.value.code == "INVALID_STEP_TRANSITION"

    @pytest.mark.parametrize("terminal", [StepStatus.APPROVED, StepStatus.REJECTED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert STEP_TRANSITIONS[terminal] == frozenset()
        step = transition_step(_chain()[0], terminal, now=NOW)
        assert step.is_terminal
        for target in StepStatus:
            with pytest.raises(InvalidStepTransitionError):
                transition_step(step, target, now=NOW)

    def test_empty_comments_keep_existing(self):
        step = _chain(diagnostic="Invalid routing key: X|Y")[0]
        approved = transition_step(step, StepStatus.APPROVED, now=NOW, comments="")
        assert approved.comments == "Invalid routing key: X|Y"


class TestChainState:
    def test_fresh_chain_awaits_first_step(self):
        state = chain_state(_chain())
        assert state.phase == ChainPhase.AWAITING_STEP
        assert state.active_index == 0
        assert not state.is_resolved

    def test_mid_chain(self):
        chain = _chain()
        chain = replace_step(chain, 0, transition_step(chain[0], StepStatus.APPROVED, now=NOW))
        chain = replace_step(chain, 1, transition_step(chain[1], StepStatus.PENDING, now=NOW))
        assert chain_state(chain).active_index == 1
        assert derive_request_status(chain) == RequestStatus.PENDING

    def test_all_approved(self):
        chain = _chain(TEMPLATES[:2])
        chain = replace_step(chain, 0, transition_step(chain[0], StepStatus.APPROVED, now=NOW))
        chain = replace_step(chain, 1, transition_step(chain[1], StepStatus.PENDING, now=NOW))
        chain = replace_step(chain, 1, transition_step(chain[1], StepStatus.APPROVED, now=NOW))
        assert chain_state(chain).phase == ChainPhase.RESOLVED_APPROVED
        assert derive_request_status(chain) == RequestStatus.APPROVED

    def test_rejection_anywhere_resolves_rejected(self):
        chain = _chain()
        chain = replace_step(chain, 0, transition_step(chain[0], StepStatus.REJECTED, now=NOW))
        state = chain_state(chain)
        assert state.phase == ChainPhase.RESOLVED_REJECTED
        assert state.is_resolved
        assert derive_request_status(chain) == RequestStatus.REJECTED

    def test_empty_chain_is_routing(self):
        assert chain_state(()).phase == ChainPhase.ROUTING

    def test_at_most_one_pending(self):
        assert pending_count(_chain()) == 1


class TestSuccessor:
    def test_successor_follows_has_next(self):
        chain = _chain()
        assert successor_index(chain, 0) == 1
        assert successor_index(chain, 1) == 2
        assert successor_index(chain, 2) is None


class TestRequestRecord:
    def test_active_step_and_step_index(self):
        chain = _chain()
        record = RequestRecord(
            request_id="REQ-00001",
            response_id="r1",
            fields=BusinessFields("Ada", "Sales", "EMEA"),
            chain=chain,
        )
        assert record.has_chain
        assert record.active_step == chain[0]
        assert record.step_index("task-2") == 2
        assert record.step_index("missing") is None

    def test_record_without_chain(self):
        record = RequestRecord("", "r1", BusinessFields("Ada", "Sales", "EMEA"))
        assert not record.has_chain
        assert record.active_step is None
