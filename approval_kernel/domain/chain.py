"""
Approval chain domain types (``approval_kernel.domain.chain``).

Responsibility
--------------
Pure value objects for one request and its ordered chain of approval
steps, plus the step state machine and the functions that derive chain
state from step statuses.  ZERO I/O: timestamps are passed in by callers
that own a ``Clock``.

Invariants enforced
-------------------
* Step state machine -- ``STEP_TRANSITIONS`` lists the only legal status
  changes.  Approved and Rejected have no outgoing edges, so a step is
  decided exactly once.
* Single active step -- ``build_chain`` creates exactly one Pending step
  and the engine only promotes a Waiting step once its
  predecessor is Approved.
* Overall status is derived from the chain (``derive_request_status``),
  never set independently.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Sequence
from uuid import uuid4

from approval_kernel.domain.notification_policy import ApproverRole, classify_title
from approval_kernel.exceptions import InvalidStepTransitionError


# =========================================================================
# Status enums and the step state machine
# =========================================================================


class StepStatus(str, Enum):
    """Lifecycle of a single approval step."""

    WAITING = "Waiting"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class RequestStatus(str, Enum):
    """Overall status of a request, mirroring its chain outcome."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.WAITING: frozenset({StepStatus.PENDING}),
    StepStatus.PENDING: frozenset({StepStatus.APPROVED, StepStatus.REJECTED}),
    StepStatus.APPROVED: frozenset(),
    StepStatus.REJECTED: frozenset(),
}

TERMINAL_STEP_STATUSES: frozenset[StepStatus] = frozenset({
    StepStatus.APPROVED,
    StepStatus.REJECTED,
})


class ChainPhase(str, Enum):
    """Phase of a chain as derived from its step statuses."""

    ROUTING = "routing"
    AWAITING_STEP = "awaiting_step"
    RESOLVED_APPROVED = "resolved_approved"
    RESOLVED_REJECTED = "resolved_rejected"


@dataclass(frozen=True)
class ChainState:
    """Derived chain state.  ``active_index`` is set only when awaiting a step."""

    phase: ChainPhase
    active_index: int | None = None

    @property
    def is_resolved(self) -> bool:
        return self.phase in (
            ChainPhase.RESOLVED_APPROVED,
            ChainPhase.RESOLVED_REJECTED,
        )


# =========================================================================
# Value objects
# =========================================================================


@dataclass(frozen=True)
class ApproverTemplate:
    """One approver entry of a route, as configured."""

    email: str
    name: str
    title: str
    role: ApproverRole | None = None

    @property
    def resolved_role(self) -> ApproverRole:
        return self.role if self.role is not None else classify_title(self.title)


@dataclass(frozen=True)
class ApprovalStep:
    """One stage of a chain.  Immutable; transitions return a new step."""

    task_id: str
    email: str
    name: str
    title: str
    role: ApproverRole
    status: StepStatus = StepStatus.WAITING
    timestamp: datetime | None = None
    comments: str = ""
    has_next: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES


@dataclass(frozen=True)
class BusinessFields:
    """The requester-supplied part of a request."""

    employee_name: str
    department: str
    team: str
    description: str = ""
    cost: Decimal | None = None
    submitter_email: str = ""


@dataclass(frozen=True)
class RequestRecord:
    """One submission and the chain it owns."""

    request_id: str
    response_id: str
    fields: BusinessFields
    status: RequestStatus = RequestStatus.PENDING
    submitted_at: datetime | None = None
    chain: tuple[ApprovalStep, ...] = field(default_factory=tuple)

    @property
    def has_chain(self) -> bool:
        return len(self.chain) > 0

    @property
    def active_step(self) -> ApprovalStep | None:
        state = chain_state(self.chain)
        if state.active_index is None:
            return None
        return self.chain[state.active_index]

    def step_index(self, task_id: str) -> int | None:
        for index, step in enumerate(self.chain):
            if step.task_id == task_id:
                return index
        return None


# =========================================================================
# Chain construction and transitions
# =========================================================================


def new_task_id() -> str:
    """Opaque, unguessable-enough token embedded in action links."""
    return uuid4().hex


def fallback_comment(selector_key: str) -> str:
    """Diagnostic attached to the first step of a fallback chain."""
    return f"Invalid routing key: {selector_key}"


def build_chain(
    templates: Sequence[ApproverTemplate],
    *,
    now: datetime,
    diagnostic: str | None = None,
    task_id_factory: Callable[[], str] = new_task_id,
) -> tuple[ApprovalStep, ...]:
    """Create the steps for a freshly routed request.

    The first step starts Pending and the rest Waiting.  ``diagnostic``
    (used for fallback routing) becomes the first step's comment.
    """
    last = len(templates) - 1
    steps = []
    for index, template in enumerate(templates):
        steps.append(
            ApprovalStep(
                task_id=task_id_factory(),
                email=template.email,
                name=template.name,
                title=template.title,
                role=template.resolved_role,
                status=StepStatus.PENDING if index == 0 else StepStatus.WAITING,
                timestamp=now,
                comments=(diagnostic or "") if index == 0 else "",
                has_next=index < last,
            )
        )
    return tuple(steps)


def transition_step(
    step: ApprovalStep,
    to_status: StepStatus,
    *,
    now: datetime,
    comments: str | None = None,
) -> ApprovalStep:
    """Apply one status change.

    Raises:
        InvalidStepTransitionError: if the change is not in STEP_TRANSITIONS.
    """
    allowed = STEP_TRANSITIONS.get(step.status, frozenset())
    if to_status not in allowed:
        raise InvalidStepTransitionError(
            step.task_id, step.status.value, to_status.value,
        )
    return replace(
        step,
        status=to_status,
        timestamp=now,
        comments=comments if comments else step.comments,
    )


def successor_index(chain: Sequence[ApprovalStep], index: int) -> int | None:
    """Index of the step after ``index``, if the chain continues."""
    if chain[index].has_next and index + 1 < len(chain):
        return index + 1
    return None


def replace_step(
    chain: Sequence[ApprovalStep], index: int, step: ApprovalStep,
) -> tuple[ApprovalStep, ...]:
    updated = list(chain)
    updated[index] = step
    return tuple(updated)


def chain_state(chain: Sequence[ApprovalStep]) -> ChainState:
    """Derive the chain phase from its step statuses."""
    if any(step.status == StepStatus.REJECTED for step in chain):
        return ChainState(ChainPhase.RESOLVED_REJECTED)
    for index, step in enumerate(chain):
        if step.status == StepStatus.PENDING:
            return ChainState(ChainPhase.AWAITING_STEP, index)
    # The last step is only activated after all others were approved.
    if chain and chain[-1].status == StepStatus.APPROVED:
        return ChainState(ChainPhase.RESOLVED_APPROVED)
    return ChainState(ChainPhase.ROUTING)


def derive_request_status(chain: Sequence[ApprovalStep]) -> RequestStatus:
    phase = chain_state(chain).phase
    if phase == ChainPhase.RESOLVED_APPROVED:
        return RequestStatus.APPROVED
    if phase == ChainPhase.RESOLVED_REJECTED:
        return RequestStatus.REJECTED
    return RequestStatus.PENDING


def pending_count(chain: Sequence[ApprovalStep]) -> int:
    return sum(1 for step in chain if step.status == StepStatus.PENDING)
