"""
approval_kernel.services.transition_engine -- Submit, approve, reject.

Responsibility:
    The write side of the approval chain.  A submission is routed into a
    chain and persisted (or, for a known response id, edited in place); an
    approver action moves one step and, on approval, activates its successor.
    Each operation reads the table once, writes through the record store and
    then notifies.

Architecture position:
    Kernel > Services.  May import from domain/, db/ and other services.

Invariants enforced:
    - Idempotent resubmission: a known ``response_id`` updates the same row;
      an in-flight chain is never rebuilt or restarted.
    - Single decision per step: an action on a step that is not Pending is a
      no-op, so duplicate link clicks never activate a successor twice or
      send a second notification.
    - Rejection is terminal at any chain position.
    - State before mail: every status change is written before the related
      notification is attempted; delivery failure never rolls it back.

Concurrency:
    Read-modify-write with no locking.  Two invocations racing on the same
    step both see it Pending and the last write wins.  This is an accepted
    risk of the tabular backend.

Failure modes:
    - StorageUnavailableError from the store propagates to the caller.
    - InvalidStepTransitionError if stored data breaks the step state
      machine (for example a successor that is not Waiting).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from approval_kernel.domain.chain import (
    ApprovalStep,
    BusinessFields,
    RequestRecord,
    RequestStatus,
    StepStatus,
    build_chain,
    fallback_comment,
    replace_step,
    successor_index,
    transition_step,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.routing import RoutingTable, selector_key
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.services.notification_service import (
    Announcement,
    NotificationService,
)
from approval_kernel.services.record_store import (
    REQUEST_ID,
    RecordIndex,
    RequestRecordStore,
    StepLocation,
    StoredRow,
)
from approval_kernel.services.sequence_service import RequestIdGenerator

logger = get_logger("services.transition_engine")


# =========================================================================
# Inputs and results
# =========================================================================


@dataclass(frozen=True)
class Submission:
    """One intake event.  Department and team in ``fields`` select the route."""

    response_id: str
    fields: BusinessFields


class SubmitOutcome(str, Enum):
    CREATED = "created"
    EDITED = "edited"


@dataclass(frozen=True)
class SubmitResult:
    outcome: SubmitOutcome
    record: RequestRecord
    row_index: int
    is_fallback: bool = False
    announcement: Announcement | None = None

    @property
    def request_id(self) -> str:
        return self.record.request_id


class ActionOutcome(str, Enum):
    ADVANCED = "advanced"
    COMPLETED = "completed"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    ALREADY_RESOLVED = "already_resolved"
    NOT_ACTIVE = "not_active"


_NO_OP_OUTCOMES = frozenset({
    ActionOutcome.NOT_FOUND,
    ActionOutcome.ALREADY_RESOLVED,
    ActionOutcome.NOT_ACTIVE,
})


@dataclass(frozen=True)
class ActionResult:
    """Result of an approve/reject action."""

    outcome: ActionOutcome
    task_id: str
    record: RequestRecord | None = None
    step: ApprovalStep | None = None
    activated_step: ApprovalStep | None = None
    requester_notified: bool = False
    announcement: Announcement | None = None

    @property
    def applied(self) -> bool:
        return self.outcome not in _NO_OP_OUTCOMES

    def acknowledgement(self) -> str:
        """Short message shown to the approver after clicking a link."""
        request_id = self.record.request_id if self.record else ""
        if self.outcome == ActionOutcome.NOT_FOUND:
            return "This approval link is no longer valid."
        if self.outcome == ActionOutcome.ALREADY_RESOLVED:
            status = self.step.status.value.lower() if self.step else "decided"
            return f"This step of request {request_id} was already {status}."
        if self.outcome == ActionOutcome.NOT_ACTIVE:
            return f"Request {request_id} is not awaiting your decision yet."
        if self.outcome == ActionOutcome.ADVANCED:
            return f"Request {request_id} approved. It has moved to the next approver."
        if self.outcome == ActionOutcome.COMPLETED:
            return f"Request {request_id} approved."
        return f"Request {request_id} rejected."


# =========================================================================
# Engine
# =========================================================================


class ApprovalEngine:
    """Applies submissions and approver decisions to stored chains."""

    def __init__(
        self,
        store: RequestRecordStore,
        routing: RoutingTable,
        request_ids: RequestIdGenerator,
        notifications: NotificationService,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._routing = routing
        self._request_ids = request_ids
        self._notifications = notifications
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Submit / edit
    # ------------------------------------------------------------------

    def submit(self, submission: Submission) -> SubmitResult:
        """Create a request, or edit the one already filed for this response."""
        with LogContext.bind(correlation_id=submission.response_id):
            index = self._store.index()
            row_index = index.by_response_id.get(submission.response_id)
            if row_index is not None:
                stored = index.row(row_index)
                assert stored is not None
                return self._edit(stored, submission, index.columns)
            return self._create(submission)

    def _create(self, submission: Submission) -> SubmitResult:
        now = self._clock.now()
        chain, is_fallback = self._route(submission.fields)
        record = RequestRecord(
            request_id=self._request_ids.next_request_id(),
            response_id=submission.response_id,
            fields=submission.fields,
            status=RequestStatus.PENDING,
            submitted_at=now,
            chain=chain,
        )
        with LogContext.bind(request_id=record.request_id):
            row_index = self._store.insert_record(record)
            logger.info(
                "request_submitted",
                extra={
                    "row_index": row_index,
                    "chain_length": len(chain),
                    "fallback_route": is_fallback,
                },
            )
            return SubmitResult(
                outcome=SubmitOutcome.CREATED,
                record=record,
                row_index=row_index,
                is_fallback=is_fallback,
                announcement=self._announce(record),
            )

    def _edit(
        self, stored: StoredRow, submission: Submission, columns: dict[str, int],
    ) -> SubmitResult:
        row_index = stored.row_index
        record = replace(stored.record, fields=submission.fields)
        self._store.write_fields(row_index, submission.fields, columns)

        if not record.request_id:
            record = replace(record, request_id=self._request_ids.next_request_id())
            self._store.write_scalar(row_index, REQUEST_ID, record.request_id, columns)

        is_fallback = False
        if not record.has_chain:
            # First completion of a row that was filed without a chain.
            chain, is_fallback = self._route(submission.fields)
            record = replace(record, chain=chain, status=RequestStatus.PENDING)
            self._store.write_chain(row_index, chain, columns)
            self._store.write_status(row_index, RequestStatus.PENDING, columns)

        with LogContext.bind(request_id=record.request_id):
            logger.info(
                "request_edited",
                extra={
                    "row_index": row_index,
                    "chain_built": not stored.record.has_chain,
                },
            )
            return SubmitResult(
                outcome=SubmitOutcome.EDITED,
                record=record,
                row_index=row_index,
                is_fallback=is_fallback,
                announcement=self._announce(record),
            )

    def _route(self, fields: BusinessFields) -> tuple[tuple[ApprovalStep, ...], bool]:
        key = selector_key(fields.department, fields.team)
        resolution = self._routing.resolve(key)
        diagnostic = None
        if resolution.is_fallback:
            diagnostic = fallback_comment(key)
            logger.warning("routing_key_unmatched", extra={"selector_key": key})
        chain = build_chain(
            resolution.templates,
            now=self._clock.now(),
            diagnostic=diagnostic,
        )
        return chain, resolution.is_fallback

    def _announce(self, record: RequestRecord) -> Announcement | None:
        step = record.active_step
        if step is None:
            return None
        return self._notifications.announce_active_step(record, step)

    # ------------------------------------------------------------------
    # Approver actions
    # ------------------------------------------------------------------

    def approve(self, task_id: str, comments: str = "") -> ActionResult:
        """Approve the step behind ``task_id`` and activate its successor."""
        index = self._store.index()
        location = index.by_task_id.get(task_id)
        with _action_context(task_id, location):
            skipped = self._guard(task_id, location)
            if skipped is not None:
                return skipped
            return self._apply_approval(index, location, comments)

    def reject(self, task_id: str, comments: str = "") -> ActionResult:
        """Reject the step behind ``task_id``.  Ends the chain."""
        index = self._store.index()
        location = index.by_task_id.get(task_id)
        with _action_context(task_id, location):
            skipped = self._guard(task_id, location)
            if skipped is not None:
                return skipped

            record = location.record
            rejected = transition_step(
                location.step, StepStatus.REJECTED,
                now=self._clock.now(), comments=comments,
            )
            self._store.write_step(location, rejected)
            self._store.write_status(
                location.row_index, RequestStatus.REJECTED, index.columns,
            )
            record = replace(
                record,
                chain=replace_step(record.chain, location.step_position, rejected),
                status=RequestStatus.REJECTED,
            )

            logger.info(
                "step_rejected",
                extra={
                    "request_id": record.request_id,
                    "approver": rejected.email,
                    "step_position": location.step_position,
                },
            )

            return ActionResult(
                outcome=ActionOutcome.REJECTED,
                task_id=task_id,
                record=record,
                step=rejected,
                requester_notified=self._notifications.notify_rejected(record, rejected),
            )

    def _apply_approval(
        self, index: RecordIndex, location: StepLocation, comments: str,
    ) -> ActionResult:
        now = self._clock.now()
        record = location.record
        position = location.step_position

        approved = transition_step(
            location.step, StepStatus.APPROVED, now=now, comments=comments,
        )
        self._store.write_step(location, approved)
        chain = replace_step(record.chain, position, approved)

        logger.info(
            "step_approved",
            extra={
                "request_id": record.request_id,
                "approver": approved.email,
                "step_position": position,
            },
        )

        next_position = successor_index(chain, position)
        if next_position is None:
            record = replace(record, chain=chain, status=RequestStatus.APPROVED)
            self._store.write_status(
                location.row_index, RequestStatus.APPROVED, index.columns,
            )
            logger.info("request_approved", extra={"request_id": record.request_id})
            return ActionResult(
                outcome=ActionOutcome.COMPLETED,
                task_id=approved.task_id,
                record=record,
                step=approved,
                requester_notified=self._notifications.notify_approved(record, approved),
            )

        activated = transition_step(chain[next_position], StepStatus.PENDING, now=now)
        record = replace(record, chain=replace_step(chain, next_position, activated))

        stored = index.row(location.row_index)
        assert stored is not None
        self._store.write_step_at(stored, next_position, activated)
        requester_notified = self._notifications.notify_progress(record, approved, activated)

        logger.info(
            "step_activated",
            extra={
                "request_id": record.request_id,
                "approver": activated.email,
                "step_position": next_position,
            },
        )

        return ActionResult(
            outcome=ActionOutcome.ADVANCED,
            task_id=approved.task_id,
            record=record,
            step=approved,
            activated_step=activated,
            requester_notified=requester_notified,
            announcement=self._notifications.announce_active_step(record, activated),
        )

    def _guard(self, task_id: str, location: StepLocation | None) -> ActionResult | None:
        """No-op result for unknown or non-Pending steps, else None."""
        if location is None:
            logger.info("action_task_not_found", extra={"task_id": task_id})
            return ActionResult(outcome=ActionOutcome.NOT_FOUND, task_id=task_id)

        step = location.step
        if step.status == StepStatus.PENDING:
            return None

        outcome = (
            ActionOutcome.ALREADY_RESOLVED if step.is_terminal
            else ActionOutcome.NOT_ACTIVE
        )
        logger.info(
            "action_ignored",
            extra={
                "task_id": task_id,
                "request_id": location.record.request_id,
                "step_status": step.status.value,
                "outcome": outcome.value,
            },
        )
        return ActionResult(
            outcome=outcome,
            task_id=task_id,
            record=location.record,
            step=step,
        )


def _action_context(task_id: str, location: StepLocation | None):
    """Bind the task, and once it is located its request and approver."""
    if location is None:
        return LogContext.bind(task_id=task_id)
    return LogContext.bind(
        task_id=task_id,
        request_id=location.record.request_id or None,
        actor_email=location.step.email or None,
    )
