"""
Module: approval_kernel.selectors.dashboard_selector
Responsibility: Per-approver dashboard and digest counts, derived by scanning
    every stored chain.  Nothing is cached or stored separately.

Invariants enforced:
    - Approver matching is case-insensitive on email.
    - Approved and Rejected buckets hold at most ``history_limit`` items
      (default 20), the most recently updated ones.
    - Every bucket is ordered by step timestamp, newest first.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone

from approval_kernel.domain.chain import (
    ApprovalStep,
    BusinessFields,
    RequestRecord,
    RequestStatus,
    StepStatus,
)
from approval_kernel.domain.notification_policy import ApproverRole
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.services.record_store import RequestRecordStore

DEFAULT_HISTORY_LIMIT = 20
TITLE_SEPARATOR = " / "

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DashboardItem:
    """One step of one request, as seen by its approver."""

    request_id: str
    request_status: RequestStatus
    fields: BusinessFields
    step: ApprovalStep
    step_position: int
    chain_length: int

    @property
    def task_id(self) -> str:
        return self.step.task_id

    @property
    def timestamp(self) -> datetime | None:
        return self.step.timestamp


@dataclass(frozen=True)
class Dashboard:
    email: str
    pending: tuple[DashboardItem, ...] = ()
    approved: tuple[DashboardItem, ...] = ()
    rejected: tuple[DashboardItem, ...] = ()
    title_label: str = ""


@dataclass(frozen=True)
class PendingSummary:
    """Pending high-level work for one approver."""

    email: str
    name: str
    count: int


def _sort_key(item: DashboardItem) -> datetime:
    stamp = item.timestamp
    if stamp is None:
        return _OLDEST
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp


def _newest_first(items: list[DashboardItem]) -> list[DashboardItem]:
    return sorted(items, key=_sort_key, reverse=True)


class DashboardSelector(BaseSelector):
    """Approver dashboards and pending-work counts."""

    def __init__(
        self,
        store: RequestRecordStore,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        super().__init__(store)
        self._history_limit = history_limit

    def get_dashboard(self, email: str) -> Dashboard:
        wanted = email.strip().lower()
        buckets: dict[StepStatus, list[DashboardItem]] = {
            StepStatus.PENDING: [],
            StepStatus.APPROVED: [],
            StepStatus.REJECTED: [],
        }
        titles: OrderedDict[str, None] = OrderedDict()

        for stored in self.store.load_all():
            record = stored.record
            for position, step in enumerate(record.chain):
                if step.email.strip().lower() != wanted:
                    continue
                if step.title:
                    titles.setdefault(step.title, None)
                bucket = buckets.get(step.status)
                if bucket is not None:
                    bucket.append(_item(record, step, position))

        limit = self._history_limit
        return Dashboard(
            email=email,
            pending=tuple(_newest_first(buckets[StepStatus.PENDING])),
            approved=tuple(_newest_first(buckets[StepStatus.APPROVED])[:limit]),
            rejected=tuple(_newest_first(buckets[StepStatus.REJECTED])[:limit]),
            title_label=TITLE_SEPARATOR.join(titles),
        )

    def pending_high_level_counts(self) -> list[PendingSummary]:
        """Pending steps held by high-level approvers, counted per email."""
        counts: dict[str, int] = {}
        names: dict[str, str] = {}
        for stored in self.store.load_all():
            for step in stored.record.chain:
                if step.status != StepStatus.PENDING:
                    continue
                if step.role != ApproverRole.HIGH_LEVEL:
                    continue
                key = step.email.strip().lower()
                if not key:
                    continue
                counts[key] = counts.get(key, 0) + 1
                names.setdefault(key, step.name)

        return [
            PendingSummary(email=key, name=names[key], count=counts[key])
            for key in sorted(counts)
        ]


def _item(record: RequestRecord, step: ApprovalStep, position: int) -> DashboardItem:
    return DashboardItem(
        request_id=record.request_id,
        request_status=record.status,
        fields=record.fields,
        step=step,
        step_position=position,
        chain_length=len(record.chain),
    )
