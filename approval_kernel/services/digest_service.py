"""
approval_kernel.services.digest_service -- Weekly digest for senior approvers.

Responsibility:
    Run by an external scheduler.  Counts Pending steps held by high-level
    approvers and sends each approver with at least one such step a single
    summary message.  Never mutates chain state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from approval_kernel.logging_config import get_logger
from approval_kernel.selectors.dashboard_selector import DashboardSelector
from approval_kernel.services.notification_service import NotificationService

logger = get_logger("services.digest")


@dataclass(frozen=True)
class DigestResult:
    counts: dict[str, int] = field(default_factory=dict)
    sent: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


class DigestService:
    def __init__(self, selector: DashboardSelector, notifications: NotificationService):
        self._selector = selector
        self._notifications = notifications

    def send_weekly_digest(self) -> DigestResult:
        summaries = self._selector.pending_high_level_counts()
        sent: list[str] = []
        failed: list[str] = []
        for summary in summaries:
            if summary.count < 1:
                continue
            delivered = self._notifications.send_digest(
                summary.email, summary.name, summary.count,
            )
            (sent if delivered else failed).append(summary.email)

        result = DigestResult(
            counts={s.email: s.count for s in summaries},
            sent=tuple(sent),
            failed=tuple(failed),
        )
        logger.info(
            "weekly_digest_completed",
            extra={
                "approvers": len(summaries),
                "sent": len(result.sent),
                "failed": len(result.failed),
            },
        )
        return result
