"""
approval_kernel.services.notification_service -- Who hears about what.

Responsibility:
    Builds subjects, links and templated bodies for every chain event and
    hands them to a ``Notifier``.  Applies the notification policy when an
    approver's step becomes active: managers and mid-level approvers get an
    email straight away, high-level approvers wait for the weekly digest.

Failure modes:
    - Delivery failures (False or NotificationDeliveryError) are logged as
      ``notification_failed`` and reported as False.  They never propagate,
      because the state change they announce is already persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from approval_kernel.domain.chain import ApprovalStep, RequestRecord
from approval_kernel.domain.notification_policy import Delivery, decide
from approval_kernel.exceptions import NotificationError
from approval_kernel.logging_config import get_logger
from approval_kernel.services.notifier import Notifier
from approval_kernel.services.templates import render_template

logger = get_logger("services.notification")


@dataclass(frozen=True)
class LinkBuilder:
    """Builds action and dashboard links from the deployment base URL."""

    base_url: str

    def _link(self, **params: str) -> str:
        separator = "&" if "?" in self.base_url else "?"
        return f"{self.base_url}{separator}{urlencode(params)}"

    def approve(self, task_id: str) -> str:
        return self._link(action="approve", taskId=task_id)

    def reject(self, task_id: str) -> str:
        return self._link(action="reject", taskId=task_id)

    def dashboard(self, email: str) -> str:
        return self._link(view="dashboard", email=email)


@dataclass(frozen=True)
class Announcement:
    """Outcome of announcing a newly active step."""

    delivery: Delivery
    sent: bool = False


class NotificationService:
    """Templated notifications for requesters and approvers."""

    def __init__(self, notifier: Notifier, links: LinkBuilder):
        self._notifier = notifier
        self._links = links

    def announce_active_step(
        self, record: RequestRecord, step: ApprovalStep,
    ) -> Announcement:
        """Email the approver now, or leave the step for the digest."""
        delivery = decide(step.role)
        if delivery == Delivery.DEFERRED:
            logger.info(
                "approver_notification_deferred",
                extra={
                    "request_id": record.request_id,
                    "task_id": step.task_id,
                    "approver": step.email,
                    "role": step.role.value,
                },
            )
            return Announcement(delivery)

        body = render_template("approval_request", {
            "approver_name": step.name or step.email,
            "request_id": record.request_id,
            "employee_name": record.fields.employee_name,
            "department": record.fields.department,
            "team": record.fields.team,
            "description": record.fields.description,
            "cost": record.fields.cost,
            "comments": step.comments,
            "approve_url": self._links.approve(step.task_id),
            "reject_url": self._links.reject(step.task_id),
            "dashboard_url": self._links.dashboard(step.email),
        })
        subject = f"[{record.request_id}] Approval needed: {record.fields.employee_name}"
        return Announcement(delivery, self._deliver(step.email, subject, body))

    def notify_progress(
        self,
        record: RequestRecord,
        approved: ApprovalStep,
        next_step: ApprovalStep,
    ) -> bool:
        body = render_template("request_progress", {
            "employee_name": record.fields.employee_name,
            "request_id": record.request_id,
            "approver_name": approved.name or approved.email,
            "next_approver_name": next_step.name or next_step.email,
            "comments": approved.comments,
        })
        subject = f"[{record.request_id}] Approved by {approved.name or approved.email}"
        return self._deliver(record.fields.submitter_email, subject, body)

    def notify_approved(self, record: RequestRecord, step: ApprovalStep) -> bool:
        body = render_template("request_approved", {
            "employee_name": record.fields.employee_name,
            "request_id": record.request_id,
            "approver_name": step.name or step.email,
            "comments": step.comments,
        })
        subject = f"[{record.request_id}] Request approved"
        return self._deliver(record.fields.submitter_email, subject, body)

    def notify_rejected(self, record: RequestRecord, step: ApprovalStep) -> bool:
        body = render_template("request_rejected", {
            "employee_name": record.fields.employee_name,
            "request_id": record.request_id,
            "approver_name": step.name or step.email,
            "comments": step.comments,
        })
        subject = f"[{record.request_id}] Request rejected"
        return self._deliver(record.fields.submitter_email, subject, body)

    def send_digest(self, email: str, name: str, pending_count: int) -> bool:
        body = render_template("weekly_digest", {
            "approver_name": name or email,
            "pending_count": pending_count,
            "dashboard_url": self._links.dashboard(email),
        })
        subject = f"Weekly approvals digest: {pending_count} pending"
        return self._deliver(email, subject, body)

    def _deliver(self, to: str, subject: str, body: str) -> bool:
        if not to:
            logger.warning("notification_skipped_no_recipient", extra={"subject": subject})
            return False
        try:
            sent = self._notifier.send(to, subject, body)
        except NotificationError:
            logger.error(
                "notification_failed",
                extra={"to": to, "subject": subject},
                exc_info=True,
            )
            return False
        if not sent:
            logger.error("notification_failed", extra={"to": to, "subject": subject})
            return False
        logger.info("notification_sent", extra={"to": to, "subject": subject})
        return True
