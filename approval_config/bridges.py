"""
Bridges from configuration artifacts to kernel objects.

The kernel never reads configuration; these functions translate a loaded
``ApprovalConfiguration`` into the objects the kernel is constructed with.
"""

from __future__ import annotations

from approval_config.schema import ApprovalConfiguration, ApprovalSettings, ApproverDef
from approval_kernel.domain.chain import ApproverTemplate
from approval_kernel.domain.notification_policy import parse_role
from approval_kernel.domain.routing import RoutingTable
from approval_kernel.services.notification_service import LinkBuilder
from approval_kernel.services.notifier import Notifier, OutboxNotifier, SmtpNotifier


def to_template(approver: ApproverDef) -> ApproverTemplate:
    """Resolve the approver's role once, here, and carry it on the template."""
    return ApproverTemplate(
        email=approver.email,
        name=approver.name,
        title=approver.title,
        role=parse_role(approver.role, approver.title),
    )


def build_routing_table(config: ApprovalConfiguration) -> RoutingTable:
    return RoutingTable(
        routes={
            key: tuple(to_template(a) for a in chain)
            for key, chain in config.routing.routes
        },
        fallback=tuple(to_template(a) for a in config.routing.fallback),
        source=config.config_id,
    )


def build_notifier(settings: ApprovalSettings, dry_run: bool = False) -> Notifier:
    """SMTP when configured, otherwise an in-memory outbox."""
    if dry_run or settings.smtp is None:
        return OutboxNotifier()
    smtp = settings.smtp
    return SmtpNotifier(
        host=smtp.host,
        port=smtp.port,
        sender=smtp.sender,
        username=smtp.username,
        password=smtp.password,
        use_tls=smtp.use_tls,
    )


def build_link_builder(settings: ApprovalSettings) -> LinkBuilder:
    return LinkBuilder(base_url=settings.action_base_url)
