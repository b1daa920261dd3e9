#!/usr/bin/env python3
"""
Command-line intake and action surface for the approval kernel.

Usage:
    python -m scripts.approvals_cli init-db
    python -m scripts.approvals_cli submit --response-id R1 --employee "Ada" \\
        --department Sales --team "North America" --cost 120.50 --email ada@example.com
    python -m scripts.approvals_cli approve <task_id> --comments "ok"
    python -m scripts.approvals_cli reject <task_id> --comments "over budget"
    python -m scripts.approvals_cli dashboard lead.na@example.com
    python -m scripts.approvals_cli digest
    python -m scripts.approvals_cli show REQ-00001

Configuration comes from approval_config (``--config-dir`` / ``--config-set``);
``--database-url`` overrides the configured database.  With ``--dry-run``
notifications are printed instead of sent.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from approval_config import get_active_config
from approval_config.bridges import (
    build_link_builder,
    build_notifier,
    build_routing_table,
)
from approval_config.schema import ApprovalConfiguration
from approval_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from approval_kernel.db.sql_table import SqlTable
from approval_kernel.domain.chain import BusinessFields
from approval_kernel.exceptions import ApprovalKernelError
from approval_kernel.logging_config import configure_logging
from approval_kernel.selectors.dashboard_selector import Dashboard, DashboardSelector
from approval_kernel.selectors.request_selector import RequestSelector
from approval_kernel.services.digest_service import DigestService
from approval_kernel.services.notification_service import NotificationService
from approval_kernel.services.notifier import Notifier, OutboxNotifier
from approval_kernel.services.record_store import RequestRecordStore
from approval_kernel.services.sequence_service import RequestIdGenerator, SequenceService
from approval_kernel.services.transition_engine import ApprovalEngine, Submission


@dataclass
class Runtime:
    """Everything one invocation needs, wired from configuration."""

    config: ApprovalConfiguration
    store: RequestRecordStore
    engine: ApprovalEngine
    dashboards: DashboardSelector
    requests: RequestSelector
    digest: DigestService
    notifier: Notifier


def build_runtime(
    config: ApprovalConfiguration,
    database_url: str | None = None,
    dry_run: bool = False,
) -> Runtime:
    settings = config.settings
    init_engine_from_url(database_url or settings.database_url)
    create_tables()
    factory = get_session_factory()

    store = RequestRecordStore(SqlTable(factory, sheet=settings.sheet))
    notifier = build_notifier(settings, dry_run=dry_run)
    notifications = NotificationService(notifier, build_link_builder(settings))
    dashboards = DashboardSelector(store, history_limit=settings.dashboard_history_limit)

    engine = ApprovalEngine(
        store=store,
        routing=build_routing_table(config),
        request_ids=RequestIdGenerator(
            SequenceService(factory),
            prefix=settings.request_id_prefix,
            width=settings.request_id_width,
        ),
        notifications=notifications,
    )
    return Runtime(
        config=config,
        store=store,
        engine=engine,
        dashboards=dashboards,
        requests=RequestSelector(store),
        digest=DigestService(dashboards, notifications),
        notifier=notifier,
    )


def _parse_cost(value: str | None) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid cost: {value!r}")


def _print_dashboard(dashboard: Dashboard) -> None:
    print(f"Dashboard for {dashboard.email} ({dashboard.title_label or 'no title'})")
    for label, items in (
        ("Pending", dashboard.pending),
        ("Approved", dashboard.approved),
        ("Rejected", dashboard.rejected),
    ):
        print(f"  {label}: {len(items)}")
        for item in items:
            stamp = item.timestamp.isoformat() if item.timestamp else "-"
            print(
                f"    {item.request_id:<12} {item.fields.employee_name:<24} "
                f"{stamp}  task={item.task_id}"
            )


def _print_outbox(notifier: Notifier) -> None:
    if not isinstance(notifier, OutboxNotifier):
        return
    for message in notifier.messages:
        print(f"  -> {message.to}: {message.subject}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="approvals", description=__doc__.split("\n\n")[0])
    parser.add_argument("--config-dir", type=Path, default=None)
    parser.add_argument("--config-set", default="default")
    parser.add_argument("--database-url", default=None)
    parser.add_argument("--dry-run", action="store_true", help="print notifications instead of sending")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables")

    submit = sub.add_parser("submit", help="file or edit a request")
    submit.add_argument("--response-id", required=True)
    submit.add_argument("--employee", required=True)
    submit.add_argument("--department", required=True)
    submit.add_argument("--team", required=True)
    submit.add_argument("--description", default="")
    submit.add_argument("--cost", default=None)
    submit.add_argument("--email", default="", help="submitter email")

    for name in ("approve", "reject"):
        action = sub.add_parser(name, help=f"{name} a step by task id")
        action.add_argument("task_id")
        action.add_argument("--comments", default="")

    dashboard = sub.add_parser("dashboard", help="show an approver's dashboard")
    dashboard.add_argument("email")

    sub.add_parser("digest", help="send the weekly digest")

    show = sub.add_parser("show", help="show one request")
    show.add_argument("request_id")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config_dir, args.config_set)
        runtime = build_runtime(config, args.database_url, dry_run=args.dry_run)

        if args.command == "init-db":
            print("Tables ready.")
        elif args.command == "submit":
            result = runtime.engine.submit(
                Submission(
                    response_id=args.response_id,
                    fields=BusinessFields(
                        employee_name=args.employee,
                        department=args.department,
                        team=args.team,
                        description=args.description,
                        cost=_parse_cost(args.cost),
                        submitter_email=args.email,
                    ),
                )
            )
            print(f"{result.outcome.value}: {result.request_id}")
            for step in result.record.chain:
                print(f"  {step.status.value:<8} {step.email:<32} task={step.task_id}")
        elif args.command == "approve":
            print(runtime.engine.approve(args.task_id, args.comments).acknowledgement())
        elif args.command == "reject":
            print(runtime.engine.reject(args.task_id, args.comments).acknowledgement())
        elif args.command == "dashboard":
            _print_dashboard(runtime.dashboards.get_dashboard(args.email))
        elif args.command == "digest":
            result = runtime.digest.send_weekly_digest()
            print(f"Digest sent to {len(result.sent)} approver(s), {len(result.failed)} failed.")
        elif args.command == "show":
            record = runtime.requests.get_request(args.request_id)
            if record is None:
                print(f"No request {args.request_id}", file=sys.stderr)
                return 1
            print(f"{record.request_id} [{record.status.value}] {record.fields.employee_name}")
            for step in record.chain:
                print(f"  {step.status.value:<8} {step.title:<28} {step.email}  {step.comments}")

        _print_outbox(runtime.notifier)
    except (ApprovalKernelError, FileNotFoundError, argparse.ArgumentTypeError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
