"""
Approval configuration schema.

Source-artifact types parsed from the YAML files of a configuration set.
Bridges translate them into kernel objects (``RoutingTable``, notifiers);
the kernel never imports this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ApproverDef:
    """One approver of a route."""

    email: str
    name: str
    title: str
    role: str | None = None  # manager | mid_level | high_level; derived from title if absent


@dataclass(frozen=True)
class RoutingDef:
    """Routes keyed by ``"<department>|<team>"`` plus the required fallback."""

    routes: tuple[tuple[str, tuple[ApproverDef, ...]], ...] = ()
    fallback: tuple[ApproverDef, ...] = ()


@dataclass(frozen=True)
class SmtpDef:
    host: str
    sender: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True


@dataclass(frozen=True)
class ApprovalSettings:
    database_url: str = "sqlite:///approvals.sqlite3"
    sheet: str = "requests"
    request_id_prefix: str = "REQ-"
    request_id_width: int = 5
    action_base_url: str = "http://localhost:8000/approvals"
    dashboard_history_limit: int = 20
    smtp: SmtpDef | None = None


@dataclass(frozen=True)
class ApprovalConfiguration:
    """A loaded configuration set."""

    config_id: str
    settings: ApprovalSettings = field(default_factory=ApprovalSettings)
    routing: RoutingDef = field(default_factory=RoutingDef)
    checksum: str = ""
