"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads the YAML files of one configuration set (``settings.yaml`` and
``routing.yaml``) and parses them into ``approval_config.schema`` frozen
dataclasses.  Runtime callers go through ``approval_config.get_active_config()``.

Failure modes
-------------
* Missing ``routing.yaml``  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Approver entry without an email, or with an unknown role
  -> ``InvalidRoutingEntryError``.
* No fallback chain  -> ``MissingFallbackRouteError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import (
    ApprovalConfiguration,
    ApprovalSettings,
    ApproverDef,
    RoutingDef,
    SmtpDef,
)
from approval_kernel.domain.notification_policy import parse_role
from approval_kernel.exceptions import (
    InvalidRoutingEntryError,
    MissingFallbackRouteError,
)

SETTINGS_FILE = "settings.yaml"
ROUTING_FILE = "routing.yaml"
FALLBACK_KEY = "fallback"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_approver(route_key: str, data: Any) -> ApproverDef:
    if not isinstance(data, dict):
        raise InvalidRoutingEntryError(route_key, "approver entry must be a mapping")
    email = str(data.get("email") or "").strip()
    if not email:
        raise InvalidRoutingEntryError(route_key, "approver email is required")
    title = str(data.get("title") or "")
    role = data.get("role")
    if role is not None:
        try:
            parse_role(str(role), title)
        except ValueError as exc:
            raise InvalidRoutingEntryError(route_key, str(exc)) from exc
    return ApproverDef(
        email=email,
        name=str(data.get("name") or ""),
        title=title,
        role=str(role) if role is not None else None,
    )


def parse_chain(route_key: str, data: Any) -> tuple[ApproverDef, ...]:
    if not isinstance(data, list) or not data:
        raise InvalidRoutingEntryError(route_key, "route must be a non-empty list")
    return tuple(parse_approver(route_key, entry) for entry in data)


def parse_routing(data: dict[str, Any], source: str = ROUTING_FILE) -> RoutingDef:
    """
    Parse ``routing.yaml``.

    Expected shape::

        routes:
          "Sales|North America":
            - {email: ..., name: ..., title: ..., role: mid_level}
        fallback:
          - {email: ..., name: ..., title: ...}
    """
    fallback_data = data.get(FALLBACK_KEY)
    if not fallback_data:
        raise MissingFallbackRouteError(source)

    routes = tuple(
        (str(key), parse_chain(str(key), chain))
        for key, chain in (data.get("routes") or {}).items()
    )
    return RoutingDef(routes=routes, fallback=parse_chain(FALLBACK_KEY, fallback_data))


def parse_smtp(data: dict[str, Any] | None) -> SmtpDef | None:
    if not data:
        return None
    return SmtpDef(
        host=data["host"],
        sender=data["sender"],
        port=int(data.get("port", 587)),
        username=data.get("username"),
        password=data.get("password"),
        use_tls=bool(data.get("use_tls", True)),
    )


def parse_settings(data: dict[str, Any]) -> ApprovalSettings:
    defaults = ApprovalSettings()
    return ApprovalSettings(
        database_url=data.get("database_url", defaults.database_url),
        sheet=data.get("sheet", defaults.sheet),
        request_id_prefix=data.get("request_id_prefix", defaults.request_id_prefix),
        request_id_width=int(data.get("request_id_width", defaults.request_id_width)),
        action_base_url=data.get("action_base_url", defaults.action_base_url),
        dashboard_history_limit=int(
            data.get("dashboard_history_limit", defaults.dashboard_history_limit)
        ),
        smtp=parse_smtp(data.get("smtp")),
    )


def compute_checksum(routing: RoutingDef) -> str:
    """Deterministic SHA-256 of the routing table, for change detection."""
    canonical = json.dumps(asdict(routing), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_configuration(set_dir: Path) -> ApprovalConfiguration:
    """Load one configuration set directory.  ``settings.yaml`` is optional."""
    settings_path = set_dir / SETTINGS_FILE
    settings = (
        parse_settings(load_yaml_file(settings_path))
        if settings_path.exists()
        else ApprovalSettings()
    )
    routing = parse_routing(
        load_yaml_file(set_dir / ROUTING_FILE), source=str(set_dir / ROUTING_FILE),
    )
    return ApprovalConfiguration(
        config_id=set_dir.name,
        settings=settings,
        routing=routing,
        checksum=compute_checksum(routing),
    )
