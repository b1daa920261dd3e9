"""
Notification policy (``approval_kernel.domain.notification_policy``).

Responsibility
--------------
Classifies approvers into seniority roles and decides whether an
activated step is announced immediately or left for the periodic digest.

Roles are resolved once, when the routing table is loaded, and carried on
every step built from it.  ``classify_title`` is only the fallback for
entries that do not declare an explicit ``role`` and for legacy step cells
written without one.

Only ``HIGH_LEVEL`` changes delivery: senior approvers see one digest per
week instead of one email per request.
"""

from __future__ import annotations

from enum import Enum


class ApproverRole(str, Enum):
    """Seniority of an approver."""

    MANAGER = "manager"
    MID_LEVEL = "mid_level"
    HIGH_LEVEL = "high_level"


class Delivery(str, Enum):
    """How a newly active approver is told about their step."""

    INSTANT = "instant"
    DEFERRED = "deferred"


_HIGH_LEVEL_MARKERS: tuple[str, ...] = ("director", "vp")
_MID_LEVEL_MARKERS: tuple[str, ...] = ("supervisor", "lead")

_ROLE_ALIASES: dict[str, ApproverRole] = {
    "manager": ApproverRole.MANAGER,
    "mid": ApproverRole.MID_LEVEL,
    "mid_level": ApproverRole.MID_LEVEL,
    "high": ApproverRole.HIGH_LEVEL,
    "high_level": ApproverRole.HIGH_LEVEL,
}


def classify_title(title: str | None) -> ApproverRole:
    """Infer a role from a free-text title (case-insensitive substring match).

    High-level markers win over mid-level ones, so "Director, Team Lead"
    is HIGH_LEVEL.
    """
    lowered = (title or "").lower()
    if any(marker in lowered for marker in _HIGH_LEVEL_MARKERS):
        return ApproverRole.HIGH_LEVEL
    if any(marker in lowered for marker in _MID_LEVEL_MARKERS):
        return ApproverRole.MID_LEVEL
    return ApproverRole.MANAGER


def parse_role(value: str | None, title: str | None = None) -> ApproverRole:
    """Resolve an explicit role tag, falling back to the title.

    Raises:
        ValueError: if ``value`` is given but is not a known role tag.
    """
    if value is None or str(value).strip() == "":
        return classify_title(title)
    key = str(value).strip().lower()
    if key not in _ROLE_ALIASES:
        raise ValueError(f"Unknown approver role: {value!r}")
    return _ROLE_ALIASES[key]


def decide(role: ApproverRole) -> Delivery:
    """Instant for managers and mid-level approvers, deferred for high-level."""
    if role == ApproverRole.HIGH_LEVEL:
        return Delivery.DEFERRED
    return Delivery.INSTANT
