"""
HTML bodies for approval notifications.

``render_template(name, data)`` is a pure function: the same name and data
always produce the same markup.  Every substituted value is HTML-escaped.
"""

from __future__ import annotations

from html import escape
from string import Template
from typing import Any, Mapping

_TEMPLATES: dict[str, Template] = {
    "approval_request": Template(
        "<p>Hello $approver_name,</p>"
        "<p>Request <b>$request_id</b> from $employee_name "
        "($department / $team) is waiting for your approval.</p>"
        "<table>"
        "<tr><td>Description</td><td>$description</td></tr>"
        "<tr><td>Cost</td><td>$cost</td></tr>"
        "<tr><td>Notes</td><td>$comments</td></tr>"
        "</table>"
        '<p><a href="$approve_url">Approve</a> | <a href="$reject_url">Reject</a></p>'
        '<p><a href="$dashboard_url">Open your dashboard</a></p>'
    ),
    "request_progress": Template(
        "<p>Hello $employee_name,</p>"
        "<p>Request <b>$request_id</b> was approved by $approver_name "
        "and is now with $next_approver_name.</p>"
        "<p>Comments: $comments</p>"
    ),
    "request_approved": Template(
        "<p>Hello $employee_name,</p>"
        "<p>Request <b>$request_id</b> has been fully approved. "
        "Final approval by $approver_name.</p>"
        "<p>Comments: $comments</p>"
    ),
    "request_rejected": Template(
        "<p>Hello $employee_name,</p>"
        "<p>Request <b>$request_id</b> was rejected by $approver_name.</p>"
        "<p>Comments: $comments</p>"
    ),
    "weekly_digest": Template(
        "<p>Hello $approver_name,</p>"
        "<p>You have <b>$pending_count</b> request(s) waiting for your approval.</p>"
        '<p><a href="$dashboard_url">Review them on your dashboard</a></p>'
    ),
}


def template_names() -> tuple[str, ...]:
    return tuple(sorted(_TEMPLATES))


def render_template(name: str, data: Mapping[str, Any]) -> str:
    """Render a named template with escaped values.

    Raises:
        ValueError: if ``name`` is not a known template.
        KeyError: if ``data`` lacks a placeholder the template uses.
    """
    template = _TEMPLATES.get(name)
    if template is None:
        raise ValueError(f"Unknown template: {name!r}")
    escaped = {
        key: escape("" if value is None else str(value), quote=True)
        for key, value in data.items()
    }
    return template.substitute(escaped)
