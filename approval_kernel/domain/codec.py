"""
Chain record codec (``approval_kernel.domain.codec``).

Responsibility
--------------
Serializes an ``ApprovalStep`` to a self-describing JSON object stored in
a single table cell, and turns cell text back into a step.

A row mixes step cells with scalar business cells, so decoding never
raises: text that is not a JSON object carrying a ``taskId`` (or whose
status is unknown) comes back unchanged as scalar data.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from approval_kernel.domain.chain import ApprovalStep, StepStatus
from approval_kernel.domain.notification_policy import ApproverRole, parse_role

TASK_ID_KEY = "taskId"


def encode_step(step: ApprovalStep) -> str:
    """Serialize a step to the JSON text stored in its cell."""
    payload = {
        TASK_ID_KEY: step.task_id,
        "email": step.email,
        "name": step.name,
        "title": step.title,
        "role": step.role.value,
        "status": step.status.value,
        "timestamp": step.timestamp.isoformat() if step.timestamp else None,
        "comments": step.comments,
        "hasNext": step.has_next,
    }
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def decode_cell(value: Any) -> ApprovalStep | Any:
    """Decode a cell into a step, or return it unchanged as scalar data."""
    if not isinstance(value, str) or not value.lstrip().startswith("{"):
        return value
    try:
        payload = json.loads(value)
    except ValueError:
        return value
    if not isinstance(payload, dict) or not payload.get(TASK_ID_KEY):
        return value
    try:
        return _step_from_payload(payload)
    except (TypeError, ValueError):
        return value


def is_step(value: Any) -> bool:
    return isinstance(value, ApprovalStep)


def _step_from_payload(payload: dict[str, Any]) -> ApprovalStep:
    title = str(payload.get("title") or "")
    timestamp = payload.get("timestamp")
    return ApprovalStep(
        task_id=str(payload[TASK_ID_KEY]),
        email=str(payload.get("email") or ""),
        name=str(payload.get("name") or ""),
        title=title,
        role=_decode_role(payload.get("role"), title),
        status=StepStatus(payload.get("status") or StepStatus.WAITING.value),
        timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
        comments=str(payload.get("comments") or ""),
        has_next=bool(payload.get("hasNext", False)),
    )


def _decode_role(value: Any, title: str) -> ApproverRole:
    # Cells written before roles were recorded carry only the title.
    return parse_role(value if isinstance(value, str) else None, title)
