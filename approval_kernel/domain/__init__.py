"""
Pure domain layer.

Value objects and decision logic with NO dependencies on:
- ORM (SQLAlchemy)
- Tabular storage
- Mail transport
- Wall-clock time (callers inject a Clock)
"""

from approval_kernel.domain.chain import (
    STEP_TRANSITIONS,
    TERMINAL_STEP_STATUSES,
    ApprovalStep,
    ApproverTemplate,
    BusinessFields,
    ChainPhase,
    ChainState,
    RequestRecord,
    RequestStatus,
    StepStatus,
    build_chain,
    chain_state,
    derive_request_status,
    fallback_comment,
    new_task_id,
    transition_step,
)
from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.codec import decode_cell, encode_step, is_step
from approval_kernel.domain.notification_policy import (
    ApproverRole,
    Delivery,
    classify_title,
    decide,
    parse_role,
)
from approval_kernel.domain.routing import (
    RouteResolution,
    RoutingTable,
    selector_key,
)

__all__ = [
    "STEP_TRANSITIONS",
    "TERMINAL_STEP_STATUSES",
    "ApprovalStep",
    "ApproverRole",
    "ApproverTemplate",
    "BusinessFields",
    "ChainPhase",
    "ChainState",
    "Clock",
    "Delivery",
    "DeterministicClock",
    "RequestRecord",
    "RequestStatus",
    "RouteResolution",
    "RoutingTable",
    "StepStatus",
    "SystemClock",
    "build_chain",
    "chain_state",
    "classify_title",
    "decide",
    "decode_cell",
    "derive_request_status",
    "encode_step",
    "fallback_comment",
    "is_step",
    "new_task_id",
    "parse_role",
    "selector_key",
    "transition_step",
]
