"""Services for the approval kernel (write side)."""

from approval_kernel.services.notification_service import (
    Announcement,
    LinkBuilder,
    NotificationService,
)
from approval_kernel.services.notifier import (
    Notifier,
    OutboundMessage,
    OutboxNotifier,
    SmtpNotifier,
)
from approval_kernel.services.record_store import (
    RecordIndex,
    RequestRecordStore,
    StepLocation,
    StoredRow,
)
from approval_kernel.services.sequence_service import (
    InMemorySequence,
    RequestIdGenerator,
    SequenceService,
)
from approval_kernel.services.transition_engine import (
    ActionOutcome,
    ActionResult,
    ApprovalEngine,
    Submission,
    SubmitOutcome,
    SubmitResult,
)

__all__ = [
    "ActionOutcome",
    "ActionResult",
    "Announcement",
    "ApprovalEngine",
    "InMemorySequence",
    "LinkBuilder",
    "NotificationService",
    "Notifier",
    "OutboundMessage",
    "OutboxNotifier",
    "RecordIndex",
    "RequestIdGenerator",
    "RequestRecordStore",
    "SequenceService",
    "SmtpNotifier",
    "StepLocation",
    "StoredRow",
    "Submission",
    "SubmitOutcome",
    "SubmitResult",
]
