"""
Typed Exception Hierarchy for the Approval Kernel.

Every error carries a ``code`` class attribute (machine-readable) and
structured attributes (not just a message string), so callers catch by
type and report by code.

    ApprovalKernelError (base)
    |
    +-- StorageError
    |   +-- StorageUnavailableError
    |
    +-- ChainError
    |   +-- InvalidStepTransitionError
    |
    +-- ConfigurationError
    |   +-- MissingFallbackRouteError
    |   +-- InvalidRoutingEntryError
    |
    +-- NotificationError
        +-- NotificationDeliveryError

Not every failure is an exception.  Routing misses resolve to the fallback
chain, unknown task/response ids are no-op outcomes, and cells that do not
decode as steps are scalar data.

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------
Storage         | STORAGE_UNAVAILABLE           | Backing table read/write failed
Chain           | INVALID_STEP_TRANSITION       | Step status change not in table
Configuration   | MISSING_FALLBACK_ROUTE        | Routing table has no fallback
                | INVALID_ROUTING_ENTRY         | Approver entry missing fields
Notification    | NOTIFICATION_DELIVERY_FAILED  | Transport refused or errored
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"


# Storage exceptions


class StorageError(ApprovalKernelError):
    """Base exception for storage errors."""

    code: str = "STORAGE_ERROR"


class StorageUnavailableError(StorageError):
    """The backing table could not be read or written.

    Fatal to the current invocation.  No retry is attempted.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage unavailable during {operation}: {reason}")


# Chain exceptions


class ChainError(ApprovalKernelError):
    """Base exception for approval chain errors."""

    code: str = "CHAIN_ERROR"


class InvalidStepTransitionError(ChainError):
    """A step status change is not allowed by STEP_TRANSITIONS."""

    code: str = "INVALID_STEP_TRANSITION"

    def __init__(self, task_id: str, from_status: str, to_status: str):
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Step {task_id} cannot move from {from_status} to {to_status}"
        )


# Configuration exceptions


class ConfigurationError(ApprovalKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class MissingFallbackRouteError(ConfigurationError):
    """The routing table does not define a non-empty fallback chain."""

    code: str = "MISSING_FALLBACK_ROUTE"

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Routing table has no fallback chain: {source}")


class InvalidRoutingEntryError(ConfigurationError):
    """An approver entry in the routing table is malformed."""

    code: str = "INVALID_ROUTING_ENTRY"

    def __init__(self, route_key: str, reason: str):
        self.route_key = route_key
        self.reason = reason
        super().__init__(f"Invalid routing entry for {route_key!r}: {reason}")


# Notification exceptions


class NotificationError(ApprovalKernelError):
    """Base exception for notification errors."""

    code: str = "NOTIFICATION_ERROR"


class NotificationDeliveryError(NotificationError):
    """The transport failed to deliver a message.

    Raised by notifier adapters; the transition engine catches and logs it
    because chain state is already committed when delivery is attempted.
    """

    code: str = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Failed to deliver notification to {recipient}: {reason}")
