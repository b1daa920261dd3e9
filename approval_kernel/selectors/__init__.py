"""Read projections over stored chains."""

from approval_kernel.selectors.dashboard_selector import (
    Dashboard,
    DashboardItem,
    DashboardSelector,
    PendingSummary,
)
from approval_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "Dashboard",
    "DashboardItem",
    "DashboardSelector",
    "PendingSummary",
    "RequestSelector",
]
