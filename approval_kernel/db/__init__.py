"""Storage backends for the approval kernel."""

from approval_kernel.db.table import InMemoryTable, TabularStore

__all__ = [
    "InMemoryTable",
    "TabularStore",
]
