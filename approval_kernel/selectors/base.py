"""
Module: approval_kernel.selectors.base
Responsibility: Base class for read-only projections over stored chains.

Invariants enforced:
    - Read-only: selectors call ``load_all()`` and never write to the store.
    - Results are frozen dataclasses, not raw rows.
"""

from abc import ABC

from approval_kernel.services.record_store import RequestRecordStore


class BaseSelector(ABC):
    """Holds the record store that subclasses scan."""

    def __init__(self, store: RequestRecordStore):
        self.store = store
