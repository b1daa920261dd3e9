"""
Module: approval_kernel.selectors.request_selector
Responsibility: Single-request and single-task views (the page behind an
    emailed link).
"""

from __future__ import annotations

from approval_kernel.domain.chain import RequestRecord
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.services.record_store import StepLocation


class RequestSelector(BaseSelector):
    """Look up one request by its id, or the step behind a task link."""

    def get_request(self, request_id: str) -> RequestRecord | None:
        for stored in self.store.load_all():
            if stored.record.request_id == request_id:
                return stored.record
        return None

    def get_task(self, task_id: str) -> StepLocation | None:
        return self.store.find_by_task_id(task_id)

    def list_requests(self) -> list[RequestRecord]:
        return [stored.record for stored in self.store.load_all()]
