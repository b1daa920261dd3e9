"""
Pytest fixtures for the approval kernel test suite.

Provides:
- Structured-logging fixtures (autouse) and ``captured_logs``
- A deterministic clock and in-memory table / outbox / counter
- A small routing table mirroring the default configuration set
- ``engine`` -- an ``ApprovalEngine`` wired entirely in memory
- ``sqlite_session_factory`` -- an in-memory SQLite database with the
  kernel tables created, for the SQL-backed table and sequence tests
"""

import json
import logging
from io import StringIO

import pytest

from approval_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from approval_kernel.db.table import InMemoryTable
from approval_kernel.domain.chain import ApproverTemplate, BusinessFields
from approval_kernel.domain.clock import DeterministicClock
from approval_kernel.domain.notification_policy import ApproverRole
from approval_kernel.domain.routing import RoutingTable
from approval_kernel.exceptions import NotificationDeliveryError, StorageUnavailableError
from approval_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from approval_kernel.selectors.dashboard_selector import DashboardSelector
from approval_kernel.services.notification_service import LinkBuilder, NotificationService
from approval_kernel.services.notifier import OutboxNotifier
from approval_kernel.services.record_store import RequestRecordStore
from approval_kernel.services.sequence_service import InMemorySequence, RequestIdGenerator
from approval_kernel.services.transition_engine import ApprovalEngine, Submission

BASE_URL = "https://approvals.example.com/exec"

LEAD_NA = ApproverTemplate(
    "lead.na@example.com", "Dana Lee", "Sales Team Lead", ApproverRole.MID_LEVEL,
)
VP_SALES = ApproverTemplate(
    "vp.sales@example.com", "Morgan Price", "VP of Sales", ApproverRole.HIGH_LEVEL,
)
ENG_MANAGER = ApproverTemplate(
    "eng.manager@example.com", "Riley Chen", "Engineering Manager", ApproverRole.MANAGER,
)
FALLBACK_ADMIN = ApproverTemplate(
    "approvals.admin@example.com", "Approvals Desk", "Operations Manager",
    ApproverRole.MANAGER,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture approval_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.submit(...)
            assert any(r["message"] == "request_submitted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("approval_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Collaborators
# =============================================================================


class FailingNotifier:
    """Notifier whose transport always fails."""

    def __init__(self, raise_error: bool = True):
        self.raise_error = raise_error
        self.attempts: list[str] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        self.attempts.append(to)
        if self.raise_error:
            raise NotificationDeliveryError(to, "relay refused")
        return False


class UnavailableTable:
    """TabularStore that cannot be reached."""

    def read_all(self):
        raise StorageUnavailableError("read_all", "backend offline")

    def write_cell(self, row, col, value):
        raise StorageUnavailableError("write_cell", "backend offline")

    def append_columns(self, headers):
        raise StorageUnavailableError("append_columns", "backend offline")


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def unavailable_table():
    return UnavailableTable()


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def table():
    return InMemoryTable()


@pytest.fixture
def store(table):
    return RequestRecordStore(table)


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def links():
    return LinkBuilder(BASE_URL)


@pytest.fixture
def notifications(outbox, links):
    return NotificationService(outbox, links)


@pytest.fixture
def routing():
    return RoutingTable(
        routes={
            "Sales|North America": (LEAD_NA, VP_SALES),
            "Engineering|Platform": (ENG_MANAGER,),
        },
        fallback=(FALLBACK_ADMIN,),
    )


@pytest.fixture
def request_ids():
    return RequestIdGenerator(InMemorySequence())


@pytest.fixture
def engine(store, routing, request_ids, notifications, clock):
    return ApprovalEngine(
        store=store,
        routing=routing,
        request_ids=request_ids,
        notifications=notifications,
        clock=clock,
    )


@pytest.fixture
def dashboards(store):
    return DashboardSelector(store)


@pytest.fixture
def make_submission():
    """Factory for submissions with sensible defaults."""

    def _make(
        response_id: str = "resp-1",
        department: str = "Sales",
        team: str = "North America",
        employee_name: str = "Ada Byron",
        submitter_email: str = "ada@example.com",
        **overrides,
    ) -> Submission:
        return Submission(
            response_id=response_id,
            fields=BusinessFields(
                employee_name=employee_name,
                department=department,
                team=team,
                submitter_email=submitter_email,
                **overrides,
            ),
        )

    return _make


# =============================================================================
# SQL infrastructure
# =============================================================================


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    reset_engine()
