"""
approval_kernel.services.record_store -- Request records over a tabular store.

Responsibility:
    Maps ``RequestRecord`` objects onto rows of a ``TabularStore``.  Business
    fields live in named header columns; the chain is serialized one step per
    ``Step N`` column through the codec.  Every read goes through
    ``load_all()``, which reads the whole table fresh.

Architecture position:
    Kernel > Services.  May import from domain/ and db/.

Invariants enforced:
    - Column identity is resolved by header name, never by fixed offset.
    - ``response_id`` identifies at most one row; ``find_row_by_response_id``
      drives idempotent resubmission.
    - Steps are located wherever their cell sits in the row; decoding is by
      content (``taskId``), not by column name.
    - Cells under business headers are plain text, even when they happen to
      parse as a step.  Requester-supplied fields cannot extend the chain.

Scalability:
    Each invocation performs one full-table scan and builds a
    ``RecordIndex`` from it.  Lookups after that are dictionary hits, and
    writes reuse the index's header map, but the scan itself grows with the
    table.  This is the known ceiling of the tabular backend.

Failure modes:
    - StorageUnavailableError propagates from the backend unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from approval_kernel.db.table import TabularStore
from approval_kernel.domain.chain import (
    ApprovalStep,
    BusinessFields,
    RequestRecord,
    RequestStatus,
)
from approval_kernel.domain.codec import decode_cell, encode_step, is_step
from approval_kernel.logging_config import get_logger

logger = get_logger("services.record_store")

REQUEST_ID = "Request ID"
RESPONSE_ID = "Response ID"
SUBMITTED_AT = "Submitted At"
EMPLOYEE_NAME = "Employee Name"
DEPARTMENT = "Department"
TEAM = "Team"
DESCRIPTION = "Description"
COST = "Cost"
SUBMITTER_EMAIL = "Submitter Email"
STATUS = "Status"

BUSINESS_HEADERS: tuple[str, ...] = (
    REQUEST_ID,
    RESPONSE_ID,
    SUBMITTED_AT,
    EMPLOYEE_NAME,
    DEPARTMENT,
    TEAM,
    DESCRIPTION,
    COST,
    SUBMITTER_EMAIL,
    STATUS,
)

STEP_HEADER_PREFIX = "Step "


def step_header(position: int) -> str:
    """Header of the column holding the step at 0-based ``position``."""
    return f"{STEP_HEADER_PREFIX}{position + 1}"


@dataclass(frozen=True)
class StoredRow:
    """One data row as read: decoded cells plus the record built from them."""

    row_index: int
    cells: tuple[Any, ...]
    record: RequestRecord
    step_columns: tuple[int, ...] = ()


@dataclass(frozen=True)
class StepLocation:
    """Where a step lives: its record, the step itself, and its cell."""

    record: RequestRecord
    step: ApprovalStep
    row_index: int
    column_index: int

    @property
    def step_position(self) -> int:
        """0-based position of the step within its chain."""
        index = self.record.step_index(self.step.task_id)
        assert index is not None
        return index


@dataclass
class RecordIndex:
    """Lookup maps built from one ``load_all()`` snapshot.

    ``columns`` is the header map read with that snapshot, so writes made
    during the same invocation can address cells without a second scan.
    """

    rows: list[StoredRow] = field(default_factory=list)
    columns: dict[str, int] = field(default_factory=dict)
    by_task_id: dict[str, StepLocation] = field(default_factory=dict)
    by_response_id: dict[str, int] = field(default_factory=dict)
    by_request_id: dict[str, int] = field(default_factory=dict)

    @classmethod
    def build(
        cls, rows: Sequence[StoredRow], columns: dict[str, int] | None = None,
    ) -> "RecordIndex":
        index = cls(rows=list(rows), columns=dict(columns or {}))
        for stored in rows:
            record = stored.record
            if record.response_id:
                index.by_response_id.setdefault(record.response_id, stored.row_index)
            if record.request_id:
                index.by_request_id.setdefault(record.request_id, stored.row_index)
            for step, column in zip(record.chain, stored.step_columns):
                index.by_task_id.setdefault(
                    step.task_id,
                    StepLocation(record, step, stored.row_index, column),
                )
        return index

    def row(self, row_index: int) -> StoredRow | None:
        for stored in self.rows:
            if stored.row_index == row_index:
                return stored
        return None


class RequestRecordStore:
    """Reads and writes request records on a tabular store.

    Write helpers accept an optional ``columns`` map (``RecordIndex.columns``).
    Without one, or when it lacks a needed header, they fall back to
    ``ensure_headers()``, which reads the header row again.
    """

    def __init__(self, table: TabularStore):
        self._table = table

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_all(self) -> list[StoredRow]:
        """Read the whole table and decode every data row."""
        return self._snapshot()[1]

    def index(self) -> RecordIndex:
        columns, rows = self._snapshot()
        return RecordIndex.build(rows, columns)

    def find_by_task_id(self, task_id: str) -> StepLocation | None:
        return self.index().by_task_id.get(task_id)

    def find_row_by_response_id(self, response_id: str) -> int | None:
        return self.index().by_response_id.get(response_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_cell(self, row: int, col: int, value: Any) -> None:
        self._table.write_cell(row, col, _encode_value(value))

    def append_columns(self, headers: Sequence[str]) -> None:
        self._table.append_columns(list(headers))

    def ensure_headers(self, step_count: int = 0) -> dict[str, int]:
        """Make sure business headers and ``Step 1..step_count`` exist.

        Returns the header -> column map after any appends.
        """
        raw = self._table.read_all()
        return self._append_missing(raw[0] if raw else [], step_count)

    def next_row_index(self) -> int:
        return max(len(self._table.read_all()), 1)

    def insert_record(self, record: RequestRecord) -> int:
        """Append a new row for ``record`` and return its row index."""
        raw = self._table.read_all()
        columns = self._append_missing(raw[0] if raw else [], len(record.chain))
        row = max(len(raw), 1)
        self.write_cell(row, columns[REQUEST_ID], record.request_id)
        self.write_cell(row, columns[RESPONSE_ID], record.response_id)
        self.write_cell(row, columns[SUBMITTED_AT], record.submitted_at)
        self.write_cell(row, columns[STATUS], record.status.value)
        self._write_fields(row, record.fields, columns)
        self._write_chain(row, record.chain, columns)
        return row

    def write_fields(
        self, row: int, fields: BusinessFields, columns: dict[str, int] | None = None,
    ) -> None:
        self._write_fields(row, fields, self._resolve(columns))

    def write_chain(
        self,
        row: int,
        chain: Sequence[ApprovalStep],
        columns: dict[str, int] | None = None,
    ) -> None:
        self._write_chain(row, chain, self._resolve(columns, len(chain)))

    def write_scalar(
        self, row: int, header: str, value: Any, columns: dict[str, int] | None = None,
    ) -> None:
        self.write_cell(row, self._resolve(columns)[header], value)

    def write_status(
        self, row: int, status: RequestStatus, columns: dict[str, int] | None = None,
    ) -> None:
        self.write_scalar(row, STATUS, status.value, columns)

    def write_step(self, location: StepLocation, step: ApprovalStep) -> None:
        self.write_cell(location.row_index, location.column_index, step)

    def write_step_at(self, stored: StoredRow, position: int, step: ApprovalStep) -> None:
        """Overwrite the step at chain ``position`` in its existing cell."""
        self.write_cell(stored.row_index, stored.step_columns[position], step)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self) -> tuple[dict[str, int], list[StoredRow]]:
        raw = self._table.read_all()
        if not raw:
            return {}, []
        headers = _header_map(raw[0])
        # Business columns hold requester-supplied text and never carry steps.
        plain = {headers[h] for h in BUSINESS_HEADERS if h in headers}
        rows = []
        for row_index, cells in enumerate(raw[1:], start=1):
            if not any(str(cell).strip() for cell in cells):
                continue
            decoded = tuple(
                cell if col in plain else decode_cell(cell)
                for col, cell in enumerate(cells)
            )
            rows.append(self._to_stored_row(row_index, decoded, headers))
        return headers, rows

    def _resolve(
        self, columns: dict[str, int] | None, step_count: int = 0,
    ) -> dict[str, int]:
        if columns is not None and all(h in columns for h in _wanted(step_count)):
            return columns
        return self.ensure_headers(step_count)

    def _append_missing(
        self, header_row: Sequence[Any], step_count: int,
    ) -> dict[str, int]:
        current = list(header_row)
        missing = [header for header in _wanted(step_count) if header not in current]
        if missing:
            self.append_columns(missing)
            current.extend(missing)
            logger.info("request_table_columns_added", extra={"headers": missing})
        return _header_map(current)

    def _write_fields(
        self, row: int, fields: BusinessFields, columns: dict[str, int],
    ) -> None:
        self.write_cell(row, columns[EMPLOYEE_NAME], fields.employee_name)
        self.write_cell(row, columns[DEPARTMENT], fields.department)
        self.write_cell(row, columns[TEAM], fields.team)
        self.write_cell(row, columns[DESCRIPTION], fields.description)
        self.write_cell(row, columns[COST], fields.cost)
        self.write_cell(row, columns[SUBMITTER_EMAIL], fields.submitter_email)

    def _write_chain(
        self, row: int, chain: Sequence[ApprovalStep], columns: dict[str, int],
    ) -> None:
        for position, step in enumerate(chain):
            self.write_cell(row, columns[step_header(position)], step)

    def _to_stored_row(
        self, row_index: int, cells: tuple[Any, ...], headers: dict[str, int],
    ) -> StoredRow:
        def scalar(header: str) -> str:
            col = headers.get(header)
            if col is None or col >= len(cells):
                return ""
            return str(cells[col] or "")

        step_columns = tuple(i for i, cell in enumerate(cells) if is_step(cell))
        chain = tuple(cells[i] for i in step_columns)

        record = RequestRecord(
            request_id=scalar(REQUEST_ID),
            response_id=scalar(RESPONSE_ID),
            fields=BusinessFields(
                employee_name=scalar(EMPLOYEE_NAME),
                department=scalar(DEPARTMENT),
                team=scalar(TEAM),
                description=scalar(DESCRIPTION),
                cost=_parse_cost(scalar(COST), row_index),
                submitter_email=scalar(SUBMITTER_EMAIL),
            ),
            status=_parse_status(scalar(STATUS)),
            submitted_at=_parse_timestamp(scalar(SUBMITTED_AT)),
            chain=chain,
        )
        return StoredRow(row_index, cells, record, step_columns)


def _wanted(step_count: int) -> list[str]:
    return list(BUSINESS_HEADERS) + [step_header(i) for i in range(step_count)]


def _header_map(header_row: Sequence[Any]) -> dict[str, int]:
    headers: dict[str, int] = {}
    for col, name in enumerate(header_row):
        text = str(name or "").strip()
        if text and text not in headers:
            headers[text] = col
    return headers


def _encode_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, ApprovalStep):
        return encode_step(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _parse_cost(text: str, row_index: int) -> Decimal | None:
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        logger.warning(
            "request_cost_unparseable",
            extra={"row_index": row_index, "value": text},
        )
        return None


def _parse_status(text: str) -> RequestStatus:
    try:
        return RequestStatus(text)
    except ValueError:
        return RequestStatus.PENDING


def _parse_timestamp(text: str) -> datetime | None:
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None
