"""
Tabular store boundary (``approval_kernel.db.table``).

The request table is a grid of text cells.  Row 0 holds the headers and
columns are identified by header name, so new step columns can be appended
without touching existing rows.  Indices are 0-based.

A backend offers exactly three primitives: whole-table read, single-cell
write and header append.  There is no batch or transaction: every write is
independent and immediately visible.  Backends raise
``StorageUnavailableError`` when the table cannot be reached.
"""

from __future__ import annotations

from typing import Protocol, Sequence


class TabularStore(Protocol):
    """Whole-table read, single-cell write, column append."""

    def read_all(self) -> list[list[str]]:
        """Return every row, headers first.  Short rows may be ragged."""
        ...

    def write_cell(self, row: int, col: int, value: str) -> None:
        """Write one cell, growing the table as needed."""
        ...

    def append_columns(self, headers: Sequence[str]) -> None:
        """Append header cells after the last header in row 0."""
        ...


class InMemoryTable:
    """TabularStore kept in process memory.

    Used for dry runs and tests; contents do not survive the process.
    """

    def __init__(self, rows: Sequence[Sequence[str]] | None = None):
        self._rows: list[list[str]] = [list(row) for row in rows or ()]

    def read_all(self) -> list[list[str]]:
        return [list(row) for row in self._rows]

    def write_cell(self, row: int, col: int, value: str) -> None:
        while len(self._rows) <= row:
            self._rows.append([])
        cells = self._rows[row]
        while len(cells) <= col:
            cells.append("")
        cells[col] = value

    def append_columns(self, headers: Sequence[str]) -> None:
        if not self._rows:
            self._rows.append([])
        self._rows[0].extend(headers)
