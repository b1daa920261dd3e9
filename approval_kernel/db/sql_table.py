"""
Module: approval_kernel.db.sql_table
Responsibility: ``TabularStore`` backed by a SQL table of cells.  Each cell is
    one row in ``sheet_cells`` keyed by (sheet, row_index, col_index), so the
    grid keeps its schema-free, variable-width shape in any SQL database.
Architecture position: Kernel > DB.

Invariants enforced:
    - One committed transaction per write: a write is visible to the next
      invocation as soon as the call returns.
    - (sheet, row_index, col_index) is unique.

Failure modes:
    - Any SQLAlchemyError surfaces as StorageUnavailableError.  No retry and
      no local cache.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import Integer, String, Text, UniqueConstraint, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from approval_kernel.db.base import Base
from approval_kernel.db.engine import session_scope
from approval_kernel.exceptions import StorageUnavailableError
from approval_kernel.logging_config import get_logger

logger = get_logger("db.sql_table")

DEFAULT_SHEET = "requests"


class SheetCell(Base):
    """One cell of a named sheet."""

    __tablename__ = "sheet_cells"
    __table_args__ = (
        UniqueConstraint("sheet", "row_index", "col_index", name="uq_sheet_cell"),
    )

    sheet: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)
    col_index: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")


class SqlTable:
    """TabularStore over ``sheet_cells``."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        sheet: str = DEFAULT_SHEET,
    ) -> None:
        self._session_factory = session_factory
        self._sheet = sheet

    def read_all(self) -> list[list[str]]:
        try:
            with session_scope(self._session_factory) as session:
                cells = session.execute(
                    select(SheetCell.row_index, SheetCell.col_index, SheetCell.value)
                    .where(SheetCell.sheet == self._sheet)
                    .order_by(SheetCell.row_index, SheetCell.col_index)
                ).all()
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("read_all", str(exc)) from exc

        rows: list[list[str]] = []
        for row_index, col_index, value in cells:
            while len(rows) <= row_index:
                rows.append([])
            row = rows[row_index]
            while len(row) <= col_index:
                row.append("")
            row[col_index] = value
        return rows

    def write_cell(self, row: int, col: int, value: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                self._upsert(session, row, col, value)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("write_cell", str(exc)) from exc

    def append_columns(self, headers: Sequence[str]) -> None:
        try:
            with session_scope(self._session_factory) as session:
                last = session.execute(
                    select(func.max(SheetCell.col_index)).where(
                        SheetCell.sheet == self._sheet,
                        SheetCell.row_index == 0,
                    )
                ).scalar_one_or_none()
                start = 0 if last is None else last + 1
                for offset, header in enumerate(headers):
                    self._upsert(session, 0, start + offset, header)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("append_columns", str(exc)) from exc

        logger.debug(
            "sheet_columns_appended",
            extra={"sheet": self._sheet, "headers": list(headers)},
        )

    def _upsert(self, session: Session, row: int, col: int, value: str) -> None:
        cell = session.execute(
            select(SheetCell).where(
                SheetCell.sheet == self._sheet,
                SheetCell.row_index == row,
                SheetCell.col_index == col,
            )
        ).scalar_one_or_none()
        if cell is None:
            session.add(
                SheetCell(sheet=self._sheet, row_index=row, col_index=col, value=value)
            )
        else:
            cell.value = value
        session.flush()
