"""
Tests for the SQL-backed TabularStore and the in-memory table.

Both implementations must behave the same, so most tests run against each.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from approval_kernel.db.sql_table import SqlTable
from approval_kernel.db.table import InMemoryTable
from approval_kernel.exceptions import StorageUnavailableError
from approval_kernel.services.record_store import RequestRecordStore


@pytest.fixture(params=["memory", "sql"])
def any_table(request):
    if request.param == "memory":
        return InMemoryTable()
    factory = request.getfixturevalue("sqlite_session_factory")
    return SqlTable(factory)


class TestTabularContract:
    def test_empty(self, any_table):
        assert any_table.read_all() == []

    def test_write_grows_grid(self, any_table):
        any_table.append_columns(["A", "B"])
        any_table.write_cell(2, 3, "x")
        rows = any_table.read_all()
        assert rows[0] == ["A", "B"]
        assert rows[2] == ["", "", "", "x"]

    def test_overwrite_cell(self, any_table):
        any_table.write_cell(1, 0, "first")
        any_table.write_cell(1, 0, "second")
        assert any_table.read_all()[1][0] == "second"

    def test_append_columns_after_last_header(self, any_table):
        any_table.append_columns(["A"])
        any_table.append_columns(["B", "C"])
        assert any_table.read_all()[0] == ["A", "B", "C"]

    def test_read_returns_copy(self, any_table):
        any_table.write_cell(0, 0, "H")
        rows = any_table.read_all()
        rows[0][0] = "changed"
        assert any_table.read_all()[0][0] == "H"


class TestSqlTable:
    def test_sheets_are_isolated(self, sqlite_session_factory):
        requests = SqlTable(sqlite_session_factory, sheet="requests")
        archive = SqlTable(sqlite_session_factory, sheet="archive")
        requests.write_cell(0, 0, "Request ID")
        assert archive.read_all() == []

    def test_record_store_over_sql(self, sqlite_session_factory):
        store = RequestRecordStore(SqlTable(sqlite_session_factory))
        store.ensure_headers(1)
        store.write_scalar(1, "Request ID", "REQ-00001")
        assert store.load_all()[0].record.request_id == "REQ-00001"

    def test_database_error_becomes_storage_unavailable(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("locked"))
        table = SqlTable(MagicMock(return_value=session))

        with pytest.raises(StorageUnavailableError) as exc_info:
            table.read_all()
        assert exc_info.value.operation == "read_all"
        session.rollback.assert_called_once()

        with pytest.raises(StorageUnavailableError) as exc_info:
            table.write_cell(0, 0, "x")
        assert exc_info.value.operation == "write_cell"
