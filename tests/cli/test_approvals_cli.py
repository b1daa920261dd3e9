"""Tests for the approvals command-line surface."""

import re

import pytest

from approval_kernel.db.engine import reset_engine
from scripts.approvals_cli import main


@pytest.fixture
def db_url(tmp_path):
    yield f"sqlite:///{tmp_path / 'approvals.sqlite3'}"
    reset_engine()


def _run(capsys, db_url, *args):
    code = main(["--database-url", db_url, "--dry-run", *args])
    out, err = capsys.readouterr()
    return code, out, err


def _task_ids(output):
    return re.findall(r"task=([0-9a-f]{32})", output)


class TestCli:
    def test_init_db(self, capsys, db_url):
        code, out, _ = _run(capsys, db_url, "init-db")
        assert code == 0
        assert "Tables ready." in out

    def test_submit_approve_reject(self, capsys, db_url):
        code, out, _ = _run(
            capsys, db_url, "submit",
            "--response-id", "form-1",
            "--employee", "Ada Byron",
            "--department", "Sales",
            "--team", "North America",
            "--cost", "120.50",
            "--email", "ada@example.com",
        )
        assert code == 0
        assert out.startswith("created: REQ-00001")
        assert "-> lead.na@example.com: [REQ-00001] Approval needed: Ada Byron" in out
        lead_task, vp_task = _task_ids(out)

        code, out, _ = _run(capsys, db_url, "approve", lead_task, "--comments", "ok")
        assert code == 0
        assert "moved to the next approver" in out

        code, out, _ = _run(capsys, db_url, "reject", vp_task)
        assert "Request REQ-00001 rejected." in out

        code, out, _ = _run(capsys, db_url, "show", "REQ-00001")
        assert "REQ-00001 [Rejected] Ada Byron" in out

        code, out, _ = _run(capsys, db_url, "dashboard", "vp.sales@example.com")
        assert "Rejected: 1" in out

    def test_unknown_task(self, capsys, db_url):
        code, out, _ = _run(capsys, db_url, "approve", "deadbeef")
        assert code == 0
        assert "no longer valid" in out

    def test_digest(self, capsys, db_url):
        code, out, _ = _run(capsys, db_url, "digest")
        assert code == 0
        assert "Digest sent to 0 approver(s), 0 failed." in out

    def test_show_missing(self, capsys, db_url):
        code, _, err = _run(capsys, db_url, "show", "REQ-404")
        assert code == 1
        assert "No request REQ-404" in err

    def test_bad_cost(self, capsys, db_url):
        code, _, err = _run(
            capsys, db_url, "submit",
            "--response-id", "f", "--employee", "E",
            "--department", "D", "--team", "T", "--cost", "lots",
        )
        assert code == 1
        assert "invalid cost" in err

    def test_missing_config_set(self, capsys, db_url, tmp_path):
        code = main(["--config-dir", str(tmp_path), "--database-url", db_url, "init-db"])
        _, err = capsys.readouterr()
        assert code == 1
        assert "Configuration set not found" in err
