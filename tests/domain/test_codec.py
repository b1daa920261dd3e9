"""
Tests for the step cell codec.

Decoding must never raise: anything that is not a step comes back as-is.
"""

import json
from datetime import datetime, timezone

import pytest

from approval_kernel.domain.chain import ApprovalStep, StepStatus
from approval_kernel.domain.codec import TASK_ID_KEY, decode_cell, encode_step, is_step
from approval_kernel.domain.notification_policy import ApproverRole

STEP = ApprovalStep(
    task_id="abc123",
    email="vp.sales@example.com",
    name="Morgan Price",
    title="VP of Sales",
    role=ApproverRole.HIGH_LEVEL,
    status=StepStatus.PENDING,
    timestamp=datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc),
    comments="Needs a second look",
    has_next=False,
)


class TestEncode:
    def test_payload_fields(self):
        payload = json.loads(encode_step(STEP))
        assert payload[TASK_ID_KEY] == "abc123"
        assert payload["status"] == "Pending"
        assert payload["role"] == "high_level"
        assert payload["hasNext"] is False
        assert payload["timestamp"] == "2024-02-01T08:30:00+00:00"

    def test_decodes_back_to_same_step(self):
        assert decode_cell(encode_step(STEP)) == STEP

    def test_non_ascii_preserved(self):
        step = ApprovalStep("t1", "z@example.com", "Zoë", "Lead", ApproverRole.MID_LEVEL)
        assert "Zoë" in encode_step(step)


class TestDecodeScalars:
    @pytest.mark.parametrize(
        "value",
        [
            "",
            "Sales",
            "REQ-00001",
            "123.45",
            "{not json",
            "[1, 2, 3]",
            '{"email": "a@example.com"}',
            '{"taskId": ""}',
            None,
            42,
        ],
    )
    def test_non_step_values_returned_unchanged(self, value):
        assert decode_cell(value) == value
        assert not is_step(decode_cell(value))

    def test_unknown_status_is_scalar(self):
        cell = json.dumps({TASK_ID_KEY: "t1", "status": "Escalated"})
        assert decode_cell(cell) == cell

    def test_bad_timestamp_is_scalar(self):
        cell = json.dumps({TASK_ID_KEY: "t1", "status": "Pending", "timestamp": "yesterday"})
        assert decode_cell(cell) == cell


class TestDecodeLegacy:
    def test_missing_role_derived_from_title(self):
        cell = json.dumps({
            TASK_ID_KEY: "t1",
            "email": "dir@example.com",
            "title": "Director of Ops",
            "status": "Waiting",
        })
        step = decode_cell(cell)
        assert step.role == ApproverRole.HIGH_LEVEL
        assert step.status == StepStatus.WAITING
        assert step.timestamp is None
        assert step.has_next is False

    def test_leading_whitespace_tolerated(self):
        assert decode_cell("  " + encode_step(STEP)) == STEP
