"""
Tests for the stage sequence and procurement snapshot value objects.

Tests cover:
- Stage.parse / try_parse coercion and UnknownStageError
- STAGE_ORDER and STAGE_TRANSITIONS shape (linear, award terminal)
- ProcurementSnapshot derived views (document_types, approved_types, days_in_stage)
"""

from datetime import UTC, datetime, timedelta

import pytest

from procurement_kernel.domain.document import Document
from procurement_kernel.domain.procurement import (
    ProcurementSnapshot,
    StageApproval,
    StageApprovalStatus,
)
from procurement_kernel.domain.stages import (
    INITIAL_STAGE,
    STAGE_ORDER,
    STAGE_TRANSITIONS,
    TERMINAL_STAGE,
    Stage,
)
from procurement_kernel.exceptions import UnknownStageError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class TestStageParsing:
    def test_parse_name(self):
        assert Stage.parse("rfq") is Stage.RFQ

    def test_parse_passes_stage_through(self):
        assert Stage.parse(Stage.AWARD) is Stage.AWARD

    def test_parse_unknown_raises(self):
        with pytest.raises(UnknownStageError) as exc_info:
            Stage.parse("tendering")
        assert exc_info.value.stage == "tendering"
        assert exc_info.value.code == "UNKNOWN_STAGE"

    def test_try_parse_unknown_returns_none(self):
        assert Stage.try_parse("tendering") is None
        assert Stage.try_parse(None) is None

    def test_stage_is_a_string(self):
        assert Stage.PLANNING == "planning"


class TestStageSequence:
    def test_order(self):
        assert [s.value for s in STAGE_ORDER] == [
            "planning",
            "template",
            "rfq",
            "clarification",
            "submission",
            "evaluation",
            "approval",
            "award",
        ]

    def test_endpoints(self):
        assert INITIAL_STAGE is Stage.PLANNING
        assert TERMINAL_STAGE is Stage.AWARD

    def test_each_stage_has_exactly_its_successor(self):
        for current, following in zip(STAGE_ORDER, STAGE_ORDER[1:]):
            assert STAGE_TRANSITIONS[current] == frozenset({following})

    def test_award_is_terminal(self):
        assert STAGE_TRANSITIONS[Stage.AWARD] == frozenset()

    def test_index(self):
        assert Stage.PLANNING.index == 0
        assert Stage.AWARD.index == 7


class TestProcurementSnapshot:
    def test_document_and_approval_views(self):
        snapshot = ProcurementSnapshot(
            procurement_id="P1",
            stage=Stage.PLANNING,
            documents=(Document(document_id="d1", doc_type="procurement_plan"),),
            approvals=(
                StageApproval("plan_approval", StageApprovalStatus.APPROVED, "u1", NOW),
                StageApproval("budget_approval", StageApprovalStatus.PENDING),
                StageApproval("legal_approval", StageApprovalStatus.REJECTED, "u2", NOW),
            ),
        )

        assert snapshot.document_types == ("procurement_plan",)
        assert snapshot.approved_types == ("plan_approval",)

    def test_days_in_stage(self):
        snapshot = ProcurementSnapshot(
            procurement_id="P1",
            stage=Stage.TEMPLATE,
            stage_entered_at=NOW - timedelta(days=2, hours=5),
        )
        assert snapshot.days_in_stage(NOW) == 2

    def test_days_in_stage_without_entry_time(self):
        snapshot = ProcurementSnapshot(procurement_id="P1", stage=Stage.TEMPLATE)
        assert snapshot.days_in_stage(NOW) == 0

    def test_days_in_stage_never_negative(self):
        snapshot = ProcurementSnapshot(
            procurement_id="P1",
            stage=Stage.TEMPLATE,
            stage_entered_at=NOW + timedelta(days=1),
        )
        assert snapshot.days_in_stage(NOW) == 0
