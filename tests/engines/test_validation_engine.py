"""
Tests for the payload validation engine.

Tests cover:
- check_field: presence, type, length, range, enum, array size, HH:mm format
- validate_stage: per-stage rule sets from the default configuration
- validate_ppda_compliance: all-or-nothing compliance and rounded score
- validate_complete: fold across every stage
- Rule summaries
"""

from datetime import date
from decimal import Decimal

import pytest

from procurement_engines.validation import PPDA_PREDICATES, ValidationEngine, check_field
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.stages import Stage
from procurement_kernel.domain.validation import (
    FieldFormat,
    FieldType,
    PPDARequirement,
    ValidationRule,
)
from procurement_kernel.exceptions import ConfigurationError


# =========================================================================
# Factory helpers
# =========================================================================


def make_rule(
    field_type: FieldType = FieldType.STRING,
    required: bool = True,
    **kwargs,
) -> ValidationRule:
    return ValidationRule(field_name="field", field_type=field_type, required=required, **kwargs)


def compliant_payload() -> dict:
    return {
        "procurement_method": "competitive",
        "public_notice_published": True,
        "bid_period_days": 14,
        "evaluation_criteria": {"technical": 70, "financial": 30},
        "decision_documented": True,
        "evaluation_panel": ["a", "b", "c"],
        "conflict_of_interest_declared": True,
        "complaints_process": True,
        "audit_trail_enabled": True,
        "budget_confirmed": True,
    }


RFQ_DATA = {
    "rfq_title": "Supply of laptops",
    "rfq_description": "Supply and delivery of forty business laptops with three-year warranty.",
    "closing_date": "2024-02-15",
    "closing_time": "14:30",
    "submission_format": "electronic",
    "technical_criteria": ["specification", "warranty"],
    "financial_criteria": ["price"],
}


# =========================================================================
# 1. check_field
# =========================================================================


class TestCheckField:
    def test_missing_required(self):
        assert check_field(make_rule(), None) == ["field is required"]
        assert check_field(make_rule(), "") == ["field is required"]

    def test_missing_optional_skipped(self):
        assert check_field(make_rule(required=False, min_length=5), None) == []
        assert check_field(make_rule(required=False, min_length=5), "") == []

    def test_missing_required_stops_further_checks(self):
        rule = make_rule(min_length=5, allowed_values=("x",))
        assert check_field(rule, None) == ["field is required"]

    @pytest.mark.parametrize(
        "field_type, value, message",
        [
            (FieldType.STRING, 5, "field must be a string"),
            (FieldType.NUMBER, "5", "field must be a number"),
            (FieldType.NUMBER, True, "field must be a number"),
            (FieldType.ARRAY, "a,b", "field must be an array"),
            (FieldType.OBJECT, ["a"], "field must be an object"),
            (FieldType.DATE, "not a date", "field must be a valid date"),
            (FieldType.DATE, 20240101, "field must be a valid date"),
            (FieldType.BOOLEAN, "yes", "field must be a boolean"),
        ],
    )
    def test_type_mismatch(self, field_type, value, message):
        assert check_field(make_rule(field_type), value) == [message]

    def test_type_error_stops_further_checks(self):
        rule = make_rule(FieldType.STRING, min_length=10, allowed_values=("a",))
        assert check_field(rule, 7) == ["field must be a string"]

    @pytest.mark.parametrize(
        "field_type, value",
        [
            (FieldType.STRING, "text"),
            (FieldType.NUMBER, 5),
            (FieldType.NUMBER, 2.5),
            (FieldType.NUMBER, Decimal("10.00")),
            (FieldType.ARRAY, ["a"]),
            (FieldType.ARRAY, ("a",)),
            (FieldType.OBJECT, {"a": 1}),
            (FieldType.DATE, "2024-02-15"),
            (FieldType.DATE, date(2024, 2, 15)),
            (FieldType.BOOLEAN, False),
        ],
    )
    def test_type_match(self, field_type, value):
        assert check_field(make_rule(field_type), value) == []

    def test_length_bounds(self):
        rule = make_rule(min_length=3, max_length=5)
        assert check_field(rule, "ab") == ["field must be at least 3 characters"]
        assert check_field(rule, "abcdef") == ["field must not exceed 5 characters"]
        assert check_field(rule, "abcd") == []

    def test_numeric_bounds(self):
        rule = make_rule(FieldType.NUMBER, min_value=Decimal("0"), max_value=Decimal("100"))
        assert check_field(rule, -1) == ["field must be at least 0"]
        assert check_field(rule, 101) == ["field must not exceed 100"]
        assert check_field(rule, 0) == []

    @pytest.mark.parametrize(
        "value",
        [float("nan"), float("inf"), float("-inf"), Decimal("NaN"), Decimal("Infinity")],
    )
    def test_non_finite_is_not_a_number(self, value):
        rule = make_rule(FieldType.NUMBER, min_value=Decimal("0"), max_value=Decimal("100"))
        assert check_field(rule, value) == ["field must be a number"]

    def test_allowed_values(self):
        rule = make_rule(allowed_values=("goods", "services", "works"))
        assert check_field(rule, "food") == ["field must be one of: goods, services, works"]
        assert check_field(rule, "works") == []

    def test_min_items(self):
        rule = make_rule(FieldType.ARRAY, min_items=2)
        assert check_field(rule, ["a"]) == ["field must have at least 2 items"]
        assert check_field(rule, ["a", "b"]) == []

    @pytest.mark.parametrize("value", ["00:00", "9:05", "14:30", "23:59"])
    def test_time_format_accepts(self, value):
        assert check_field(make_rule(format=FieldFormat.TIME_HH_MM), value) == []

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "12:3", "12:30pm"])
    def test_time_format_rejects(self, value):
        assert check_field(make_rule(format=FieldFormat.TIME_HH_MM), value) == [
            "field must be in HH:mm format"
        ]

    def test_several_violations_collected(self):
        rule = make_rule(min_length=10, allowed_values=("long enough value",))
        assert check_field(rule, "short") == [
            "field must be at least 10 characters",
            "field must be one of: long enough value",
        ]


# =========================================================================
# 2. validate_stage
# =========================================================================


class TestValidateStage:
    def test_valid_planning_payload(self, validation_engine, planning_data):
        result = validation_engine.validate_stage(stage="planning", data=planning_data)

        assert result.valid is True
        assert result.errors == ()
        assert result.stage == "planning"
        assert result.stage_name == "Procurement Planning"
        assert result.code is None

    def test_empty_payload_one_error_per_required_field(self, validation_engine):
        result = validation_engine.validate_stage(stage="planning", data={})

        assert result.valid is False
        assert result.errors == (
            "procurement_title is required",
            "procurement_type is required",
            "estimated_budget is required",
            "procurement_reason is required",
            "business_justification is required",
            "risk_level is required",
        )
        assert result.code == FailureCode.VALIDATION_VIOLATION

    def test_planning_violations(self, validation_engine, planning_data):
        planning_data.update(
            procurement_title="Short",
            procurement_type="food",
            estimated_budget=-5,
        )

        result = validation_engine.validate_stage(stage="planning", data=planning_data)

        assert result.errors == (
            "procurement_title must be at least 10 characters",
            "procurement_type must be one of: goods, services, works",
            "estimated_budget must be at least 0",
        )

    def test_optional_field_checked_when_present(self, validation_engine, planning_data):
        planning_data["compliance_notes"] = 42

        result = validation_engine.validate_stage(stage="planning", data=planning_data)

        assert result.errors == ("compliance_notes must be a string",)

    @pytest.mark.parametrize("budget", [float("nan"), float("inf")])
    def test_non_finite_budget_reported(self, validation_engine, planning_data, budget):
        planning_data["estimated_budget"] = budget

        result = validation_engine.validate_stage(stage="planning", data=planning_data)

        assert result.valid is False
        assert result.errors == ("estimated_budget must be a number",)

    def test_rfq_payload(self, validation_engine):
        assert validation_engine.validate_stage(stage="rfq", data=RFQ_DATA).valid is True

    def test_rfq_bad_time_and_criteria(self, validation_engine):
        data = dict(RFQ_DATA, closing_time="2pm", technical_criteria=["price"])

        result = validation_engine.validate_stage(stage="rfq", data=data)

        assert result.errors == (
            "closing_time must be in HH:mm format",
            "technical_criteria must have at least 2 items",
        )

    def test_unknown_stage(self, validation_engine):
        result = validation_engine.validate_stage(stage="bogus", data={})

        assert result.valid is False
        assert result.errors == ("Unknown stage: bogus",)
        assert result.code == FailureCode.UNKNOWN_STAGE

    def test_none_payload_treated_as_empty(self, validation_engine):
        result = validation_engine.validate_stage(stage="submission")
        assert len(result.errors) == 3


# =========================================================================
# 3. validate_ppda_compliance
# =========================================================================


class TestPPDACompliance:
    def test_fully_compliant(self, validation_engine):
        result = validation_engine.validate_ppda_compliance(compliant_payload())

        assert result.compliant is True
        assert result.passed_count == 10
        assert result.failed_count == 0
        assert result.overall_score == 100

    def test_empty_payload_fails_everything(self, validation_engine):
        result = validation_engine.validate_ppda_compliance({})

        assert result.compliant is False
        assert result.failed_count == 10
        assert result.overall_score == 0

    def test_one_failure_breaks_compliance(self, validation_engine):
        payload = compliant_payload()
        payload["bid_period_days"] = 5

        result = validation_engine.validate_ppda_compliance(payload)

        assert result.compliant is False
        assert [r.code for r in result.failed] == ["PPDA_3"]
        assert result.overall_score == 90

    @pytest.mark.parametrize("days", [Decimal("NaN"), float("nan"), float("inf")])
    def test_non_finite_bid_period_fails_ppda_3(self, validation_engine, days):
        payload = compliant_payload()
        payload["bid_period_days"] = days

        result = validation_engine.validate_ppda_compliance(payload)

        assert [r.code for r in result.failed] == ["PPDA_3"]

    @pytest.mark.parametrize(
        "key, value, code",
        [
            ("procurement_method", "direct", "PPDA_1"),
            ("public_notice_published", "yes", "PPDA_2"),
            ("evaluation_criteria", {}, "PPDA_4"),
            ("evaluation_panel", ["a", "b"], "PPDA_6"),
            ("budget_confirmed", False, "PPDA_10"),
        ],
    )
    def test_individual_predicates(self, validation_engine, key, value, code):
        payload = compliant_payload()
        payload[key] = value

        result = validation_engine.validate_ppda_compliance(payload)

        assert [r.code for r in result.failed] == [code]

    def test_score_rounds_half_up(self):
        engine = ValidationEngine(
            {},
            (
                PPDARequirement("PPDA_1", "Competitive"),
                PPDARequirement("PPDA_2", "Notice"),
                PPDARequirement("PPDA_3", "Bid period"),
            ),
        )
        result = engine.validate_ppda_compliance({"procurement_method": "competitive"})
        # 1/3 -> 33.33...
        assert result.overall_score == 33

        result = engine.validate_ppda_compliance(
            {"procurement_method": "competitive", "public_notice_published": True}
        )
        assert result.overall_score == 67

    def test_empty_checklist_scores_100(self):
        result = ValidationEngine({}, ()).validate_ppda_compliance({})

        assert result.compliant is True
        assert result.overall_score == 100

    def test_unknown_requirement_code_rejected(self):
        with pytest.raises(ConfigurationError):
            ValidationEngine({}, (PPDARequirement("PPDA_99", "Unknown"),))

    def test_every_default_requirement_has_predicate(self, validation_engine):
        assert {r.code for r in validation_engine.ppda_requirements} <= set(PPDA_PREDICATES)


# =========================================================================
# 4. validate_complete and summaries
# =========================================================================


class TestValidateComplete:
    def test_all_stages_validated(self, validation_engine, planning_data):
        result = validation_engine.validate_complete({"planning": planning_data, "rfq": RFQ_DATA})

        assert result.total_stages == 8
        assert result.passed_stages == 2
        assert result.overall_valid is False
        assert {r.stage for r in result.failed_stages} == {
            "template",
            "clarification",
            "submission",
            "evaluation",
            "approval",
            "award",
        }

    def test_total_errors_is_sum(self, validation_engine):
        result = validation_engine.validate_complete({})
        assert result.total_errors == sum(len(r.errors) for r in result.results)

    def test_accepts_stage_keys(self, validation_engine, planning_data):
        result = validation_engine.validate_complete({Stage.PLANNING: planning_data})
        assert result.results[0].valid is True


class TestStageRules:
    def test_summary(self, validation_engine):
        summary = validation_engine.get_stage_rules("template")

        assert summary.stage_name == "Template Selection"
        assert summary.required_fields == (
            "rfq_template",
            "evaluation_template",
            "technical_specifications",
        )
        assert summary.optional_fields == ("template_customizations",)
        assert summary.fields["technical_specifications"].min_length == 50

    def test_unknown_stage_summary(self, validation_engine):
        assert validation_engine.get_stage_rules("bogus") is None

    def test_all_validation_stages(self, validation_engine):
        stages = validation_engine.get_all_validation_stages()

        assert len(stages) == 8
        assert stages[0] == (Stage.PLANNING, "Procurement Planning")
