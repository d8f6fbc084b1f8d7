"""
Tests for loading procurement configuration sets.

Tests cover:
- The shipped default set parses into the expected domain objects
- get_active_config: validation gate, PROCUREMENT_CONFIG_TRACE, checksum stability
- Section parsers: stage requirements, validation rules, PPDA, audit policy
- build_engines wiring
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from procurement_config import EngineSet, build_engines, get_active_config
from procurement_config.loader import (
    compute_checksum,
    load_configuration,
    parse_audit_policy,
    parse_rule_set,
    parse_stage_requirement,
    parse_validation_rule,
)
from procurement_kernel.domain.audit import AuditEventType, AuditPolicy
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.stages import STAGE_ORDER, Stage
from procurement_kernel.domain.validation import FieldFormat, FieldType
from procurement_kernel.exceptions import ConfigurationError, UnknownStageError

DEFAULT_SET = Path(__file__).resolve().parents[2] / "procurement_config" / "sets" / "ppda_default.yaml"


def write_variant(tmp_path: Path, mutate) -> Path:
    """Copy the default set with ``mutate(raw)`` applied."""
    with open(DEFAULT_SET) as f:
        raw = yaml.safe_load(f)
    mutate(raw)
    path = tmp_path / "variant.yaml"
    path.write_text(yaml.safe_dump(raw, sort_keys=False))
    return path


class TestDefaultSet:
    def test_identity(self, config):
        assert config.config_id == "ppda_default"
        assert config.version == 1
        assert len(config.checksum) == 64

    def test_every_stage_configured(self, config):
        assert set(config.stage_requirements) == set(STAGE_ORDER)
        assert set(config.rule_sets) == set(STAGE_ORDER)

    def test_stage_requirement_values(self, config):
        approval = config.stage_requirements[Stage.APPROVAL]

        assert approval.required_documents == ("evaluation_results",)
        assert approval.required_approvals == (
            "technical_approval",
            "financial_approval",
            "legal_approval",
        )
        assert approval.min_days == 3
        assert approval.progress == 85

    def test_rule_values(self, config):
        rules = {r.field_name: r for r in config.rule_sets[Stage.RFQ].rules}

        assert rules["closing_time"].format == FieldFormat.TIME_HH_MM
        assert rules["closing_date"].field_type == FieldType.DATE
        assert rules["technical_criteria"].min_items == 2
        assert rules["submission_format"].allowed_values == ("electronic", "physical", "both")

    def test_numeric_bounds_are_decimal(self, config):
        rules = {r.field_name: r for r in config.rule_sets[Stage.AWARD].rules}
        assert rules["award_amount"].min_value == Decimal("0")

    def test_ppda_checklist(self, config):
        assert [r.code for r in config.ppda_requirements] == [f"PPDA_{i}" for i in range(1, 11)]
        assert all(r.mandatory for r in config.ppda_requirements)

    def test_audit_policy(self, config):
        policy = config.audit_policy

        assert policy.suspicious_window_minutes == 60
        assert policy.suspicious_action_threshold == 20
        assert AuditEventType.AWARD_DECIDED in policy.mandatory_events
        assert "estimated_budget" in policy.critical_fields


class TestGetActiveConfig:
    def test_trace_emitted(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "PROCUREMENT_CONFIG_TRACE"]
        assert traces[-1]["config_set_id"] == "ppda_default"
        assert traces[-1]["checksum"] == config.checksum
        assert traces[-1]["stage_count"] == 8

    def test_checksum_stable(self):
        assert get_active_config().checksum == get_active_config().checksum

    def test_explicit_path(self, tmp_path):
        path = write_variant(tmp_path, lambda raw: raw.update(config_id="district_variant"))

        config = get_active_config(path)

        assert config.config_id == "district_variant"
        assert config.checksum != get_active_config().checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_invalid_set_rejected(self, tmp_path):
        def break_it(raw):
            del raw["stages"]["rfq"]
            raw["stages"]["award"]["progress"] = 90

        path = write_variant(tmp_path, break_it)

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(path)

        problems = exc_info.value.problems
        assert "Stage 'rfq' has no requirement" in problems
        assert "Terminal stage 'award' progress must be 100, got 90" in problems
        assert exc_info.value.source == str(path)

    def test_unknown_stage_name_rejected(self, tmp_path):
        path = write_variant(
            tmp_path,
            lambda raw: raw["stages"].update(tendering={"description": "x", "progress": 5}),
        )
        with pytest.raises(UnknownStageError):
            get_active_config(path)

    def test_warnings_logged(self, tmp_path, captured_logs):
        path = write_variant(tmp_path, lambda raw: raw.update(ppda_requirements=[]))

        get_active_config(path)

        warnings = [r for r in captured_logs() if r["message"] == "config_validation_warning"]
        assert warnings[0]["warning"] == "No PPDA requirements configured"


class TestParsers:
    def test_stage_requirement_defaults(self):
        requirement = parse_stage_requirement("submission", {"description": "S", "progress": 50})

        assert requirement.stage is Stage.SUBMISSION
        assert requirement.required_documents == ()
        assert requirement.min_days == 0

    def test_stage_requirement_needs_progress(self):
        with pytest.raises(KeyError):
            parse_stage_requirement("submission", {"description": "S"})

    def test_validation_rule(self):
        rule = parse_validation_rule(
            "amount", {"type": "number", "required": True, "min_value": 0.5, "max_value": 10}
        )

        assert rule.field_type == FieldType.NUMBER
        assert rule.required is True
        assert rule.min_value == Decimal("0.5")
        assert rule.max_value == Decimal("10")
        assert rule.format is None

    def test_unknown_field_type(self):
        with pytest.raises(ValueError):
            parse_validation_rule("x", {"type": "uuid"})

    def test_rule_order_follows_yaml(self):
        rule_set = parse_rule_set(
            "planning",
            {"name": "P", "rules": {"b": {"type": "string"}, "a": {"type": "string"}}},
        )
        assert [r.field_name for r in rule_set.rules] == ["b", "a"]

    def test_audit_policy_defaults(self):
        assert parse_audit_policy(None) == AuditPolicy()
        assert parse_audit_policy({"suspicious_action_threshold": 5}).suspicious_window_minutes == 60

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_load_does_not_validate(self, tmp_path):
        path = write_variant(tmp_path, lambda raw: raw["stages"].pop("rfq"))
        config = load_configuration(path)
        assert Stage.RFQ not in config.stage_requirements


class TestBuildEngines:
    def test_engines_share_clock(self, config):
        clock = DeterministicClock()
        engines = build_engines(config, clock)

        assert isinstance(engines, EngineSet)
        entry = engines.audit.log_event(event_type="user_login", user_id="u", action="x")
        assert entry.audit_entry.timestamp == clock.now()
        assert engines.audit.policy == config.audit_policy
        assert engines.workflow.get_requirement("rfq") == config.stage_requirements[Stage.RFQ]
