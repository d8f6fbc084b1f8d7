"""
Procurement Validation Engine (``procurement_engines.validation``).

Responsibility
--------------
Pure validation functions for procurement payloads:

* Field-level rules per stage (presence, type, length, numeric range,
  enum membership, array size, ``HH:mm`` format).
* The fixed PPDA regulatory checklist with an aggregate compliance score.
* A whole-procurement fold of the per-stage validation.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO database,
ZERO clock reads.  Rule tables are injected at construction.

Invariants enforced
-------------------
* Every rule violation becomes exactly one human-readable error string;
  violations are collected, never raised.
* A missing required field yields one error and no further checks on
  that field.  A failed type check ends the checks on that field.
* Optional absent fields (None or "") are skipped entirely.
* ``compliant`` is true iff zero PPDA predicates failed.

Failure modes
-------------
* Returns ``StageValidationResult(valid=False, code=UNKNOWN_STAGE)`` for
  an unrecognized stage name.
* Raises ``ConfigurationError`` at construction when a configured PPDA
  requirement has no predicate.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.stages import Stage
from procurement_kernel.domain.validation import (
    CompleteValidationResult,
    FieldFormat,
    FieldType,
    PPDAComplianceResult,
    PPDARequirement,
    StageRuleSet,
    StageRulesSummary,
    StageValidationResult,
    ValidationRule,
)
from procurement_kernel.exceptions import ConfigurationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("engines.validation")

_TIME_HH_MM = re.compile(r"([0-1]?[0-9]|2[0-3]):[0-5][0-9]")


# ---------------------------------------------------------------------------
# PPDA predicates
# ---------------------------------------------------------------------------


def _is_true(data: Mapping[str, Any], key: str) -> bool:
    return data.get(key) is True


def _is_number(value: Any) -> bool:
    """Finite int, float or Decimal.  NaN and infinities do not count."""
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _min_bid_period(data: Mapping[str, Any]) -> bool:
    days = data.get("bid_period_days")
    return _is_number(days) and days >= 7


def _has_evaluation_criteria(data: Mapping[str, Any]) -> bool:
    criteria = data.get("evaluation_criteria")
    return isinstance(criteria, Mapping) and len(criteria) > 0


def _independent_panel(data: Mapping[str, Any]) -> bool:
    panel = data.get("evaluation_panel")
    return isinstance(panel, (list, tuple)) and len(panel) >= 3


PPDA_PREDICATES: dict[str, Callable[[Mapping[str, Any]], bool]] = {
    "PPDA_1": lambda d: d.get("procurement_method") == "competitive",
    "PPDA_2": lambda d: _is_true(d, "public_notice_published"),
    "PPDA_3": _min_bid_period,
    "PPDA_4": _has_evaluation_criteria,
    "PPDA_5": lambda d: _is_true(d, "decision_documented"),
    "PPDA_6": _independent_panel,
    "PPDA_7": lambda d: _is_true(d, "conflict_of_interest_declared"),
    "PPDA_8": lambda d: _is_true(d, "complaints_process"),
    "PPDA_9": lambda d: _is_true(d, "audit_trail_enabled"),
    "PPDA_10": lambda d: _is_true(d, "budget_confirmed"),
}


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _is_valid_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def _type_error(rule: ValidationRule, value: Any) -> str | None:
    """Return the type error for ``value`` or None when the type matches."""
    name = rule.field_name
    match rule.field_type:
        case FieldType.STRING:
            ok = isinstance(value, str)
            message = f"{name} must be a string"
        case FieldType.NUMBER:
            ok = _is_number(value)
            message = f"{name} must be a number"
        case FieldType.ARRAY:
            ok = isinstance(value, (list, tuple))
            message = f"{name} must be an array"
        case FieldType.OBJECT:
            ok = isinstance(value, Mapping)
            message = f"{name} must be an object"
        case FieldType.DATE:
            ok = _is_valid_date(value)
            message = f"{name} must be a valid date"
        case FieldType.BOOLEAN:
            ok = isinstance(value, bool)
            message = f"{name} must be a boolean"
        case _:
            ok = True
            message = ""
    return None if ok else message


def check_field(rule: ValidationRule, value: Any) -> list[str]:
    """Apply one rule to one value, returning every violation in rule order."""
    name = rule.field_name

    if _is_empty(value):
        return [f"{name} is required"] if rule.required else []

    type_error = _type_error(rule, value)
    if type_error is not None:
        return [type_error]

    errors: list[str] = []
    has_length = isinstance(value, (str, list, tuple))

    if rule.min_length is not None and has_length and len(value) < rule.min_length:
        errors.append(f"{name} must be at least {rule.min_length} characters")

    if rule.max_length is not None and has_length and len(value) > rule.max_length:
        errors.append(f"{name} must not exceed {rule.max_length} characters")

    if _is_number(value):
        if rule.min_value is not None and value < rule.min_value:
            errors.append(f"{name} must be at least {rule.min_value}")
        if rule.max_value is not None and value > rule.max_value:
            errors.append(f"{name} must not exceed {rule.max_value}")

    if rule.allowed_values and value not in rule.allowed_values:
        errors.append(f"{name} must be one of: {', '.join(rule.allowed_values)}")

    if (
        rule.min_items is not None
        and isinstance(value, (list, tuple))
        and len(value) < rule.min_items
    ):
        errors.append(f"{name} must have at least {rule.min_items} items")

    if rule.format == FieldFormat.TIME_HH_MM:
        if not isinstance(value, str) or _TIME_HH_MM.fullmatch(value) is None:
            errors.append(f"{name} must be in HH:mm format")

    return errors


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ValidationEngine:
    """
    Rule-based validator for stage payloads and PPDA compliance.

    Contract:
        Pure functions -- no I/O.  Rule sets and the PPDA checklist are
        injected once and never mutated.
    Guarantees:
        - A payload missing every required field of a stage yields exactly
          one error per missing required field.
        - ``validate_complete`` never short-circuits.
    Non-goals:
        - Does not decide whether a stage may be left; that is the
          workflow engine's job.
    """

    def __init__(
        self,
        rule_sets: Mapping[Stage, StageRuleSet],
        ppda_requirements: Sequence[PPDARequirement],
    ) -> None:
        unknown = [r.code for r in ppda_requirements if r.code not in PPDA_PREDICATES]
        if unknown:
            raise ConfigurationError(
                [f"No predicate for PPDA requirement {code}" for code in unknown]
            )
        self._rule_sets: dict[Stage, StageRuleSet] = dict(rule_sets)
        self._ppda_requirements: tuple[PPDARequirement, ...] = tuple(ppda_requirements)

    @property
    def ppda_requirements(self) -> tuple[PPDARequirement, ...]:
        return self._ppda_requirements

    @traced_engine("validation", "1.0", fingerprint_fields=("stage",))
    def validate_stage(
        self,
        stage: Stage | str,
        data: Mapping[str, Any] | None = None,
    ) -> StageValidationResult:
        """Validate one stage payload against that stage's rule set."""
        parsed = Stage.try_parse(stage)
        rule_set = self._rule_sets.get(parsed) if parsed is not None else None
        if rule_set is None:
            label = stage.value if isinstance(stage, Stage) else str(stage)
            return StageValidationResult(
                valid=False,
                errors=(f"Unknown stage: {label}",),
                stage=label,
                code=FailureCode.UNKNOWN_STAGE,
            )

        payload = data or {}
        errors: list[str] = []
        for rule in rule_set.rules:
            errors.extend(check_field(rule, payload.get(rule.field_name)))

        return StageValidationResult(
            valid=not errors,
            errors=tuple(errors),
            stage=rule_set.stage.value,
            stage_name=rule_set.name,
            code=FailureCode.VALIDATION_VIOLATION if errors else None,
        )

    @traced_engine("validation", "1.0")
    def validate_ppda_compliance(
        self,
        procurement_data: Mapping[str, Any] | None = None,
    ) -> PPDAComplianceResult:
        """Evaluate every PPDA predicate; compliant only with zero failures."""
        data = procurement_data or {}
        passed: list[PPDARequirement] = []
        failed: list[PPDARequirement] = []

        for requirement in self._ppda_requirements:
            if PPDA_PREDICATES[requirement.code](data):
                passed.append(requirement)
            else:
                failed.append(requirement)

        total = len(self._ppda_requirements)
        if total:
            score = int(
                (Decimal(len(passed)) * 100 / Decimal(total)).quantize(
                    Decimal("1"), rounding=ROUND_HALF_UP
                )
            )
        else:
            score = 100

        if failed:
            logger.info(
                "ppda_compliance_failed",
                extra={
                    "failed_codes": [r.code for r in failed],
                    "overall_score": score,
                },
            )

        return PPDAComplianceResult(
            compliant=not failed,
            passed=tuple(passed),
            failed=tuple(failed),
            overall_score=score,
        )

    @traced_engine("validation", "1.0")
    def validate_complete(
        self,
        procurement_data: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> CompleteValidationResult:
        """Validate every configured stage.

        ``procurement_data`` maps stage name to that stage's payload;
        stages without a payload are validated against ``{}``.
        """
        data = procurement_data or {}
        results: list[StageValidationResult] = []
        for stage in self._rule_sets:
            payload = data.get(stage.value) or data.get(stage) or {}
            results.append(self.validate_stage(stage, payload))

        total_errors = sum(len(r.errors) for r in results)
        return CompleteValidationResult(
            overall_valid=total_errors == 0,
            total_stages=len(results),
            passed_stages=sum(1 for r in results if r.valid),
            total_errors=total_errors,
            results=tuple(results),
        )

    def get_stage_rules(self, stage: Stage | str) -> StageRulesSummary | None:
        parsed = Stage.try_parse(stage)
        rule_set = self._rule_sets.get(parsed) if parsed is not None else None
        if rule_set is None:
            return None
        return StageRulesSummary(
            stage=rule_set.stage,
            stage_name=rule_set.name,
            fields={r.field_name: r for r in rule_set.rules},
            required_fields=rule_set.required_fields,
            optional_fields=rule_set.optional_fields,
        )

    def get_all_validation_stages(self) -> tuple[tuple[Stage, str], ...]:
        return tuple((s, rs.name) for s, rs in self._rule_sets.items())
