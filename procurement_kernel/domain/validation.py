"""
Validation rule and result types (``procurement_kernel.domain.validation``).

Responsibility
--------------
Immutable per-field rule specifications grouped per stage, the PPDA
checklist entry type, and the result objects returned by
``procurement_engines.validation``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Rule tables are
built by ``procurement_config`` at process start and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.stages import Stage


class FieldType(str, Enum):
    """Value types a validation rule may demand."""

    STRING = "string"
    NUMBER = "number"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    BOOLEAN = "boolean"


class FieldFormat(str, Enum):
    """Supported string formats."""

    TIME_HH_MM = "HH:mm"


@dataclass(frozen=True)
class ValidationRule:
    """Constraints on a single payload field.

    Bounds left as None are not checked.  ``allowed_values`` empty means
    no enum constraint.
    """

    field_name: str
    field_type: FieldType
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None
    allowed_values: tuple[str, ...] = ()
    min_items: int | None = None
    format: FieldFormat | None = None


@dataclass(frozen=True)
class StageRuleSet:
    """All field rules for one stage, in evaluation order."""

    stage: Stage
    name: str
    rules: tuple[ValidationRule, ...]

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(r.field_name for r in self.rules if r.required)

    @property
    def optional_fields(self) -> tuple[str, ...]:
        return tuple(r.field_name for r in self.rules if not r.required)


@dataclass(frozen=True)
class StageValidationResult:
    """Result of validating one stage payload."""

    valid: bool
    errors: tuple[str, ...]
    stage: str
    stage_name: str | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class CompleteValidationResult:
    """Fold of ``StageValidationResult`` across every configured stage."""

    overall_valid: bool
    total_stages: int
    passed_stages: int
    total_errors: int
    results: tuple[StageValidationResult, ...]

    @property
    def failed_stages(self) -> tuple[StageValidationResult, ...]:
        return tuple(r for r in self.results if not r.valid)


@dataclass(frozen=True)
class StageRulesSummary:
    stage: Stage
    stage_name: str
    fields: dict[str, ValidationRule]
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...]


# =========================================================================
# PPDA regulatory checklist
# =========================================================================


@dataclass(frozen=True)
class PPDARequirement:
    """One entry of the fixed regulatory checklist."""

    code: str
    requirement: str
    mandatory: bool = True


@dataclass(frozen=True)
class PPDAComplianceResult:
    """Outcome of evaluating every PPDA predicate.

    ``compliant`` is true only when nothing failed; there is no partial-pass
    threshold.
    """

    compliant: bool
    passed: tuple[PPDARequirement, ...]
    failed: tuple[PPDARequirement, ...]
    overall_score: int

    @property
    def passed_count(self) -> int:
        return len(self.passed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total_requirements(self) -> int:
        return len(self.passed) + len(self.failed)
