"""
Configuration Validator (``procurement_config.validator``).

Responsibility
--------------
Validates a loaded ``ProcurementConfig`` before any engine is built from
it, so a broken configuration set fails at start-up rather than mid-way
through a procurement.

Invariants enforced
-------------------
* Stage coverage -- every stage has a requirement and a rule set.
* Progress monotonicity -- progress weights never decrease along the
  stage order and the terminal stage is at 100.
* Dwell sanity -- ``min_days`` is never negative.
* PPDA uniqueness -- no code appears twice; every code has a predicate.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> configuration MUST NOT be
  used; ``get_active_config`` raises ``ConfigurationError``.
* Warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from procurement_config.schema import ProcurementConfig
from procurement_engines.validation import PPDA_PREDICATES
from procurement_kernel.domain.stages import STAGE_ORDER, TERMINAL_STAGE


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: ProcurementConfig) -> ConfigValidationResult:
    """Run every structural check and collect all problems."""
    result = ConfigValidationResult()
    _validate_stage_coverage(config, result)
    _validate_progress(config, result)
    _validate_ppda(config, result)
    _validate_audit_policy(config, result)
    return result


def _validate_stage_coverage(config: ProcurementConfig, result: ConfigValidationResult) -> None:
    for stage in STAGE_ORDER:
        if stage not in config.stage_requirements:
            result.add_error(f"Stage '{stage.value}' has no requirement")
        if stage not in config.rule_sets:
            result.add_error(f"Stage '{stage.value}' has no validation rule set")
        elif not config.rule_sets[stage].required_fields:
            result.add_warning(f"Stage '{stage.value}' has no required fields")


def _validate_progress(config: ProcurementConfig, result: ConfigValidationResult) -> None:
    previous = 0
    for stage in STAGE_ORDER:
        requirement = config.stage_requirements.get(stage)
        if requirement is None:
            continue
        if requirement.min_days < 0:
            result.add_error(f"Stage '{stage.value}' has negative min_days")
        if requirement.progress < previous:
            result.add_error(
                f"Stage '{stage.value}' progress {requirement.progress} "
                f"is below the previous stage ({previous})"
            )
        previous = requirement.progress

    terminal = config.stage_requirements.get(TERMINAL_STAGE)
    if terminal is not None and terminal.progress != 100:
        result.add_error(
            f"Terminal stage '{TERMINAL_STAGE.value}' progress must be 100, "
            f"got {terminal.progress}"
        )


def _validate_ppda(config: ProcurementConfig, result: ConfigValidationResult) -> None:
    counts = Counter(r.code for r in config.ppda_requirements)
    for code, count in counts.items():
        if count > 1:
            result.add_error(f"PPDA requirement '{code}' is declared {count} times")
        if code not in PPDA_PREDICATES:
            result.add_error(f"PPDA requirement '{code}' has no predicate")
    if not config.ppda_requirements:
        result.add_warning("No PPDA requirements configured")


def _validate_audit_policy(config: ProcurementConfig, result: ConfigValidationResult) -> None:
    policy = config.audit_policy
    if policy.suspicious_window_minutes <= 0:
        result.add_error("audit.suspicious_window_minutes must be positive")
    if policy.suspicious_action_threshold <= 0:
        result.add_error("audit.suspicious_action_threshold must be positive")
