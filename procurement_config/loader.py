"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen domain types
the engines consume: ``StageRequirement``, ``StageRuleSet``,
``PPDARequirement`` and ``AuditPolicy``.  The single public entry point
for runtime config is ``procurement_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends only on
``procurement_kernel.domain``; never on engines or services.

Invariants enforced
-------------------
* No silent defaults for required keys: a missing key raises ``KeyError``.
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown stage, field type, format or event type  -> ``ValueError`` /
  ``UnknownStageError``.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import ProcurementConfig
from procurement_kernel.domain.audit import AuditEventType, AuditPolicy
from procurement_kernel.domain.stages import Stage, StageRequirement
from procurement_kernel.domain.validation import (
    FieldFormat,
    FieldType,
    PPDARequirement,
    StageRuleSet,
    ValidationRule,
)
from procurement_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def parse_stage_requirement(stage: str, data: dict[str, Any]) -> StageRequirement:
    """Parse one entry of the ``stages`` mapping."""
    return StageRequirement(
        stage=Stage.parse(stage),
        description=data["description"],
        required_documents=tuple(data.get("required_documents") or ()),
        required_approvals=tuple(data.get("required_approvals") or ()),
        min_days=int(data.get("min_days", 0)),
        progress=int(data["progress"]),
    )


def parse_validation_rule(field_name: str, data: dict[str, Any]) -> ValidationRule:
    fmt = data.get("format")
    return ValidationRule(
        field_name=field_name,
        field_type=FieldType(data["type"]),
        required=bool(data.get("required", False)),
        min_length=data.get("min_length"),
        max_length=data.get("max_length"),
        min_value=_optional_decimal(data.get("min_value")),
        max_value=_optional_decimal(data.get("max_value")),
        allowed_values=tuple(str(v) for v in data.get("allowed_values") or ()),
        min_items=data.get("min_items"),
        format=FieldFormat(fmt) if fmt else None,
    )


def parse_rule_set(stage: str, data: dict[str, Any]) -> StageRuleSet:
    """Parse one entry of ``validation_rules``; rule order follows the YAML."""
    rules = data.get("rules") or {}
    return StageRuleSet(
        stage=Stage.parse(stage),
        name=data["name"],
        rules=tuple(parse_validation_rule(name, spec) for name, spec in rules.items()),
    )


def parse_ppda_requirement(data: dict[str, Any]) -> PPDARequirement:
    return PPDARequirement(
        code=data["code"],
        requirement=data["requirement"],
        mandatory=bool(data.get("mandatory", True)),
    )


def parse_audit_policy(data: dict[str, Any] | None) -> AuditPolicy:
    """Parse the ``audit`` section; absent keys keep the policy defaults."""
    if not data:
        return AuditPolicy()
    defaults = AuditPolicy()
    return AuditPolicy(
        critical_fields=tuple(data.get("critical_fields", defaults.critical_fields)),
        mandatory_events=tuple(
            AuditEventType(e)
            for e in data.get("mandatory_events", defaults.mandatory_events)
        ),
        suspicious_window_minutes=int(
            data.get("suspicious_window_minutes", defaults.suspicious_window_minutes)
        ),
        suspicious_action_threshold=int(
            data.get("suspicious_action_threshold", defaults.suspicious_action_threshold)
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)


def load_configuration(path: Path) -> ProcurementConfig:
    """Load and parse one configuration set file.  Does not validate."""
    raw = load_yaml_file(path)

    stages = {
        req.stage: req
        for req in (
            parse_stage_requirement(name, spec)
            for name, spec in (raw.get("stages") or {}).items()
        )
    }
    rule_sets = {
        rs.stage: rs
        for rs in (
            parse_rule_set(name, spec)
            for name, spec in (raw.get("validation_rules") or {}).items()
        )
    }

    return ProcurementConfig(
        config_id=raw["config_id"],
        version=int(raw.get("version", 1)),
        description=raw.get("description", ""),
        stage_requirements=stages,
        rule_sets=rule_sets,
        ppda_requirements=tuple(
            parse_ppda_requirement(p) for p in raw.get("ppda_requirements") or ()
        ),
        audit_policy=parse_audit_policy(raw.get("audit")),
        checksum=compute_checksum(raw),
    )
