"""
procurement_config -- single public entrypoint for procurement configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``, and builds the four engines from it through
    ``build_engines()``.  No other component reads configuration files
    directly.

Architecture position:
    Configuration -- YAML-driven rule tables, validated at load time.
    This package sits above ``procurement_kernel`` and
    ``procurement_engines``.  The kernel MUST NEVER import from
    ``procurement_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: a configuration with any validation error is
      never returned.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration set does not exist.
    - ``ConfigurationError`` -- structural validation failed; every problem
      is listed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PROCUREMENT_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying later decisions to the rule tables that governed them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from procurement_config.loader import load_configuration
from procurement_config.schema import ProcurementConfig
from procurement_config.validator import ConfigValidationResult, validate_configuration
from procurement_engines.audit import AuditEngine
from procurement_engines.validation import ValidationEngine
from procurement_engines.versioning import VersioningEngine
from procurement_engines.workflow import WorkflowEngine
from procurement_kernel.domain.clock import Clock
from procurement_kernel.exceptions import ConfigurationError

_logger = logging.getLogger("procurement_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "ppda_default.yaml"


def get_active_config(config_path: Path | None = None) -> ProcurementConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``ProcurementConfig`` has passed
          ``validate_configuration`` with zero errors.
        - A ``PROCUREMENT_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Args:
        config_path: Override path to a configuration set file.
            Defaults to procurement_config/sets/ppda_default.yaml.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If validation reports any error.
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors, source=str(path))
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "PROCUREMENT_CONFIG_TRACE",
        extra={
            "trace_type": "PROCUREMENT_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "stage_count": len(config.stage_requirements),
            "ppda_requirement_count": len(config.ppda_requirements),
        },
    )
    return config


@dataclass(frozen=True)
class EngineSet:
    """The four engines built from one configuration."""

    workflow: WorkflowEngine
    validation: ValidationEngine
    audit: AuditEngine
    versioning: VersioningEngine


def build_engines(config: ProcurementConfig, clock: Clock | None = None) -> EngineSet:
    """Construct every engine from ``config``, sharing one clock."""
    return EngineSet(
        workflow=WorkflowEngine(config.stage_requirements),
        validation=ValidationEngine(config.rule_sets, config.ppda_requirements),
        audit=AuditEngine(config.audit_policy, clock),
        versioning=VersioningEngine(clock),
    )


__all__ = [
    "ConfigValidationResult",
    "EngineSet",
    "ProcurementConfig",
    "build_engines",
    "get_active_config",
    "validate_configuration",
]
