"""
Configuration schema (``procurement_config.schema``).

The frozen dataclass produced by the loader.  Everything the engines need
at construction time lives on one ``ProcurementConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from procurement_kernel.domain.audit import AuditPolicy
from procurement_kernel.domain.stages import Stage, StageRequirement
from procurement_kernel.domain.validation import PPDARequirement, StageRuleSet


@dataclass(frozen=True)
class ProcurementConfig:
    """
    A complete, loaded procurement configuration set.

    ``checksum`` is the SHA-256 of the raw YAML document and identifies
    the configuration version that governed a decision.
    """

    config_id: str
    version: int
    description: str = ""
    stage_requirements: dict[Stage, StageRequirement] = field(default_factory=dict)
    rule_sets: dict[Stage, StageRuleSet] = field(default_factory=dict)
    ppda_requirements: tuple[PPDARequirement, ...] = ()
    audit_policy: AuditPolicy = field(default_factory=AuditPolicy)
    checksum: str = ""
