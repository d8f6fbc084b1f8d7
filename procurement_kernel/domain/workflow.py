"""
Workflow result types (``procurement_kernel.domain.workflow``).

Pure value objects returned by ``procurement_engines.workflow``.  Every
check result carries a boolean outcome, a human-readable reason and, on
failure, a ``FailureCode``.
"""

from __future__ import annotations

from dataclasses import dataclass

from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.stages import Stage, StageRequirement


@dataclass(frozen=True)
class TransitionCheck:
    """Result of ``can_transition``."""

    allowed: bool
    reason: str
    code: FailureCode | None = None


@dataclass(frozen=True)
class StageRequirementsCheck:
    """Result of ``validate_stage_requirements``."""

    met_requirements: bool
    missing_items: tuple[str, ...]
    requirement: StageRequirement | None = None
    code: FailureCode | None = None

    @property
    def ready_to_advance(self) -> bool:
        return self.met_requirements


@dataclass(frozen=True)
class AdvanceCheck:
    """Result of ``can_advance_to_next_stage``."""

    can_advance: bool
    reason: str
    next_stage: Stage | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class StageProgress:
    stage: Stage
    progress: int
    next_stage: Stage | None
    previous_stage: Stage | None
    description: str


@dataclass(frozen=True)
class StageDetails:
    stage: Stage
    description: str
    required_documents: tuple[str, ...]
    required_approvals: tuple[str, ...]
    min_days: int
    progress: int
    allowed_next_stages: tuple[Stage, ...]


@dataclass(frozen=True)
class TimelineEstimate:
    stage: Stage
    description: str
    estimated_days: int
    cumulative_days: int


@dataclass(frozen=True)
class WorkflowDefinition:
    """Complete static description of the stage state machine."""

    stages: tuple[Stage, ...]
    transitions: dict[Stage, tuple[Stage, ...]]
    requirements: dict[Stage, StageRequirement]
    progress_map: dict[Stage, int]
    timeline: tuple[TimelineEstimate, ...]
