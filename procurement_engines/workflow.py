"""
procurement_engines.workflow -- Stage state machine with dependency gating.

Responsibility:
    Decide whether a procurement may move between stages: adjacency of
    the requested transition, presence of the documents and approvals the
    current stage demands, and the minimum dwell time in the stage.  Also
    answers pure ordering questions over the fixed stage sequence.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel/domain types and logging.

Invariants enforced:
    - Linearity: a transition is allowed only to the sole configured
      successor of the current stage; ``award`` is terminal.
    - Forward-only: ``can_transition`` additionally rejects any pair where
      the target is not after the current stage.
    - Fail closed: unknown stages, the terminal stage and insufficient
      dwell time all report "not advanceable".
    - Purity: no clock access; dwell time is passed in.

Failure modes:
    - Check operations return results with a ``FailureCode``
      (UNKNOWN_STAGE, ILLEGAL_TRANSITION, TERMINAL_STAGE,
      MIN_DWELL_NOT_MET) -- they never raise for bad stage names.
    - Pure lookups (``get_next_stage``, ``get_progress``, ...) raise
      ``UnknownStageError`` for names outside the stage map.
    - ``ConfigurationError`` at construction if a stage has no
      requirement.
"""

from __future__ import annotations

from collections.abc import Mapping

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.procurement import ProcurementSnapshot
from procurement_kernel.domain.stages import (
    STAGE_ORDER,
    STAGE_TRANSITIONS,
    Stage,
    StageRequirement,
)
from procurement_kernel.domain.workflow import (
    AdvanceCheck,
    StageDetails,
    StageProgress,
    StageRequirementsCheck,
    TimelineEstimate,
    TransitionCheck,
    WorkflowDefinition,
)
from procurement_kernel.exceptions import ConfigurationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("engines.workflow")


def _stage_label(stage: Stage | str) -> str:
    return stage.value if isinstance(stage, Stage) else str(stage)


class WorkflowEngine:
    """
    Linear procurement stage state machine.

    Contract:
        Pure functions over the static stage map and the requirement
        table injected at construction.
    Guarantees:
        - ``can_transition(a, b).allowed`` is True iff ``b`` is the sole
          successor of ``a``.
        - ``validate_stage_requirements`` reports one missing item per
          unmet document or approval.
    Non-goals:
        - Does not define a policy for sending a procurement back to an
          earlier stage; such requests are rejected.
        - Does not persist anything or emit audit entries; see
          ``StageAdvanceService``.
    """

    def __init__(self, requirements: Mapping[Stage, StageRequirement]) -> None:
        missing = [s.value for s in STAGE_ORDER if s not in requirements]
        if missing:
            raise ConfigurationError(
                [f"No stage requirement configured for: {', '.join(missing)}"]
            )
        self._requirements: dict[Stage, StageRequirement] = dict(requirements)

    # ------------------------------------------------------------------
    # Transition checks
    # ------------------------------------------------------------------

    @traced_engine("workflow", "1.0", fingerprint_fields=("current_stage", "target_stage"))
    def can_transition(
        self,
        current_stage: Stage | str,
        target_stage: Stage | str,
    ) -> TransitionCheck:
        """Check that ``target_stage`` is the allowed successor of ``current_stage``."""
        current = Stage.try_parse(current_stage)
        if current is None:
            return TransitionCheck(
                allowed=False,
                reason=f"Unknown current stage: {_stage_label(current_stage)}",
                code=FailureCode.UNKNOWN_STAGE,
            )

        allowed = STAGE_TRANSITIONS[current]
        allowed_label = ", ".join(s.value for s in allowed) or "none"
        target = Stage.try_parse(target_stage)

        if target is None or target not in allowed:
            return TransitionCheck(
                allowed=False,
                reason=(
                    f"Cannot transition from {current.value} to "
                    f"{_stage_label(target_stage)}. Allowed: {allowed_label}"
                ),
                code=FailureCode.ILLEGAL_TRANSITION,
            )

        # The adjacency map is forward-only; keep the order check explicit
        if not self.is_before(current, target):
            logger.warning(
                "stage_regression_rejected",
                extra={"from_stage": current.value, "to_stage": target.value},
            )
            return TransitionCheck(
                allowed=False,
                reason=f"Stage regression from {current.value} to {target.value} is not permitted",
                code=FailureCode.ILLEGAL_TRANSITION,
            )

        return TransitionCheck(allowed=True, reason="Transition is valid")

    @traced_engine("workflow", "1.0", fingerprint_fields=("stage",))
    def validate_stage_requirements(
        self,
        stage: Stage | str,
        procurement: ProcurementSnapshot | None = None,
    ) -> StageRequirementsCheck:
        """Compare attached documents and approved approvals to the stage's requirement."""
        parsed = Stage.try_parse(stage)
        if parsed is None:
            return StageRequirementsCheck(
                met_requirements=False,
                missing_items=(f"Unknown stage: {_stage_label(stage)}",),
                code=FailureCode.UNKNOWN_STAGE,
            )

        requirement = self._requirements[parsed]
        document_types = set(procurement.document_types) if procurement else set()
        approved_types = set(procurement.approved_types) if procurement else set()

        missing: list[str] = []
        for doc_type in requirement.required_documents:
            if doc_type not in document_types:
                missing.append(f"Missing document: {doc_type}")
        for approval_type in requirement.required_approvals:
            if approval_type not in approved_types:
                missing.append(f"Missing approval: {approval_type}")

        met = not missing
        return StageRequirementsCheck(
            met_requirements=met,
            missing_items=tuple(missing),
            requirement=requirement,
            code=None if met else FailureCode.REQUIREMENTS_NOT_MET,
        )

    @traced_engine("workflow", "1.0", fingerprint_fields=("current_stage", "days_in_stage"))
    def can_advance_to_next_stage(
        self,
        current_stage: Stage | str,
        days_in_stage: int = 0,
    ) -> AdvanceCheck:
        """Check terminal state and minimum dwell time for ``current_stage``."""
        current = Stage.try_parse(current_stage)
        if current is None:
            return AdvanceCheck(
                can_advance=False,
                reason="Invalid stage",
                code=FailureCode.UNKNOWN_STAGE,
            )

        next_stage = self.get_next_stage(current)
        if next_stage is None:
            return AdvanceCheck(
                can_advance=False,
                reason="Already at final stage",
                code=FailureCode.TERMINAL_STAGE,
            )

        requirement = self._requirements[current]
        if days_in_stage < requirement.min_days:
            return AdvanceCheck(
                can_advance=False,
                reason=(
                    f"Must remain in {current.value} for {requirement.min_days} days. "
                    f"Currently: {days_in_stage} days"
                ),
                code=FailureCode.MIN_DWELL_NOT_MET,
            )

        return AdvanceCheck(
            can_advance=True,
            reason="All requirements met",
            next_stage=next_stage,
        )

    # ------------------------------------------------------------------
    # Pure lookups over the stage ordering
    # ------------------------------------------------------------------

    def get_all_stages(self) -> tuple[Stage, ...]:
        return STAGE_ORDER

    def get_next_stage(self, stage: Stage | str) -> Stage | None:
        successors = STAGE_TRANSITIONS[Stage.parse(stage)]
        return next(iter(successors), None)

    def get_previous_stage(self, stage: Stage | str) -> Stage | None:
        index = Stage.parse(stage).index
        return STAGE_ORDER[index - 1] if index > 0 else None

    def is_before(self, stage_a: Stage | str, stage_b: Stage | str) -> bool:
        return Stage.parse(stage_a).index < Stage.parse(stage_b).index

    def is_after(self, stage_a: Stage | str, stage_b: Stage | str) -> bool:
        return Stage.parse(stage_a).index > Stage.parse(stage_b).index

    def get_requirement(self, stage: Stage | str) -> StageRequirement:
        return self._requirements[Stage.parse(stage)]

    def get_progress(self, stage: Stage | str) -> StageProgress:
        parsed = Stage.parse(stage)
        requirement = self._requirements[parsed]
        return StageProgress(
            stage=parsed,
            progress=requirement.progress,
            next_stage=self.get_next_stage(parsed),
            previous_stage=self.get_previous_stage(parsed),
            description=requirement.description,
        )

    def get_stage_details(self, stage: Stage | str) -> StageDetails:
        parsed = Stage.parse(stage)
        requirement = self._requirements[parsed]
        return StageDetails(
            stage=parsed,
            description=requirement.description,
            required_documents=requirement.required_documents,
            required_approvals=requirement.required_approvals,
            min_days=requirement.min_days,
            progress=requirement.progress,
            allowed_next_stages=tuple(STAGE_TRANSITIONS[parsed]),
        )

    def get_timeline_estimates(self) -> tuple[TimelineEstimate, ...]:
        """Minimum-dwell timeline, cumulative from planning."""
        estimates: list[TimelineEstimate] = []
        total_days = 0
        for stage in STAGE_ORDER:
            requirement = self._requirements[stage]
            total_days += requirement.min_days
            estimates.append(
                TimelineEstimate(
                    stage=stage,
                    description=requirement.description,
                    estimated_days=requirement.min_days,
                    cumulative_days=total_days,
                )
            )
        return tuple(estimates)

    def get_workflow_definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            stages=STAGE_ORDER,
            transitions={s: tuple(STAGE_TRANSITIONS[s]) for s in STAGE_ORDER},
            requirements=dict(self._requirements),
            progress_map={s: self._requirements[s].progress for s in STAGE_ORDER},
            timeline=self.get_timeline_estimates(),
        )
