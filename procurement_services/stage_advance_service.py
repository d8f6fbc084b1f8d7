"""
StageAdvanceService -- gated, audited stage transitions.

Responsibility:
    Composes the workflow and validation engines into the single decision
    "may this procurement move to that stage now?", and records the
    outcome in the audit log either way.

Architecture position:
    Services -- orchestration over WorkflowEngine, ValidationEngine and
    AuditLogService.  Reads the clock only to derive dwell time when the
    caller does not pass it.

Invariants enforced:
    - A procurement advances only when every gate passes: adjacency and
      forward order, required documents and approvals of the stage being
      left, minimum dwell time, and the stage's field rules.
    - All gates are evaluated; the outcome lists every blocking reason.
    - Every attempt is audited: ``stage_changed`` on success,
      ``error_occurred`` (WARNING) when blocked.

Failure modes:
    - MissingRequiredFieldError when actor_id is empty.
    - ``StageAdvanceOutcome.raise_if_blocked()`` raises
      IllegalTransitionError for callers that prefer exceptions.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from procurement_engines.validation import ValidationEngine
from procurement_engines.workflow import WorkflowEngine
from procurement_kernel.domain.audit import AuditEntry, AuditEventType, Severity
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.procurement import ProcurementSnapshot
from procurement_kernel.domain.stages import Stage
from procurement_kernel.exceptions import IllegalTransitionError, MissingRequiredFieldError
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_services.audit_log_service import AuditLogService

logger = get_logger("services.stage_advance")


@dataclass(frozen=True)
class StageAdvanceOutcome:
    """Result of one advance attempt.

    ``procurement`` is the snapshot after the move (unchanged when
    blocked).  ``codes`` holds one FailureCode per failed gate.
    """

    advanced: bool
    from_stage: str
    to_stage: str
    procurement: ProcurementSnapshot
    reasons: tuple[str, ...] = ()
    codes: tuple[FailureCode, ...] = ()
    audit_entry: AuditEntry | None = None

    def raise_if_blocked(self) -> None:
        if not self.advanced:
            raise IllegalTransitionError(
                self.from_stage, self.to_stage, "; ".join(self.reasons)
            )


class StageAdvanceService:
    """
    Decide and record stage advances for procurement snapshots.

    Non-goals:
        - Does NOT persist the procurement itself; the caller stores the
          returned snapshot.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        workflow: WorkflowEngine,
        validation: ValidationEngine,
        audit: AuditLogService,
        clock: Clock | None = None,
    ):
        self._workflow = workflow
        self._validation = validation
        self._audit = audit
        self._clock = clock or SystemClock()

    def advance(
        self,
        procurement: ProcurementSnapshot,
        target_stage: Stage | str,
        actor_id: str,
        stage_data: Mapping[str, Any] | None = None,
        days_in_stage: int | None = None,
    ) -> StageAdvanceOutcome:
        """Run every gate for ``procurement`` -> ``target_stage`` and audit the result."""
        if not actor_id:
            raise MissingRequiredFieldError("StageAdvance", ["actor_id"])

        current = procurement.stage
        from_label = current.value if isinstance(current, Stage) else str(current)
        to_label = target_stage.value if isinstance(target_stage, Stage) else str(target_stage)
        now = self._clock.now()
        days = days_in_stage if days_in_stage is not None else procurement.days_in_stage(now)

        with LogContext.bind(procurement_id=procurement.procurement_id, actor_id=actor_id):
            reasons: list[str] = []
            codes: list[FailureCode] = []

            transition = self._workflow.can_transition(
                current_stage=current, target_stage=target_stage
            )
            if not transition.allowed:
                reasons.append(transition.reason)
                codes.append(transition.code)

            requirements = self._workflow.validate_stage_requirements(
                stage=current, procurement=procurement
            )
            if not requirements.met_requirements:
                reasons.extend(requirements.missing_items)
                codes.append(requirements.code)

            dwell = self._workflow.can_advance_to_next_stage(
                current_stage=current, days_in_stage=days
            )
            if not dwell.can_advance and dwell.code == FailureCode.MIN_DWELL_NOT_MET:
                reasons.append(dwell.reason)
                codes.append(dwell.code)

            validation = self._validation.validate_stage(stage=current, data=stage_data or {})
            if not validation.valid and validation.code != FailureCode.UNKNOWN_STAGE:
                reasons.extend(validation.errors)
                codes.append(validation.code)

            if reasons:
                logger.warning(
                    "stage_advance_blocked",
                    extra={
                        "from_stage": from_label,
                        "to_stage": to_label,
                        "failure_codes": [c.value for c in codes],
                    },
                )
                logged = self._audit.log_event(
                    event_type=AuditEventType.ERROR_OCCURRED,
                    user_id=actor_id,
                    action=f"Stage advance from {from_label} to {to_label} blocked",
                    procurement_id=procurement.procurement_id,
                    details={
                        "from_stage": from_label,
                        "to_stage": to_label,
                        "reasons": reasons,
                        "failure_codes": [c.value for c in codes],
                    },
                    severity=Severity.WARNING,
                    timestamp=now,
                )
                return StageAdvanceOutcome(
                    advanced=False,
                    from_stage=from_label,
                    to_stage=to_label,
                    procurement=procurement,
                    reasons=tuple(reasons),
                    codes=tuple(codes),
                    audit_entry=logged.audit_entry,
                )

            moved = dataclasses.replace(
                procurement,
                stage=Stage.parse(target_stage),
                updated_at=now,
                stage_entered_at=now,
            )
            logged = self._audit.log_event(
                event_type=AuditEventType.STAGE_CHANGED,
                user_id=actor_id,
                action=f"Stage changed from {from_label} to {to_label}",
                procurement_id=procurement.procurement_id,
                details={
                    "from_stage": from_label,
                    "to_stage": to_label,
                    "days_in_stage": days,
                    "progress": self._workflow.get_progress(moved.stage).progress,
                },
                timestamp=now,
            )
            logger.info(
                "stage_advanced",
                extra={"from_stage": from_label, "to_stage": to_label},
            )
            return StageAdvanceOutcome(
                advanced=True,
                from_stage=from_label,
                to_stage=to_label,
                procurement=moved,
                audit_entry=logged.audit_entry,
            )
