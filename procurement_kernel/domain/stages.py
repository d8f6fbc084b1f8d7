"""
Stage types (``procurement_kernel.domain.stages``).

Responsibility
--------------
The fixed, ordered procurement stage sequence, its static adjacency map,
and the immutable per-stage requirement record.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Stage order is fixed: planning -> template -> rfq -> clarification ->
  submission -> evaluation -> approval -> award.
* ``STAGE_TRANSITIONS`` allows exactly the next stage; ``award`` is
  terminal and has no outgoing edge.
* ``StageRequirement`` is frozen and never mutated at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from procurement_kernel.exceptions import UnknownStageError


class Stage(str, Enum):
    """Procurement lifecycle stages, declared in lifecycle order."""

    PLANNING = "planning"
    TEMPLATE = "template"
    RFQ = "rfq"
    CLARIFICATION = "clarification"
    SUBMISSION = "submission"
    EVALUATION = "evaluation"
    APPROVAL = "approval"
    AWARD = "award"

    @classmethod
    def parse(cls, value: Stage | str) -> Stage:
        """Coerce a stage name to ``Stage``.

        Raises:
            UnknownStageError: if ``value`` names no stage.
        """
        if isinstance(value, Stage):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownStageError(str(value)) from None

    @classmethod
    def try_parse(cls, value: Stage | str | None) -> Stage | None:
        """Like ``parse`` but returns None for unknown names."""
        if value is None:
            return None
        try:
            return cls.parse(value)
        except UnknownStageError:
            return None

    @property
    def index(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)

INITIAL_STAGE: Stage = Stage.PLANNING
TERMINAL_STAGE: Stage = Stage.AWARD

STAGE_TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    stage: (
        frozenset({STAGE_ORDER[i + 1]}) if i + 1 < len(STAGE_ORDER) else frozenset()
    )
    for i, stage in enumerate(STAGE_ORDER)
}


@dataclass(frozen=True)
class StageRequirement:
    """What must be in place before a procurement may leave ``stage``.

    ``progress`` is the completion percentage shown once the stage is
    reached.  ``min_days`` is the minimum dwell time in the stage.
    """

    stage: Stage
    description: str
    required_documents: tuple[str, ...] = ()
    required_approvals: tuple[str, ...] = ()
    min_days: int = 0
    progress: int = 0
