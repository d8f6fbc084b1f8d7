"""
Procurement aggregate snapshot (``procurement_kernel.domain.procurement``).

The procurement record itself is owned by the caller's persistence layer.
The kernel only reads a frozen snapshot of it: which stage it is in, which
documents have been attached, and which approvals have been given.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from procurement_kernel.domain.document import Document
from procurement_kernel.domain.stages import Stage


class StageApprovalStatus(str, Enum):
    """Status of a stage-gating approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class StageApproval:
    """A single approval recorded against a procurement (e.g. plan_approval)."""

    approval_type: str
    status: StageApprovalStatus = StageApprovalStatus.PENDING
    approved_by: str | None = None
    decided_at: datetime | None = None

    @property
    def is_approved(self) -> bool:
        return self.status == StageApprovalStatus.APPROVED


@dataclass(frozen=True)
class ProcurementSnapshot:
    """Read-only view of a procurement handed to the engines."""

    procurement_id: str
    stage: Stage
    documents: tuple[Document, ...] = ()
    approvals: tuple[StageApproval, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    stage_entered_at: datetime | None = None

    @property
    def document_types(self) -> tuple[str, ...]:
        return tuple(d.doc_type for d in self.documents)

    @property
    def approved_types(self) -> tuple[str, ...]:
        return tuple(a.approval_type for a in self.approvals if a.is_approved)

    def days_in_stage(self, as_of: datetime) -> int:
        """Whole days elapsed since the procurement entered its stage."""
        if self.stage_entered_at is None:
            return 0
        return max(0, (as_of - self.stage_entered_at).days)
