"""
Document and version types (``procurement_kernel.domain.document``).

Responsibility
--------------
Immutable document snapshots, their version records, and the result types
returned by ``procurement_engines.versioning``.

Invariants enforced
-------------------
* ``Version`` is frozen.  The only permitted change to a version after
  creation is a single pending -> approved transition, expressed by
  building a *new* Version (see ``VersioningEngine.approve_version``).
* Version numbers start at 1 and are strictly sequential per document.
* ``Document.current_hash`` is the SHA-256 hex digest of
  ``Document.content``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from procurement_kernel.domain.outcomes import FailureCode

Content = str | bytes


class ChangeType(str, Enum):
    """Best-effort classification of a version change from its reason text."""

    CORRECTION = "correction"
    CLARIFICATION = "clarification"
    FORMATTING = "formatting"
    APPROVAL = "approval"
    AMENDMENT = "amendment"
    MINOR = "minor"
    UPDATE = "update"


class VersionApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


@dataclass(frozen=True)
class LineChange:
    change_type: str
    line: int


@dataclass(frozen=True)
class ChangeDetails:
    """Line-based diff summary between two contents."""

    lines_added: int = 0
    lines_removed: int = 0
    total_changes: int = 0
    changes: tuple[LineChange, ...] = ()


@dataclass(frozen=True)
class Version:
    """One immutable entry in a document's version chain."""

    version_number: int
    timestamp: datetime | None
    changed_by: str | None
    file_hash: str | None
    file_size: int = 0
    change_reason: str = "Document updated"
    change_details: ChangeDetails = field(default_factory=ChangeDetails)
    change_type: ChangeType = ChangeType.UPDATE
    approval_status: VersionApprovalStatus = VersionApprovalStatus.PENDING
    approved_by: str | None = None
    approval_date: datetime | None = None
    notes: str = ""
    content: Content | None = None

    @property
    def is_approved(self) -> bool:
        return self.approval_status == VersionApprovalStatus.APPROVED


@dataclass(frozen=True)
class Document:
    """Snapshot of a versioned procurement document."""

    document_id: str
    doc_type: str
    name: str = ""
    content: Content | None = None
    current_hash: str | None = None
    version_number: int = 0
    versions: tuple[Version, ...] = ()


# =========================================================================
# Engine results
# =========================================================================


@dataclass(frozen=True)
class VersionCreationResult:
    """Result of ``create_version``.

    When ``created`` is True, ``document`` is the updated snapshot with the
    new version appended; persisting it is the caller's job.
    """

    created: bool
    reason: str
    new_hash: str
    version: Version | None = None
    document: Document | None = None
    previous_hash: str | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class IntegrityCheck:
    valid: bool
    expected_hash: str | None
    calculated_hash: str

    @property
    def match(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class VersionHistoryItem:
    version: Version
    is_current: bool


@dataclass(frozen=True)
class RollbackMetadata:
    rolled_back_by: str
    reason: str
    timestamp: datetime
    from_version: int
    to_version: int


@dataclass(frozen=True)
class RollbackResult:
    """Result of ``rollback``.  The document itself is never modified."""

    success: bool
    message: str
    previous_version: Version | None = None
    metadata: RollbackMetadata | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class VersionComparison:
    version_a: int
    version_b: int
    timestamp_a: datetime | None
    timestamp_b: datetime | None
    changed_by_a: str | None
    changed_by_b: str | None
    hashes_match: bool
    change_type_a: ChangeType
    change_type_b: ChangeType
    change_details_a: ChangeDetails
    change_details_b: ChangeDetails


@dataclass(frozen=True)
class VersionComparisonResult:
    success: bool
    comparison: VersionComparison | None = None
    error: str | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class ChainDefect:
    version: int | None
    issue: str


@dataclass(frozen=True)
class ChainValidationResult:
    valid: bool
    defects: tuple[ChainDefect, ...]
    total_versions: int
    code: FailureCode | None = None


@dataclass(frozen=True)
class VersionStatistics:
    total_versions: int
    first_version: datetime | None = None
    last_version: datetime | None = None
    change_type_breakdown: dict[str, int] = field(default_factory=dict)
    contributor_breakdown: dict[str, int] = field(default_factory=dict)
    total_changes: int = 0
    average_changes_per_version: int = 0
    versions_awaiting_approval: int = 0
    message: str | None = None


@dataclass(frozen=True)
class VersionApprovalResult:
    """Result of ``approve_version``: new records, inputs untouched."""

    success: bool
    message: str
    version: Version | None = None
    document: Document | None = None
    code: FailureCode | None = None


@dataclass(frozen=True)
class VersionApprovalState:
    version_number: int
    approval_status: VersionApprovalStatus
    approved_by: str | None
    approval_date: datetime | None
    changed_by: str | None
    timestamp: datetime | None


@dataclass(frozen=True)
class VersionExport:
    success: bool
    snapshot: dict[str, Any] | None = None
    error: str | None = None
    code: FailureCode | None = None
