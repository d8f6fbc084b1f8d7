"""
Audit trail types (``procurement_kernel.domain.audit``).

Responsibility
--------------
Pure value objects for the append-only procurement audit log: the fixed
event-type and severity enums, the immutable ``AuditEntry``, the audit
policy injected from configuration, and the result objects returned by
``procurement_engines.audit``.

Invariants enforced
-------------------
* ``AuditEntry`` is frozen; the log is append-only.  The only way an
  entry leaves the log is archival by cutoff date, which moves whole
  entries and never edits one.
* ``entry_id`` is a UUID4, unique under concurrent writers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from procurement_kernel.domain.outcomes import FailureCode


class AuditEventType(str, Enum):
    """Every kind of action the audit log records."""

    PROCUREMENT_CREATED = "procurement_created"
    PROCUREMENT_UPDATED = "procurement_updated"
    STAGE_CHANGED = "stage_changed"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_UPDATED = "document_updated"
    DOCUMENT_APPROVED = "document_approved"
    DOCUMENT_REJECTED = "document_rejected"
    DOCUMENT_VERSIONED = "document_versioned"
    EVALUATION_SUBMITTED = "evaluation_submitted"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_GIVEN = "approval_given"
    APPROVAL_REJECTED = "approval_rejected"
    AWARD_DECIDED = "award_decided"
    CONTRACT_LINKED = "contract_linked"
    CLARIFICATION_POSTED = "clarification_posted"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    PERMISSION_CHANGED = "permission_changed"
    ERROR_OCCURRED = "error_occurred"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ApprovalDecision(str, Enum):
    """Decisions an approver can record against a procurement."""

    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"


@dataclass(frozen=True)
class FieldChange:
    before: Any
    after: Any


@dataclass(frozen=True)
class AuditChanges:
    """Before/after snapshot attached to an entry."""

    before: dict[str, Any]
    after: dict[str, Any]
    differences: dict[str, FieldChange] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditEntry:
    """One immutable audit log record."""

    entry_id: UUID
    timestamp: datetime
    event_type: AuditEventType
    user_id: str
    action: str
    procurement_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.INFO
    changes: AuditChanges | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuditPolicy:
    """Static audit configuration.

    ``critical_fields``: a change to any of these escalates a document-change
    entry to CRITICAL.  ``mandatory_events``: event types every compliant
    procurement trail must contain.
    """

    critical_fields: tuple[str, ...] = (
        "status",
        "procurement_type",
        "estimated_budget",
        "evaluation_criteria",
    )
    mandatory_events: tuple[AuditEventType, ...] = (
        AuditEventType.PROCUREMENT_CREATED,
        AuditEventType.DOCUMENT_UPLOADED,
        AuditEventType.EVALUATION_SUBMITTED,
        AuditEventType.APPROVAL_GIVEN,
        AuditEventType.AWARD_DECIDED,
    )
    suspicious_window_minutes: int = 60
    suspicious_action_threshold: int = 20


# =========================================================================
# Engine results
# =========================================================================


@dataclass(frozen=True)
class LogEventResult:
    success: bool
    audit_entry: AuditEntry | None = None
    error: str | None = None
    missing_fields: tuple[str, ...] = ()
    code: FailureCode | None = None


@dataclass(frozen=True)
class AuditTrailFilter:
    """Optional trail filters; date bounds are inclusive."""

    event_type: AuditEventType | None = None
    user_id: str | None = None
    severity: Severity | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass(frozen=True)
class UserActivitySummary:
    user_id: str
    total_actions: int
    first_activity: datetime | None = None
    last_activity: datetime | None = None
    procurements_involved: int = 0
    event_breakdown: dict[str, int] = field(default_factory=dict)
    message: str | None = None


@dataclass(frozen=True)
class SuspiciousActivity:
    """One burst of actions by a single user inside the time window."""

    user_id: str
    time_window_minutes: int
    action_count: int
    threshold: int
    actions: tuple[AuditEntry, ...]
    risk_level: str = "high"

    @property
    def time_window(self) -> str:
        return f"{self.time_window_minutes} minutes"


@dataclass(frozen=True)
class TimelineSpan:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ComplianceReport:
    procurement_id: str
    total_audit_events: int
    compliant: bool
    missing_required_events: tuple[AuditEventType, ...] = ()
    approval_count: int = 0
    rejection_count: int = 0
    unique_users: int = 0
    timeline_span: TimelineSpan | None = None
    event_summary: dict[str, int] = field(default_factory=dict)
    message: str | None = None


@dataclass(frozen=True)
class ArchiveResult:
    """Pure partition of a log around a cutoff."""

    archived: tuple[AuditEntry, ...]
    remaining: tuple[AuditEntry, ...]

    @property
    def archived_count(self) -> int:
        return len(self.archived)

    @property
    def remaining_count(self) -> int:
        return len(self.remaining)


@dataclass(frozen=True)
class AuditExport:
    format: str
    data: Any
    timestamp: datetime
    record_count: int
