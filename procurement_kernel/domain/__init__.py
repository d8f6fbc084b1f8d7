"""
Pure domain layer.

This package contains immutable value objects for the procurement kernel
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except through the Clock interface)
- I/O
"""

from procurement_kernel.domain.audit import (
    ApprovalDecision,
    ArchiveResult,
    AuditChanges,
    AuditEntry,
    AuditEventType,
    AuditPolicy,
    AuditTrailFilter,
    ComplianceReport,
    FieldChange,
    LogEventResult,
    Severity,
    SuspiciousActivity,
)
from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.document import (
    ChangeType,
    Document,
    Version,
    VersionApprovalStatus,
)
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.domain.procurement import (
    ProcurementSnapshot,
    StageApproval,
    StageApprovalStatus,
)
from procurement_kernel.domain.stages import (
    STAGE_ORDER,
    STAGE_TRANSITIONS,
    Stage,
    StageRequirement,
)
from procurement_kernel.domain.validation import (
    FieldFormat,
    FieldType,
    PPDARequirement,
    StageRuleSet,
    ValidationRule,
)

__all__ = [
    # Stages
    "Stage",
    "StageRequirement",
    "STAGE_ORDER",
    "STAGE_TRANSITIONS",
    # Procurement
    "ProcurementSnapshot",
    "StageApproval",
    "StageApprovalStatus",
    # Documents
    "Document",
    "Version",
    "ChangeType",
    "VersionApprovalStatus",
    # Validation
    "FieldType",
    "FieldFormat",
    "ValidationRule",
    "StageRuleSet",
    "PPDARequirement",
    # Audit
    "AuditEntry",
    "AuditEventType",
    "AuditPolicy",
    "AuditChanges",
    "AuditTrailFilter",
    "FieldChange",
    "Severity",
    "ApprovalDecision",
    "LogEventResult",
    "SuspiciousActivity",
    "ComplianceReport",
    "ArchiveResult",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Outcomes
    "FailureCode",
]
