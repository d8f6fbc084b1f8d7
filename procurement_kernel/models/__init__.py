"""ORM models for the procurement kernel persistence sink."""

from procurement_kernel.models.audit_entry import ArchivedAuditEntryModel, AuditEntryModel
from procurement_kernel.models.document_version import DocumentVersionModel

__all__ = [
    "ArchivedAuditEntryModel",
    "AuditEntryModel",
    "DocumentVersionModel",
]
