"""
Module: procurement_kernel.models.audit_entry
Responsibility: ORM persistence for the append-only procurement audit log and
    its archive.
Architecture position: Kernel > Models.  May import from db/base.py, domain/
    and utils/ only.

Invariants enforced:
    - Audit rows are append-only: no UPDATE ever, and DELETE only while an
      archival scope is open (see db/immutability.py).
    - The primary key is the domain ``entry_id`` (UUID4), so a row keeps its
      identity when it moves to the archive table.

Audit relevance:
    AuditEntryModel IS the persisted audit trail.  ArchivedAuditEntryModel
    holds entries moved out by cutoff date; together they are lossless.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.domain.audit import (
    AuditChanges,
    AuditEntry,
    AuditEventType,
    FieldChange,
    Severity,
)
from procurement_kernel.utils.hashing import canonicalize_json


def _json_safe(value: Any) -> Any:
    return json.loads(canonicalize_json(value))


def _changes_from_json(data: dict | None) -> AuditChanges | None:
    if data is None:
        return None
    return AuditChanges(
        before=data.get("before") or {},
        after=data.get("after") or {},
        differences={
            name: FieldChange(before=diff.get("before"), after=diff.get("after"))
            for name, diff in (data.get("differences") or {}).items()
        },
    )


class _AuditEntryColumns:
    """Columns shared by the live and archive tables."""

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(500), nullable=False)
    procurement_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    changes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @classmethod
    def from_domain(cls, entry: AuditEntry):
        """Create a row from a domain entry, ready for session.add()."""
        return cls(
            id=entry.entry_id,
            occurred_at=entry.timestamp,
            event_type=entry.event_type.value,
            user_id=entry.user_id,
            action=entry.action,
            procurement_id=entry.procurement_id,
            severity=entry.severity.value,
            details=_json_safe(entry.details) if entry.details else None,
            changes=_json_safe(entry.changes) if entry.changes is not None else None,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )

    def to_domain(self) -> AuditEntry:
        """Convert the row back to a frozen ``AuditEntry``.

        Raises: ValueError if a stored event type or severity is not a
            valid enum member.
        """
        return AuditEntry(
            entry_id=self.id,
            timestamp=self.occurred_at,
            event_type=AuditEventType(self.event_type),
            user_id=self.user_id,
            action=self.action,
            procurement_id=self.procurement_id,
            details=dict(self.details or {}),
            severity=Severity(self.severity),
            changes=_changes_from_json(self.changes),
            ip_address=self.ip_address,
            user_agent=self.user_agent,
        )


class AuditEntryModel(_AuditEntryColumns, Base):
    """
    Live audit log row.

    Contract:
        Rows are inserted once and never updated.  Deletion happens only
        when ``AuditLogService.archive_before`` moves rows to the archive.
    """

    __tablename__ = "audit_entries"

    __table_args__ = (
        Index("idx_audit_entry_procurement", "procurement_id"),
        Index("idx_audit_entry_user", "user_id"),
        Index("idx_audit_entry_occurred", "occurred_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditEntry {self.event_type} by {self.user_id} at {self.occurred_at}>"


class ArchivedAuditEntryModel(_AuditEntryColumns, Base):
    """Audit log row moved out of the live table by cutoff date."""

    __tablename__ = "audit_entries_archive"

    __table_args__ = (
        Index("idx_audit_archive_procurement", "procurement_id"),
        Index("idx_audit_archive_occurred", "occurred_at"),
    )

    archived_at: Mapped[datetime] = mapped_column(nullable=False)

    @classmethod
    def from_live(cls, row: AuditEntryModel, archived_at: datetime) -> ArchivedAuditEntryModel:
        archived = cls.from_domain(row.to_domain())
        archived.archived_at = archived_at
        return archived
