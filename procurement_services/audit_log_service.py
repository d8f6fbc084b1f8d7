"""
AuditLogService -- persistence sink for the procurement audit log.

Responsibility:
    Builds audit entries through ``AuditEngine`` and appends them to the
    ``audit_entries`` table; loads the log back as frozen ``AuditEntry``
    values for the engine's read-only queries; moves entries older than a
    cutoff into the archive table.

Architecture position:
    Services -- imperative shell around the pure audit engine.
    Called by DocumentVersionService and StageAdvanceService.

Invariants enforced:
    - Append-only: rows are inserted, never updated.  The only deletion
      path is ``archive_before``, which copies each row to the archive
      table in the same flush.
    - An entry is persisted only when the engine reports success.

Failure modes:
    - ImmutabilityViolationError from the ORM listeners on any other
      update or delete attempt.

Audit relevance:
    This IS the audit sink.  Every persisted procurement action flows
    through ``record()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_engines.audit import AuditEngine
from procurement_kernel.db.immutability import archival_scope
from procurement_kernel.domain.audit import (
    ArchiveResult,
    AuditEntry,
    AuditTrailFilter,
    ComplianceReport,
    LogEventResult,
    SuspiciousActivity,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.audit_entry import ArchivedAuditEntryModel, AuditEntryModel

logger = get_logger("services.audit_log")


class AuditLogService:
    """
    Append-only store for ``AuditEntry`` records.

    Contract:
        ``log_event`` accepts the same arguments as
        ``AuditEngine.log_event`` and persists the entry it builds.
    Guarantees:
        - ``load_log`` returns entries oldest first.
        - ``archive_before`` is lossless: archived + remaining equals the
          log before the call.
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        engine: AuditEngine,
        clock: Clock | None = None,
    ):
        self._session = session
        self._engine = engine
        self._clock = clock or SystemClock()

    @property
    def engine(self) -> AuditEngine:
        return self._engine

    def record(self, entry: AuditEntry) -> AuditEntry:
        """Append an already-built entry to the log."""
        self._session.add(AuditEntryModel.from_domain(entry))
        self._session.flush()
        logger.info(
            "audit_entry_recorded",
            extra={
                "entry_id": str(entry.entry_id),
                "event_type": entry.event_type.value,
                "procurement_id": entry.procurement_id,
                "severity": entry.severity.value,
            },
        )
        return entry

    def log_event(self, **kwargs: Any) -> LogEventResult:
        """Build an entry with the engine and persist it on success."""
        kwargs.setdefault("timestamp", self._clock.now())
        result = self._engine.log_event(**kwargs)
        if result.success:
            self.record(result.audit_entry)
        else:
            logger.warning(
                "audit_entry_rejected",
                extra={"error": result.error, "missing_fields": list(result.missing_fields)},
            )
        return result

    def persist_result(self, result: LogEventResult) -> LogEventResult:
        """Persist the entry carried by an engine result, if any."""
        if result.success:
            self.record(result.audit_entry)
        return result

    def load_log(self, procurement_id: str | None = None) -> tuple[AuditEntry, ...]:
        stmt = select(AuditEntryModel).order_by(AuditEntryModel.occurred_at)
        if procurement_id is not None:
            stmt = stmt.where(AuditEntryModel.procurement_id == procurement_id)
        rows = self._session.execute(stmt).scalars().all()
        return tuple(row.to_domain() for row in rows)

    def load_archive(self) -> tuple[AuditEntry, ...]:
        rows = self._session.execute(
            select(ArchivedAuditEntryModel).order_by(ArchivedAuditEntryModel.occurred_at)
        ).scalars().all()
        return tuple(row.to_domain() for row in rows)

    def audit_trail(
        self,
        procurement_id: str,
        filters: AuditTrailFilter | None = None,
    ) -> tuple[AuditEntry, ...]:
        return self._engine.get_audit_trail(
            procurement_id, self.load_log(procurement_id), filters
        )

    def compliance_report(self, procurement_id: str) -> ComplianceReport:
        return self._engine.generate_compliance_report(
            log=self.load_log(procurement_id),
            procurement_id=procurement_id,
        )

    def suspicious_activity(self) -> tuple[SuspiciousActivity, ...]:
        return self._engine.detect_suspicious_activity(log=self.load_log())

    def archive_before(self, cutoff: datetime) -> ArchiveResult:
        """Move every entry strictly older than ``cutoff`` to the archive table."""
        partition = self._engine.archive_old_entries(self.load_log(), cutoff)
        if not partition.archived:
            return partition

        archived_ids = [e.entry_id for e in partition.archived]
        rows = self._session.execute(
            select(AuditEntryModel).where(AuditEntryModel.id.in_(archived_ids))
        ).scalars().all()

        archived_at = self._clock.now()
        with archival_scope(self._session):
            for row in rows:
                self._session.add(ArchivedAuditEntryModel.from_live(row, archived_at))
                self._session.delete(row)
            self._session.flush()

        logger.info(
            "audit_entries_archived",
            extra={
                "cutoff": cutoff.isoformat(),
                "archived_count": partition.archived_count,
                "remaining_count": partition.remaining_count,
            },
        )
        return partition
