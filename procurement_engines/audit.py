"""
procurement_engines.audit -- Append-only audit log construction and analytics.

Responsibility:
    Build immutable ``AuditEntry`` records for procurement actions, derive
    before/after diffs for document changes, and answer read-only questions
    over an audit log passed in by the caller: filtered trails, per-user
    activity, burst detection, compliance reports, archival partitions and
    exports.

Architecture position:
    Engines -- pure calculation layer.  The log itself is owned and
    persisted by the caller (see ``procurement_services.audit_log_service``).
    The injected Clock is read only when the caller supplies no timestamp.

Invariants enforced:
    - Append-only: no operation mutates the log it is given; every
      query returns a new tuple.
    - ``log_event`` never raises for missing data; it returns a failed
      ``LogEventResult`` naming every missing field.
    - A document change touching any configured critical field is
      logged as CRITICAL.
    - Burst detection reports each cluster once and resumes the scan
      after it.
    - Timestamps, filter bounds and cutoffs compare as aware UTC; a naive
      value is read as UTC.

Failure modes:
    - MISSING_REQUIRED_FIELD when event_type, user_id or action is absent.
    - VALIDATION_VIOLATION for an event type outside ``AuditEventType``.
"""

from __future__ import annotations

import csv
import io
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.audit import (
    ApprovalDecision,
    ArchiveResult,
    AuditChanges,
    AuditEntry,
    AuditEventType,
    AuditExport,
    AuditPolicy,
    AuditTrailFilter,
    ComplianceReport,
    FieldChange,
    LogEventResult,
    Severity,
    SuspiciousActivity,
    TimelineSpan,
    UserActivitySummary,
)
from procurement_kernel.domain.clock import Clock, SystemClock, as_utc
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import canonicalize_json

logger = get_logger("engines.audit")

_CSV_HEADERS = ("Timestamp", "Event Type", "User ID", "Procurement ID", "Action", "Severity")

_DECISION_EVENTS: dict[ApprovalDecision, AuditEventType] = {
    ApprovalDecision.APPROVED: AuditEventType.APPROVAL_GIVEN,
    ApprovalDecision.REJECTED: AuditEventType.APPROVAL_REJECTED,
    ApprovalDecision.CHANGES_REQUESTED: AuditEventType.APPROVAL_REQUESTED,
}


def detect_changes(
    before: Mapping[str, Any] | None,
    after: Mapping[str, Any] | None,
) -> dict[str, FieldChange]:
    """Field-level diff: a field changed iff its canonical JSON differs.

    Keys are reported in first-seen order (``before`` keys, then keys only
    present in ``after``).
    """
    before = before or {}
    after = after or {}
    keys = list(before)
    keys.extend(k for k in after if k not in before)

    changes: dict[str, FieldChange] = {}
    for key in keys:
        old, new = before.get(key), after.get(key)
        if canonicalize_json(old) != canonicalize_json(new):
            changes[key] = FieldChange(before=old, after=new)
    return changes


class AuditEngine:
    """
    Audit entry factory and audit-log analytics.

    Contract:
        Holds only the immutable ``AuditPolicy`` and a Clock.  All log
        state is passed in and returned.
    Guarantees:
        - ``get_audit_trail`` output is sorted newest first and contains
          only entries matching every supplied filter.
        - ``archive_old_entries`` partitions without loss: every input
          entry lands in exactly one side.
    Non-goals:
        - Not a streaming detector; burst detection is an O(n^2) scan per
          user, fine at audit-log scale.
    """

    def __init__(
        self,
        policy: AuditPolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._policy = policy or AuditPolicy()
        self._clock = clock or SystemClock()

    @property
    def policy(self) -> AuditPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Entry construction
    # ------------------------------------------------------------------

    @traced_engine("audit", "1.0", fingerprint_fields=("event_type", "user_id", "procurement_id"))
    def log_event(
        self,
        event_type: AuditEventType | str | None = None,
        user_id: str | None = None,
        action: str | None = None,
        procurement_id: str | None = None,
        details: Mapping[str, Any] | None = None,
        severity: Severity | str | None = None,
        changes: AuditChanges | None = None,
        timestamp: datetime | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LogEventResult:
        """Build a new audit entry, or report which required fields are missing."""
        supplied = {"event_type": event_type, "user_id": user_id, "action": action}
        missing = tuple(name for name, value in supplied.items() if not value)
        if missing:
            return LogEventResult(
                success=False,
                error=f"Missing required fields: {', '.join(missing)}",
                missing_fields=missing,
                code=FailureCode.MISSING_REQUIRED_FIELD,
            )

        try:
            parsed_type = AuditEventType(event_type)
            parsed_severity = Severity(severity) if severity else Severity.INFO
        except ValueError as exc:
            return LogEventResult(
                success=False,
                error=str(exc),
                code=FailureCode.VALIDATION_VIOLATION,
            )

        entry = AuditEntry(
            entry_id=uuid4(),
            timestamp=as_utc(timestamp or self._clock.now()),
            event_type=parsed_type,
            user_id=user_id,
            action=action,
            procurement_id=procurement_id,
            details=dict(details or {}),
            severity=parsed_severity,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return LogEventResult(success=True, audit_entry=entry)

    def determine_severity(self, changes: Mapping[str, FieldChange]) -> Severity:
        for name in self._policy.critical_fields:
            if name in changes:
                return Severity.CRITICAL
        return Severity.INFO

    def track_document_change(
        self,
        procurement_id: str,
        document_id: str,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
        user_id: str,
        timestamp: datetime | None = None,
    ) -> LogEventResult:
        """Log a document update with its structural diff."""
        differences = detect_changes(before, after)
        severity = self.determine_severity(differences)
        if severity == Severity.CRITICAL:
            logger.warning(
                "critical_field_changed",
                extra={
                    "procurement_id": procurement_id,
                    "document_id": document_id,
                    "changed_fields": list(differences),
                },
            )
        return self.log_event(
            event_type=AuditEventType.DOCUMENT_UPDATED,
            user_id=user_id,
            action="Document updated",
            procurement_id=procurement_id,
            details={
                "document_id": document_id,
                "change_count": len(differences),
                "changed_fields": list(differences),
            },
            changes=AuditChanges(
                before=dict(before or {}),
                after=dict(after or {}),
                differences=differences,
            ),
            severity=severity,
            timestamp=timestamp,
        )

    def record_approval(
        self,
        procurement_id: str,
        approver_id: str,
        decision: ApprovalDecision | str,
        reason: str | None = None,
        comments: str | None = None,
        timestamp: datetime | None = None,
    ) -> LogEventResult:
        """Log an approval decision; rejections are WARNING severity."""
        try:
            parsed = ApprovalDecision(decision)
        except ValueError:
            parsed = None
        event_type = _DECISION_EVENTS.get(parsed, AuditEventType.APPROVAL_REQUESTED)
        label = parsed.value if parsed is not None else str(decision)

        return self.log_event(
            event_type=event_type,
            user_id=approver_id,
            action=f"Approval {label}",
            procurement_id=procurement_id,
            details={
                "decision": label,
                "approver": approver_id,
                "reason": reason,
                "comments": comments,
            },
            severity=Severity.WARNING if parsed == ApprovalDecision.REJECTED else Severity.INFO,
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # Queries (never mutate the log)
    # ------------------------------------------------------------------

    def get_audit_trail(
        self,
        procurement_id: str | None,
        log: Iterable[AuditEntry],
        filters: AuditTrailFilter | None = None,
    ) -> tuple[AuditEntry, ...]:
        """Entries for ``procurement_id`` matching ``filters``, newest first.

        ``procurement_id=None`` applies the filters to the whole log.
        """
        f = filters or AuditTrailFilter()
        start = as_utc(f.start_date) if f.start_date is not None else None
        end = as_utc(f.end_date) if f.end_date is not None else None
        trail = [
            e for e in log
            if (procurement_id is None or e.procurement_id == procurement_id)
            and (f.event_type is None or e.event_type == f.event_type)
            and (f.user_id is None or e.user_id == f.user_id)
            and (f.severity is None or e.severity == f.severity)
            and (start is None or as_utc(e.timestamp) >= start)
            and (end is None or as_utc(e.timestamp) <= end)
        ]
        return tuple(sorted(trail, key=lambda e: as_utc(e.timestamp), reverse=True))

    def get_user_activity_summary(
        self,
        log: Iterable[AuditEntry],
        user_id: str,
    ) -> UserActivitySummary:
        events = [e for e in log if e.user_id == user_id]
        if not events:
            return UserActivitySummary(
                user_id=user_id,
                total_actions=0,
                message="No activity found",
            )

        timestamps = [as_utc(e.timestamp) for e in events]
        breakdown = Counter(e.event_type.value for e in events)
        procurements = {e.procurement_id for e in events if e.procurement_id}
        return UserActivitySummary(
            user_id=user_id,
            total_actions=len(events),
            first_activity=min(timestamps),
            last_activity=max(timestamps),
            procurements_involved=len(procurements),
            event_breakdown=dict(breakdown),
        )

    @traced_engine("audit", "1.0", fingerprint_fields=("time_window_minutes", "action_threshold"))
    def detect_suspicious_activity(
        self,
        log: Iterable[AuditEntry],
        time_window_minutes: int | None = None,
        action_threshold: int | None = None,
    ) -> tuple[SuspiciousActivity, ...]:
        """Report bursts of ``action_threshold``+ actions by one user.

        A burst is every action within ``time_window_minutes`` of the
        window's first action.  After a burst is reported the scan jumps
        past it, so one burst is never reported twice.
        """
        window_minutes = time_window_minutes or self._policy.suspicious_window_minutes
        threshold = action_threshold or self._policy.suspicious_action_threshold
        window = timedelta(minutes=window_minutes)

        by_user: dict[str, list[AuditEntry]] = defaultdict(list)
        for entry in log:
            by_user[entry.user_id].append(entry)

        suspicious: list[SuspiciousActivity] = []
        for user_id, entries in by_user.items():
            actions = sorted(entries, key=lambda e: as_utc(e.timestamp))
            i = 0
            while i < len(actions):
                start = as_utc(actions[i].timestamp)
                j = i + 1
                while j < len(actions) and as_utc(actions[j].timestamp) - start <= window:
                    j += 1
                count = j - i
                if count >= threshold:
                    suspicious.append(
                        SuspiciousActivity(
                            user_id=user_id,
                            time_window_minutes=window_minutes,
                            action_count=count,
                            threshold=threshold,
                            actions=tuple(actions[i:j]),
                        )
                    )
                    i = j
                else:
                    i += 1

        if suspicious:
            logger.warning(
                "suspicious_activity_detected",
                extra={
                    "burst_count": len(suspicious),
                    "users": sorted({s.user_id for s in suspicious}),
                },
            )
        return tuple(suspicious)

    @traced_engine("audit", "1.0", fingerprint_fields=("procurement_id",))
    def generate_compliance_report(
        self,
        log: Iterable[AuditEntry],
        procurement_id: str,
    ) -> ComplianceReport:
        """Check the trail for every mandatory event type."""
        trail = self.get_audit_trail(procurement_id, log)
        if not trail:
            return ComplianceReport(
                procurement_id=procurement_id,
                total_audit_events=0,
                compliant=False,
                missing_required_events=self._policy.mandatory_events,
                message="No audit trail found",
            )

        present = {e.event_type for e in trail}
        missing = tuple(t for t in self._policy.mandatory_events if t not in present)
        approvals = [
            e for e in trail
            if e.event_type in (AuditEventType.APPROVAL_GIVEN, AuditEventType.APPROVAL_REJECTED)
        ]
        rejections = [e for e in approvals if e.event_type == AuditEventType.APPROVAL_REJECTED]

        return ComplianceReport(
            procurement_id=procurement_id,
            total_audit_events=len(trail),
            compliant=not missing,
            missing_required_events=missing,
            approval_count=len(approvals),
            rejection_count=len(rejections),
            unique_users=len({e.user_id for e in trail}),
            timeline_span=TimelineSpan(
                start=as_utc(trail[-1].timestamp),
                end=as_utc(trail[0].timestamp),
            ),
            event_summary=dict(Counter(e.event_type.value for e in trail)),
        )

    def archive_old_entries(
        self,
        log: Iterable[AuditEntry],
        before: datetime,
    ) -> ArchiveResult:
        """Partition into strictly-before-cutoff and on-or-after-cutoff."""
        entries = tuple(log)
        cutoff = as_utc(before)
        return ArchiveResult(
            archived=tuple(e for e in entries if as_utc(e.timestamp) < cutoff),
            remaining=tuple(e for e in entries if as_utc(e.timestamp) >= cutoff),
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_report(
        self,
        log: Sequence[AuditEntry],
        format: str = "json",
        filters: AuditTrailFilter | None = None,
    ) -> AuditExport:
        """Export the log (optionally filtered) as entries or CSV text."""
        report = (
            self.get_audit_trail(None, log, filters) if filters is not None else tuple(log)
        )
        now = self._clock.now()
        if format == "csv":
            return AuditExport(
                format="csv",
                data=entries_to_csv(report),
                timestamp=now,
                record_count=len(report),
            )
        return AuditExport(format="json", data=report, timestamp=now, record_count=len(report))


def entries_to_csv(entries: Sequence[AuditEntry]) -> str:
    if not entries:
        return "No data"
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(_CSV_HEADERS)
    for e in entries:
        writer.writerow([
            e.timestamp.isoformat(),
            e.event_type.value,
            e.user_id,
            e.procurement_id or "N/A",
            e.action,
            e.severity.value,
        ])
    return buffer.getvalue().rstrip("\n")
