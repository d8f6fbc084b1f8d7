"""
procurement_engines.versioning -- Content-hashed document version chains.

Responsibility:
    Create versions of procurement documents keyed by the SHA-256 digest of
    their content, summarize line changes, classify the change from its
    reason text, and answer read-only questions over a document's version
    chain (history, comparison, statistics, integrity, approval state).

Architecture position:
    Engines -- pure calculation layer.  Takes ``Document`` snapshots and
    returns new snapshots; never mutates its inputs.  The injected Clock
    is read only when the caller supplies no timestamp.

Invariants enforced:
    - Idempotent versioning: content whose hash equals
      ``document.current_hash`` never produces a version.
    - Sequential chain: a created version is numbered
      ``document.version_number + 1``.
    - Rollback safety: only a strictly earlier, existing version is a
      valid rollback target; the document is never modified.
    - Approval is a single pending -> approved transition.

Failure modes:
    - NO_CONTENT_CHANGE, VERSION_NOT_FOUND, INVALID_ROLLBACK_TARGET,
      VERSION_ALREADY_APPROVED and VERSION_CHAIN_DEFECT are returned as
      codes on result objects; this module never raises for document data.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from procurement_engines.tracer import traced_engine
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.document import (
    ChainDefect,
    ChainValidationResult,
    ChangeDetails,
    ChangeType,
    Content,
    Document,
    IntegrityCheck,
    LineChange,
    RollbackMetadata,
    RollbackResult,
    Version,
    VersionApprovalResult,
    VersionApprovalState,
    VersionApprovalStatus,
    VersionComparison,
    VersionComparisonResult,
    VersionCreationResult,
    VersionExport,
    VersionHistoryItem,
    VersionStatistics,
)
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import content_bytes, hash_content

logger = get_logger("engines.versioning")

DEFAULT_CHANGE_REASON = "Document updated"
DEFAULT_ACTOR = "system"

# Checked in order; the first keyword found in the reason wins.
_CHANGE_KEYWORDS: tuple[tuple[tuple[str, ...], ChangeType], ...] = (
    (("correction", "fix"), ChangeType.CORRECTION),
    (("clarification",), ChangeType.CLARIFICATION),
    (("template", "format"), ChangeType.FORMATTING),
    (("approval",), ChangeType.APPROVAL),
    (("amendment", "amend"), ChangeType.AMENDMENT),
    (("minor",), ChangeType.MINOR),
)


def _as_text(content: Content | None) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def categorize_change(change_reason: str | None) -> ChangeType:
    """Classify a change from keywords in its reason; defaults to UPDATE."""
    reason = (change_reason or "").lower()
    for keywords, change_type in _CHANGE_KEYWORDS:
        if any(k in reason for k in keywords):
            return change_type
    return ChangeType.UPDATE


def detect_line_changes(old_content: Content | None, new_content: Content | None) -> ChangeDetails:
    """Line-count delta plus the 1-based positions of modified old lines.

    A line counts as modified when it differs at the same index and the old
    line is non-empty; appended lines only show up in ``lines_added``.
    """
    old_text = _as_text(old_content)
    old_lines = old_text.split("\n") if old_text else []
    new_lines = _as_text(new_content).split("\n")

    changes = tuple(
        LineChange(change_type="modified", line=i + 1)
        for i, old_line in enumerate(old_lines)
        if old_line and (i >= len(new_lines) or new_lines[i] != old_line)
    )
    return ChangeDetails(
        lines_added=max(0, len(new_lines) - len(old_lines)),
        lines_removed=max(0, len(old_lines) - len(new_lines)),
        total_changes=len(changes),
        changes=changes,
    )


class VersioningEngine:
    """
    Immutable version-chain operations over ``Document`` snapshots.

    Contract:
        Every operation takes a Document and returns either a result value
        or a new Document.  Lookups treat ``document.versions`` as the
        whole chain.
    Guarantees:
        - ``create_version`` is idempotent for identical content.
        - ``get_version_history`` and ``get_approval_status`` are ordered
          newest first.
    Non-goals:
        - No storage of content blobs; ``Version.content`` is carried only
          when the caller provides it.
        - No concurrency control; see ``DocumentVersionService``.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def generate_file_hash(self, content: Content) -> str:
        return hash_content(content)

    def verify_integrity(self, content: Content, expected_hash: str | None) -> IntegrityCheck:
        calculated = hash_content(content)
        return IntegrityCheck(
            valid=calculated == expected_hash,
            expected_hash=expected_hash,
            calculated_hash=calculated,
        )

    detect_line_changes = staticmethod(detect_line_changes)
    categorize_change = staticmethod(categorize_change)

    # ------------------------------------------------------------------
    # Chain mutation (returns new snapshots)
    # ------------------------------------------------------------------

    @traced_engine("versioning", "1.0", fingerprint_fields=("changed_by", "change_reason"))
    def create_version(
        self,
        document: Document,
        content: Content,
        changed_by: str | None = None,
        change_reason: str | None = None,
        timestamp: datetime | None = None,
        notes: str = "",
    ) -> VersionCreationResult:
        """Append a version for ``content`` unless it matches the current hash."""
        new_hash = hash_content(content)
        if document.current_hash is not None and document.current_hash == new_hash:
            return VersionCreationResult(
                created=False,
                reason="No content changes detected",
                new_hash=new_hash,
                previous_hash=document.current_hash,
                code=FailureCode.NO_CONTENT_CHANGE,
            )

        reason = change_reason or DEFAULT_CHANGE_REASON
        version = Version(
            version_number=document.version_number + 1,
            timestamp=timestamp or self._clock.now(),
            changed_by=changed_by or DEFAULT_ACTOR,
            file_hash=new_hash,
            file_size=len(content_bytes(content)),
            change_reason=reason,
            change_details=detect_line_changes(document.content, content),
            change_type=categorize_change(reason),
            notes=notes,
            content=content,
        )
        updated = dataclasses.replace(
            document,
            content=content,
            current_hash=new_hash,
            version_number=version.version_number,
            versions=document.versions + (version,),
        )

        logger.info(
            "document_version_created",
            extra={
                "document_id": document.document_id,
                "version_number": version.version_number,
                "change_type": version.change_type.value,
                "file_hash": new_hash,
            },
        )
        return VersionCreationResult(
            created=True,
            reason=reason,
            new_hash=new_hash,
            version=version,
            document=updated,
            previous_hash=document.current_hash,
        )

    def approve_version(
        self,
        document: Document,
        version_number: int,
        approved_by: str | None = None,
        approval_date: datetime | None = None,
    ) -> VersionApprovalResult:
        """Return a new Version and Document with ``version_number`` approved."""
        version = self.get_version(document, version_number)
        if version is None:
            return VersionApprovalResult(
                success=False,
                message=f"Version {version_number} not found",
                code=FailureCode.VERSION_NOT_FOUND,
            )
        if version.is_approved:
            return VersionApprovalResult(
                success=False,
                message=f"Version {version_number} is already approved",
                version=version,
                code=FailureCode.VERSION_ALREADY_APPROVED,
            )

        approved = dataclasses.replace(
            version,
            approval_status=VersionApprovalStatus.APPROVED,
            approved_by=approved_by or DEFAULT_ACTOR,
            approval_date=approval_date or self._clock.now(),
        )
        updated = dataclasses.replace(
            document,
            versions=tuple(
                approved if v.version_number == version_number else v
                for v in document.versions
            ),
        )
        return VersionApprovalResult(
            success=True,
            message=f"Version {version_number} approved",
            version=approved,
            document=updated,
        )

    @traced_engine("versioning", "1.0", fingerprint_fields=("target_version_number",))
    def rollback(
        self,
        document: Document,
        target_version_number: int,
        rolled_back_by: str | None = None,
        reason: str | None = None,
        timestamp: datetime | None = None,
    ) -> RollbackResult:
        """Resolve a rollback target; applying it is the caller's job."""
        target = self.get_version(document, target_version_number)
        if target is None:
            return RollbackResult(
                success=False,
                message=f"Version {target_version_number} not found",
                code=FailureCode.VERSION_NOT_FOUND,
            )
        if target_version_number >= document.version_number:
            return RollbackResult(
                success=False,
                message="Cannot rollback to current or future version",
                code=FailureCode.INVALID_ROLLBACK_TARGET,
            )

        return RollbackResult(
            success=True,
            message=f"Rolled back to version {target_version_number}",
            previous_version=target,
            metadata=RollbackMetadata(
                rolled_back_by=rolled_back_by or DEFAULT_ACTOR,
                reason=reason or "Manual rollback",
                timestamp=timestamp or self._clock.now(),
                from_version=document.version_number,
                to_version=target_version_number,
            ),
        )

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def get_version(self, document: Document, version_number: int) -> Version | None:
        return next(
            (v for v in document.versions if v.version_number == version_number),
            None,
        )

    def get_version_history(self, document: Document) -> tuple[VersionHistoryItem, ...]:
        ordered = sorted(document.versions, key=lambda v: v.version_number, reverse=True)
        return tuple(
            VersionHistoryItem(version=v, is_current=i == 0)
            for i, v in enumerate(ordered)
        )

    def compare_versions(
        self,
        document: Document,
        version_a: int,
        version_b: int,
    ) -> VersionComparisonResult:
        a = self.get_version(document, version_a)
        b = self.get_version(document, version_b)
        if a is None or b is None:
            return VersionComparisonResult(
                success=False,
                error="One or both versions not found",
                code=FailureCode.VERSION_NOT_FOUND,
            )
        return VersionComparisonResult(
            success=True,
            comparison=VersionComparison(
                version_a=version_a,
                version_b=version_b,
                timestamp_a=a.timestamp,
                timestamp_b=b.timestamp,
                changed_by_a=a.changed_by,
                changed_by_b=b.changed_by,
                hashes_match=a.file_hash == b.file_hash,
                change_type_a=a.change_type,
                change_type_b=b.change_type,
                change_details_a=a.change_details,
                change_details_b=b.change_details,
            ),
        )

    @traced_engine("versioning", "1.0")
    def validate_version_chain(self, document: Document) -> ChainValidationResult:
        """Check numbering is exactly 1..N and each version's mandatory fields."""
        defects: list[ChainDefect] = []

        ordered = sorted(document.versions, key=lambda v: v.version_number or 0)
        for expected, version in enumerate(ordered, start=1):
            if version.version_number != expected:
                defects.append(
                    ChainDefect(
                        version=version.version_number,
                        issue="Version numbers are not sequential",
                    )
                )

        for version in document.versions:
            missing = [
                name
                for name, value in (
                    ("version_number", version.version_number),
                    ("timestamp", version.timestamp),
                    ("file_hash", version.file_hash),
                    ("changed_by", version.changed_by),
                )
                if not value
            ]
            if missing:
                defects.append(
                    ChainDefect(
                        version=version.version_number,
                        issue=f"Missing fields: {', '.join(missing)}",
                    )
                )

        if defects:
            logger.warning(
                "version_chain_defects",
                extra={
                    "document_id": document.document_id,
                    "defect_count": len(defects),
                },
            )
        return ChainValidationResult(
            valid=not defects,
            defects=tuple(defects),
            total_versions=len(document.versions),
            code=FailureCode.VERSION_CHAIN_DEFECT if defects else None,
        )

    def get_version_statistics(self, document: Document) -> VersionStatistics:
        versions = document.versions
        if not versions:
            return VersionStatistics(total_versions=0, message="No versions found")

        total_changes = sum(v.change_details.total_changes for v in versions)
        average = int(
            (Decimal(total_changes) / Decimal(len(versions))).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        )
        return VersionStatistics(
            total_versions=len(versions),
            first_version=versions[0].timestamp,
            last_version=versions[-1].timestamp,
            change_type_breakdown=dict(Counter(v.change_type.value for v in versions)),
            contributor_breakdown=dict(Counter(v.changed_by for v in versions)),
            total_changes=total_changes,
            average_changes_per_version=average,
            versions_awaiting_approval=sum(1 for v in versions if not v.is_approved),
        )

    def get_approval_status(self, document: Document) -> tuple[VersionApprovalState, ...]:
        ordered = sorted(document.versions, key=lambda v: v.version_number, reverse=True)
        return tuple(
            VersionApprovalState(
                version_number=v.version_number,
                approval_status=v.approval_status,
                approved_by=v.approved_by,
                approval_date=v.approval_date,
                changed_by=v.changed_by,
                timestamp=v.timestamp,
            )
            for v in ordered
        )

    def export_version(self, document: Document, version_number: int) -> VersionExport:
        """Flatten one version into a serializable snapshot dict."""
        version = self.get_version(document, version_number)
        if version is None:
            return VersionExport(
                success=False,
                error=f"Version {version_number} not found",
                code=FailureCode.VERSION_NOT_FOUND,
            )

        snapshot = {
            "document_id": document.document_id,
            "document_name": document.name,
            "export_date": self._clock.now(),
        }
        snapshot.update(dataclasses.asdict(version))
        return VersionExport(success=True, snapshot=snapshot)
