"""
DocumentVersionService -- persisted version chains for procurement documents.

Responsibility:
    Rebuilds ``Document`` snapshots from the ``document_versions`` table,
    runs the pure ``VersioningEngine`` over them, and persists the
    resulting versions and approvals.  Every successful write is recorded
    in the audit log.

Architecture position:
    Services -- imperative shell around the versioning engine.

Invariants enforced:
    - Sequential chain: a loaded chain with gaps or missing fields raises
      VersionChainDefectError instead of being used.
    - Concurrency: two writers creating the same version number collide on
      the (document_id, version_number) unique constraint; the loser gets
      DuplicateVersionError and nothing is written.
    - Rollback never rewrites history: the target's content is applied as
      a new version.

Failure modes:
    - VersionNotFoundError / InvalidRollbackTargetError for bad targets.
    - DuplicateVersionError on a concurrent insert.
    - MissingRequiredFieldError when the first version has no doc_type.

Audit relevance:
    Emits ``document_versioned`` for every new version (including
    rollbacks) and ``document_approved`` for every approval.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procurement_engines.versioning import VersioningEngine
from procurement_kernel.domain.audit import AuditEventType
from procurement_kernel.domain.document import (
    Content,
    Document,
    VersionApprovalResult,
    VersionCreationResult,
)
from procurement_kernel.domain.outcomes import FailureCode
from procurement_kernel.exceptions import (
    DuplicateVersionError,
    InvalidRollbackTargetError,
    MissingRequiredFieldError,
    VersionChainDefectError,
    VersionNotFoundError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models.document_version import DocumentVersionModel
from procurement_services.audit_log_service import AuditLogService

logger = get_logger("services.document_version")


class DocumentVersionService:
    """
    Load, version, approve and roll back persisted documents.

    Contract:
        Each public method reads the chain fresh from the session, so the
        engine always sees the committed state plus this session's writes.
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT lock rows; the unique constraint is the arbiter.
    """

    def __init__(
        self,
        session: Session,
        engine: VersioningEngine,
        audit: AuditLogService,
    ):
        self._session = session
        self._engine = engine
        self._audit = audit

    def _rows(self, document_id: str) -> list[DocumentVersionModel]:
        return list(
            self._session.execute(
                select(DocumentVersionModel)
                .where(DocumentVersionModel.document_id == document_id)
                .order_by(DocumentVersionModel.version_number)
            ).scalars()
        )

    def load_document(
        self,
        document_id: str,
        doc_type: str | None = None,
        name: str = "",
    ) -> Document:
        """Rebuild the document from its stored versions.

        A document with no versions comes back empty (version_number 0).

        Raises:
            VersionChainDefectError: the stored chain is not 1..N or a
                version lacks a mandatory field.
        """
        rows = self._rows(document_id)
        if not rows:
            return Document(document_id=document_id, doc_type=doc_type or "", name=name)

        versions = tuple(row.to_domain() for row in rows)
        latest = versions[-1]
        document = Document(
            document_id=document_id,
            doc_type=rows[-1].doc_type,
            name=rows[-1].document_name,
            content=latest.content,
            current_hash=latest.file_hash,
            version_number=latest.version_number,
            versions=versions,
        )

        chain = self._engine.validate_version_chain(document)
        if not chain.valid:
            raise VersionChainDefectError(
                document_id,
                [f"v{d.version}: {d.issue}" for d in chain.defects],
            )
        return document

    def create_version(
        self,
        document_id: str,
        content: Content,
        changed_by: str,
        change_reason: str | None = None,
        doc_type: str | None = None,
        name: str = "",
        notes: str = "",
        procurement_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> VersionCreationResult:
        """Append a version for ``content`` unless it is unchanged."""
        document = self.load_document(document_id, doc_type=doc_type, name=name)
        if not document.doc_type:
            raise MissingRequiredFieldError("Document", ["doc_type"])

        result = self._engine.create_version(
            document,
            content,
            changed_by=changed_by,
            change_reason=change_reason,
            timestamp=timestamp,
            notes=notes,
        )
        if not result.created:
            logger.info(
                "document_version_skipped",
                extra={"document_id": document_id, "reason": result.reason},
            )
            return result

        version = result.version
        self._session.add(
            DocumentVersionModel.from_domain(
                document_id, document.doc_type, document.name, version
            )
        )
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            logger.warning(
                "document_version_conflict",
                extra={
                    "document_id": document_id,
                    "version_number": version.version_number,
                },
            )
            raise DuplicateVersionError(document_id, version.version_number) from exc

        self._audit.log_event(
            event_type=AuditEventType.DOCUMENT_VERSIONED,
            user_id=changed_by,
            action=f"Document version {version.version_number} created",
            procurement_id=procurement_id,
            details={
                "document_id": document_id,
                "version_number": version.version_number,
                "file_hash": version.file_hash,
                "change_type": version.change_type.value,
                "previous_hash": result.previous_hash,
            },
            timestamp=version.timestamp,
        )
        return result

    def approve_version(
        self,
        document_id: str,
        version_number: int,
        approved_by: str,
        procurement_id: str | None = None,
    ) -> VersionApprovalResult:
        """Approve one pending version.

        Re-approving an approved version returns a failed result with
        VERSION_ALREADY_APPROVED and writes nothing.

        Raises:
            VersionNotFoundError: no such version.
        """
        document = self.load_document(document_id)
        result = self._engine.approve_version(document, version_number, approved_by)
        if result.code == FailureCode.VERSION_NOT_FOUND:
            raise VersionNotFoundError(document_id, version_number)
        if not result.success:
            return result

        row = self._session.execute(
            select(DocumentVersionModel).where(
                DocumentVersionModel.document_id == document_id,
                DocumentVersionModel.version_number == version_number,
            )
        ).scalar_one()
        row.approval_status = result.version.approval_status.value
        row.approved_by = result.version.approved_by
        row.approval_date = result.version.approval_date
        self._session.flush()

        self._audit.log_event(
            event_type=AuditEventType.DOCUMENT_APPROVED,
            user_id=approved_by,
            action=f"Document version {version_number} approved",
            procurement_id=procurement_id,
            details={"document_id": document_id, "version_number": version_number},
            timestamp=result.version.approval_date,
        )
        return result

    def rollback(
        self,
        document_id: str,
        target_version: int,
        rolled_back_by: str,
        reason: str | None = None,
        procurement_id: str | None = None,
    ) -> VersionCreationResult:
        """Restore an earlier version's content as a new version.

        Raises:
            VersionNotFoundError: the target version does not exist.
            InvalidRollbackTargetError: the target is not strictly earlier
                than the current version.
            VersionChainDefectError: the target version has no stored content.
        """
        with LogContext.bind(document_id=document_id, actor_id=rolled_back_by):
            document = self.load_document(document_id)
            result = self._engine.rollback(
                document,
                target_version,
                rolled_back_by=rolled_back_by,
                reason=reason,
            )
            if result.code == FailureCode.VERSION_NOT_FOUND:
                raise VersionNotFoundError(document_id, target_version)
            if result.code == FailureCode.INVALID_ROLLBACK_TARGET:
                raise InvalidRollbackTargetError(
                    document_id, document.version_number, target_version
                )

            content = result.previous_version.content
            if content is None:
                raise VersionChainDefectError(
                    document_id, [f"v{target_version}: content not stored"]
                )

            logger.info(
                "document_rollback_applied",
                extra={
                    "from_version": result.metadata.from_version,
                    "to_version": result.metadata.to_version,
                    "reason": result.metadata.reason,
                },
            )
            return self.create_version(
                document_id,
                content,
                changed_by=rolled_back_by,
                change_reason=f"Rollback to version {target_version}",
                notes=result.metadata.reason,
                procurement_id=procurement_id,
                timestamp=result.metadata.timestamp,
            )
