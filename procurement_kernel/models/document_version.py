"""
Module: procurement_kernel.models.document_version
Responsibility: ORM persistence for document version chains.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - (document_id, version_number) is unique; concurrent writers creating
      the same version collide with an IntegrityError.
    - Rows are never deleted.  The only permitted UPDATE is the single
      pending -> approved transition (see db/immutability.py).

Failure modes:
    - IntegrityError on duplicate (document_id, version_number); translated
      to DuplicateVersionError by DocumentVersionService.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Index, LargeBinary, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.domain.document import (
    ChangeDetails,
    ChangeType,
    Content,
    LineChange,
    Version,
    VersionApprovalStatus,
)


class DocumentVersionModel(Base):
    """
    One persisted version of a procurement document.

    Contract:
        Document-level fields (``doc_type``, ``document_name``) are repeated
        on every row so a document can be rebuilt from its versions alone.
    """

    __tablename__ = "document_versions"

    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_version"),
        Index("idx_document_version_document", "document_id"),
    )

    document_id: Mapped[str] = mapped_column(String(100), nullable=False)
    doc_type: Mapped[str] = mapped_column(String(100), nullable=False)
    document_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    version_number: Mapped[int] = mapped_column(nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    changed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    file_size: Mapped[int] = mapped_column(nullable=False, default=0)
    change_reason: Mapped[str] = mapped_column(String(500), nullable=False)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    change_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    content_is_text: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<DocumentVersion {self.document_id} v{self.version_number} "
            f"{self.approval_status}>"
        )

    @classmethod
    def from_domain(
        cls,
        document_id: str,
        doc_type: str,
        document_name: str,
        version: Version,
    ) -> DocumentVersionModel:
        """Create a row for ``version``, ready for session.add()."""
        content = version.content
        details = version.change_details
        return cls(
            document_id=document_id,
            doc_type=doc_type,
            document_name=document_name,
            version_number=version.version_number,
            occurred_at=version.timestamp,
            changed_by=version.changed_by,
            file_hash=version.file_hash,
            file_size=version.file_size,
            change_reason=version.change_reason,
            change_type=version.change_type.value,
            change_details={
                "lines_added": details.lines_added,
                "lines_removed": details.lines_removed,
                "total_changes": details.total_changes,
                "changes": [
                    {"type": c.change_type, "line": c.line} for c in details.changes
                ],
            },
            approval_status=version.approval_status.value,
            approved_by=version.approved_by,
            approval_date=version.approval_date,
            notes=version.notes,
            content=content.encode("utf-8") if isinstance(content, str) else content,
            content_is_text=not isinstance(content, bytes),
        )

    def stored_content(self) -> Content | None:
        if self.content is None:
            return None
        return self.content.decode("utf-8") if self.content_is_text else self.content

    def to_domain(self) -> Version:
        details = self.change_details or {}
        return Version(
            version_number=self.version_number,
            timestamp=self.occurred_at,
            changed_by=self.changed_by,
            file_hash=self.file_hash,
            file_size=self.file_size,
            change_reason=self.change_reason,
            change_details=ChangeDetails(
                lines_added=details.get("lines_added", 0),
                lines_removed=details.get("lines_removed", 0),
                total_changes=details.get("total_changes", 0),
                changes=tuple(
                    LineChange(change_type=c["type"], line=c["line"])
                    for c in details.get("changes", ())
                ),
            ),
            change_type=ChangeType(self.change_type),
            approval_status=VersionApprovalStatus(self.approval_status),
            approved_by=self.approved_by,
            approval_date=self.approval_date,
            notes=self.notes,
            content=self.stored_content(),
        )
