"""
Append-only persistence tests for audit entries and document versions.

Verifies:
- AuditEntryModel rows are never updated
- AuditEntryModel rows are deleted only inside archival_scope()
- ArchivedAuditEntryModel rows are never updated or deleted
- DocumentVersionModel rows are never deleted
- DocumentVersionModel permits exactly one change: pending -> approved
- Listener registration is idempotent and reversible
"""

from contextlib import contextmanager
from datetime import UTC, datetime

import pytest
from sqlalchemy import event, select

from procurement_kernel.db.immutability import (
    archival_scope,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from procurement_kernel.domain.audit import AuditEventType
from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.models.audit_entry import ArchivedAuditEntryModel, AuditEntryModel
from procurement_kernel.models.document_version import DocumentVersionModel

pytestmark = pytest.mark.db

LATER = datetime(2024, 2, 1, tzinfo=UTC)


@contextmanager
def disabled_immutability():
    """Disable ORM immutability listeners for simulated tampering."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


# =========================================================================
# Factory helpers
# =========================================================================


def make_audit_row(audit_log_service, session) -> AuditEntryModel:
    result = audit_log_service.log_event(
        event_type=AuditEventType.PROCUREMENT_CREATED,
        user_id="officer-001",
        action="Created procurement",
        procurement_id="P1",
    )
    return session.get(AuditEntryModel, result.audit_entry.entry_id)


def make_version_row(document_version_service, session) -> DocumentVersionModel:
    document_version_service.create_version(
        "doc-1", "RFQ text", changed_by="officer-001", doc_type="rfq_document"
    )
    return session.execute(select(DocumentVersionModel)).scalar_one()


# =========================================================================
# Audit entries
# =========================================================================


class TestAuditEntryImmutability:
    def test_update_blocked(self, session, audit_log_service):
        row = make_audit_row(audit_log_service, session)
        row.action = "Tampered"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "AuditEntryModel"
        assert "immutable" in exc_info.value.reason

    def test_delete_blocked(self, session, audit_log_service):
        row = make_audit_row(audit_log_service, session)
        session.delete(row)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.reason == "Audit entries cannot be deleted outside archival"

    def test_delete_allowed_in_archival_scope(self, session, audit_log_service):
        row = make_audit_row(audit_log_service, session)

        with archival_scope(session):
            session.delete(row)
            session.flush()

        assert session.execute(select(AuditEntryModel)).first() is None

    def test_archival_scope_is_closed_afterwards(self, session, audit_log_service):
        with archival_scope(session):
            pass
        row = make_audit_row(audit_log_service, session)
        session.delete(row)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, session, audit_log_service, captured_logs):
        row = make_audit_row(audit_log_service, session)
        row.user_id = "someone-else"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"


class TestArchivedAuditEntryImmutability:
    def test_archive_rows_frozen(self, session, audit_log_service):
        make_audit_row(audit_log_service, session)
        audit_log_service.archive_before(LATER)
        session.commit()
        archived = session.execute(select(ArchivedAuditEntryModel)).scalar_one()

        archived.action = "Tampered"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        archived = session.execute(select(ArchivedAuditEntryModel)).scalar_one()
        session.delete(archived)
        with archival_scope(session), pytest.raises(ImmutabilityViolationError):
            session.flush()


# =========================================================================
# Document versions
# =========================================================================


class TestDocumentVersionImmutability:
    def test_content_update_blocked(self, session, document_version_service):
        row = make_version_row(document_version_service, session)
        row.file_hash = "0" * 64

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.reason == "Cannot modify field 'file_hash' on a document version"

    def test_delete_blocked(self, session, document_version_service):
        row = make_version_row(document_version_service, session)
        session.delete(row)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_approval_allowed_once(self, session, document_version_service):
        row = make_version_row(document_version_service, session)
        row.approval_status = "approved"
        row.approved_by = "chief"
        row.approval_date = LATER
        session.flush()

        row.approval_status = "pending"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.reason == "Only a pending version can be approved, and only once"

    def test_approval_fields_alone_blocked(self, session, document_version_service):
        row = make_version_row(document_version_service, session)
        row.approved_by = "chief"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_approval_mixed_with_content_change_blocked(self, session, document_version_service):
        row = make_version_row(document_version_service, session)
        row.approval_status = "approved"
        row.notes = "edited"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


# =========================================================================
# Listener management
# =========================================================================


class TestListenerRegistration:
    def test_register_is_idempotent(self, db_engine):
        from procurement_kernel.db.immutability import _check_audit_entry_immutability

        register_immutability_listeners()
        register_immutability_listeners()

        assert event.contains(AuditEntryModel, "before_update", _check_audit_entry_immutability)

    def test_disabled_allows_tampering(self, session, audit_log_service):
        row = make_audit_row(audit_log_service, session)

        with disabled_immutability():
            row.action = "Tampered"
            session.flush()

        assert session.get(AuditEntryModel, row.id).action == "Tampered"
