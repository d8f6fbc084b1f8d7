"""
ORM-Level Immutability Enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here intercept those events and raise
ImmutabilityViolationError, aborting the flush before anything is written:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------
Entity                | Rule
----------------------|-------------------------------------------------------
AuditEntryModel       | Never updated.  Deleted only inside archival_scope().
ArchivedAuditEntry    | Never updated or deleted.
DocumentVersionModel  | Never deleted.  Only update: pending -> approved with
                      | approved_by / approval_date set at the same time.

Usage
-----
    from procurement_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, after models import

    with archival_scope(session):
        session.delete(row)  # permitted for live audit rows only

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.attributes import get_history

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

ARCHIVAL_FLAG = "procurement_archival_in_progress"

_VERSION_APPROVAL_FIELDS = frozenset({"approval_status", "approved_by", "approval_date"})


@contextmanager
def archival_scope(session: Session) -> Iterator[Session]:
    """Permit deletion of live audit rows for the duration of the block."""
    session.info[ARCHIVAL_FLAG] = True
    try:
        yield session
    finally:
        session.info.pop(ARCHIVAL_FLAG, None)


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_audit_entry_immutability(mapper, connection, target):
    """Audit entries are always immutable."""
    _blocked(
        type(target).__name__,
        target.id,
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    """Live audit entries may leave the table only through archival."""
    session = object_session(target)
    if session is not None and session.info.get(ARCHIVAL_FLAG):
        return
    _blocked(
        "AuditEntryModel",
        target.id,
        "DELETE",
        "Audit entries cannot be deleted outside archival",
    )


def _check_archived_audit_entry_delete(mapper, connection, target):
    _blocked(
        "ArchivedAuditEntryModel",
        target.id,
        "DELETE",
        "Archived audit entries cannot be deleted",
    )


def _check_document_version_immutability(mapper, connection, target):
    """
    Allow exactly one change to a version row: pending -> approved.

    Any other changed column, or a status change that does not start at
    pending and end at approved, is blocked.
    """
    changed = [
        attr.key for attr in inspect(target).attrs if attr.history.has_changes()
    ]
    illegal = [key for key in changed if key not in _VERSION_APPROVAL_FIELDS]
    if illegal:
        _blocked(
            "DocumentVersionModel",
            target.id,
            "UPDATE",
            f"Cannot modify field '{illegal[0]}' on a document version",
            field=illegal[0],
        )

    status = get_history(target, "approval_status")
    old_status = status.deleted[0] if status.deleted else None
    if old_status != "pending" or target.approval_status != "approved":
        _blocked(
            "DocumentVersionModel",
            target.id,
            "UPDATE",
            "Only a pending version can be approved, and only once",
        )


def _check_document_version_delete(mapper, connection, target):
    _blocked(
        "DocumentVersionModel",
        target.id,
        "DELETE",
        "Document versions cannot be deleted",
    )


def _listeners():
    from procurement_kernel.models.audit_entry import ArchivedAuditEntryModel, AuditEntryModel
    from procurement_kernel.models.document_version import DocumentVersionModel

    return (
        (AuditEntryModel, "before_update", _check_audit_entry_immutability),
        (AuditEntryModel, "before_delete", _check_audit_entry_delete),
        (ArchivedAuditEntryModel, "before_update", _check_audit_entry_immutability),
        (ArchivedAuditEntryModel, "before_delete", _check_archived_audit_entry_delete),
        (DocumentVersionModel, "before_update", _check_document_version_immutability),
        (DocumentVersionModel, "before_delete", _check_document_version_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; a listener already registered is skipped.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring one that is not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate
    immutability rules.
    """
    for target, event_name, fn in _listeners():
        _safe_remove_listener(target, event_name, fn)
