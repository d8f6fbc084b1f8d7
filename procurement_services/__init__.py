"""
procurement_services -- Package init and public API.

Responsibility:
    Stateful services that compose the pure procurement engines with
    database sessions and the clock.  This is the only layer that holds
    sessions or persists engine output.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        procurement_services/ -> procurement_engines/  (allowed)
        procurement_services/ -> procurement_kernel/   (allowed)
        procurement_engines/  -> procurement_services/ (FORBIDDEN)
        procurement_kernel/   -> procurement_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from procurement_kernel.logging_config import get_logger

logger = get_logger("services")

from procurement_services.audit_log_service import AuditLogService
from procurement_services.document_version_service import DocumentVersionService
from procurement_services.stage_advance_service import (
    StageAdvanceOutcome,
    StageAdvanceService,
)

__all__ = [
    "AuditLogService",
    "DocumentVersionService",
    "StageAdvanceOutcome",
    "StageAdvanceService",
]
