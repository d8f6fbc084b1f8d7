"""
Module: procurement_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the four
    procurement engines.  This is the canonical import surface for the
    services layer and for callers embedding the kernel.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel/domain types, utils and logging.
    MUST NOT import procurement_services or procurement_kernel.db.

Invariants enforced:
    - Engines hold only immutable configuration injected at construction.
    - Engines read the clock only through an injected ``Clock`` and only
      when the caller supplies no timestamp.
    - Business-rule failures are returned as result values, never raised.

Failure modes:
    - ConfigurationError at construction for incomplete rule tables.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``procurement_engines.tracer``), emitting PROCUREMENT_ENGINE_TRACE log
    records with engine name, version, input fingerprint, and duration.

Usage:
    from procurement_engines import WorkflowEngine, ValidationEngine
    from procurement_engines import AuditEngine, VersioningEngine
"""

from procurement_kernel.logging_config import get_logger

logger = get_logger("engines")

from procurement_engines.audit import (
    AuditEngine,
    detect_changes,
    entries_to_csv,
)
from procurement_engines.tracer import (
    compute_input_fingerprint,
    traced_engine,
)
from procurement_engines.validation import (
    PPDA_PREDICATES,
    ValidationEngine,
    check_field,
)
from procurement_engines.versioning import (
    VersioningEngine,
    categorize_change,
    detect_line_changes,
)
from procurement_engines.workflow import WorkflowEngine

__all__ = [
    # Workflow
    "WorkflowEngine",
    # Validation
    "ValidationEngine",
    "PPDA_PREDICATES",
    "check_field",
    # Audit
    "AuditEngine",
    "detect_changes",
    "entries_to_csv",
    # Versioning
    "VersioningEngine",
    "categorize_change",
    "detect_line_changes",
    # Tracing
    "traced_engine",
    "compute_input_fingerprint",
]

logger.debug("engines_package_loaded", extra={
    "module_count": 4,
    "modules": ["workflow", "validation", "audit", "versioning"],
})
