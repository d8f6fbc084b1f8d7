"""
Pytest fixtures for the procurement kernel test suite.

Provides:
- Structured-logging setup and a ``captured_logs`` fixture
- A deterministic clock
- The default configuration and the four engines built from it
- An in-memory SQLite session with immutability listeners registered
- Snapshot factories for procurements and documents
"""

import json
import logging
from datetime import UTC, datetime
from io import StringIO

import pytest

from procurement_config import build_engines, get_active_config
from procurement_kernel.db.base import Base
from procurement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.document import Document
from procurement_kernel.domain.procurement import (
    ProcurementSnapshot,
    StageApproval,
    StageApprovalStatus,
)
from procurement_kernel.domain.stages import Stage
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_services import (
    AuditLogService,
    DocumentVersionService,
    StageAdvanceService,
)

TEST_ACTOR_ID = "officer-001"
FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.can_transition(current_stage="planning", target_stage="template")
            logs = captured_logs()
            assert any(r["message"] == "PROCUREMENT_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock, configuration and engines
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def engines(config, clock):
    return build_engines(config, clock)


@pytest.fixture
def workflow_engine(engines):
    return engines.workflow


@pytest.fixture
def validation_engine(engines):
    return engines.validation


@pytest.fixture
def audit_engine(engines):
    return engines.audit


@pytest.fixture
def versioning_engine(engines):
    return engines.versioning


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """One in-memory SQLite engine for the whole run."""
    eng = init_engine_from_url("sqlite://")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """Per-test session; all rows are removed afterwards.

    Rows are cleared with table-level DELETE statements, which bypass the
    ORM immutability listeners.
    """
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def audit_log_service(session, audit_engine, clock):
    return AuditLogService(session, audit_engine, clock)


@pytest.fixture
def document_version_service(session, versioning_engine, audit_log_service):
    return DocumentVersionService(session, versioning_engine, audit_log_service)


@pytest.fixture
def stage_advance_service(workflow_engine, validation_engine, audit_log_service, clock):
    return StageAdvanceService(workflow_engine, validation_engine, audit_log_service, clock)


# =============================================================================
# Snapshot factories
# =============================================================================


def make_document(doc_type: str, document_id: str | None = None, **kwargs) -> Document:
    return Document(document_id=document_id or f"doc-{doc_type}", doc_type=doc_type, **kwargs)


def make_approval(
    approval_type: str,
    status: StageApprovalStatus = StageApprovalStatus.APPROVED,
    approved_by: str | None = TEST_ACTOR_ID,
) -> StageApproval:
    return StageApproval(
        approval_type=approval_type,
        status=status,
        approved_by=approved_by,
        decided_at=FIXED_NOW,
    )


def make_procurement(
    stage: Stage = Stage.PLANNING,
    document_types: tuple[str, ...] = (),
    approval_types: tuple[str, ...] = (),
    procurement_id: str = "P1",
    stage_entered_at: datetime | None = None,
) -> ProcurementSnapshot:
    return ProcurementSnapshot(
        procurement_id=procurement_id,
        stage=stage,
        documents=tuple(make_document(t) for t in document_types),
        approvals=tuple(make_approval(t) for t in approval_types),
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        stage_entered_at=stage_entered_at,
    )


PLANNING_DATA = {
    "procurement_title": "Office furniture for district HQ",
    "procurement_type": "goods",
    "estimated_budget": 25000,
    "procurement_reason": "Replacement of worn-out desks and chairs",
    "business_justification": (
        "Existing furniture is over ten years old and fails health and safety checks."
    ),
    "risk_level": "low",
}


@pytest.fixture
def procurement_factory():
    """The ``make_procurement`` factory, for tests that build several snapshots."""
    return make_procurement


@pytest.fixture
def planning_data() -> dict:
    return dict(PLANNING_DATA)


@pytest.fixture
def ready_planning_procurement() -> ProcurementSnapshot:
    """A planning-stage procurement with every document and approval in place."""
    return make_procurement(
        stage=Stage.PLANNING,
        document_types=("procurement_plan",),
        approval_types=("plan_approval",),
    )
