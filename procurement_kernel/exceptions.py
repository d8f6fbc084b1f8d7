"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
RESULTS VS. EXCEPTIONS
===============================================================================

Business-rule failures (an illegal stage transition requested by a user, a
missing required field, a rollback to a version that does not exist) are
NEVER raised.  The engines return structured result objects carrying a
boolean flag, a ``FailureCode`` and human-readable reasons
(see ``procurement_kernel.domain.outcomes``).

The exceptions in this module are for the other half of the split:

  - Programmer errors: asking a pure lookup about a stage that is not in the
    static stage map, passing a value that is not a ``Stage``.
  - Integrity violations at the persistence boundary: an attempt to UPDATE
    an audit row, two writers racing for the same version number.
  - Configuration errors detected while loading the static rule tables.

Every exception has a ``code`` class attribute (machine-readable, API-safe)
and carries its context as structured attributes, not only in the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- StageError
    |   +-- UnknownStageError
    |   +-- IllegalTransitionError
    |
    +-- ValidationError
    |   +-- MissingRequiredFieldError
    |
    +-- VersioningError
    |   +-- VersionNotFoundError
    |   +-- InvalidRollbackTargetError
    |   +-- VersionChainDefectError
    |
    +-- ConcurrencyError
    |   +-- DuplicateVersionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Stage           | UNKNOWN_STAGE               | Stage name not in the static stage map
                | ILLEGAL_TRANSITION          | Service asked to force a rejected move
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_REQUIRED_FIELD      | Record constructed without a key field
----------------|-----------------------------|-----------------------------------------
Versioning      | VERSION_NOT_FOUND           | Version number absent from the document
                | INVALID_ROLLBACK_TARGET     | Rollback to current or future version
                | VERSION_CHAIN_DEFECT        | Stored chain failed validation on load
----------------|-----------------------------|-----------------------------------------
Concurrency     | DUPLICATE_VERSION           | (document_id, version_number) collision
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an append-only row
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Static rule tables failed validation
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Stage-related exceptions


class StageError(ProcurementKernelError):
    """Base exception for stage state machine errors."""

    code: str = "STAGE_ERROR"


class UnknownStageError(StageError):
    """Stage name is not part of the fixed stage sequence."""

    code: str = "UNKNOWN_STAGE"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Unknown stage: {stage}")


class IllegalTransitionError(StageError):
    """A transition outside the static adjacency map was forced."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, from_stage: str, to_stage: str, reason: str):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.reason = reason
        super().__init__(
            f"Cannot transition from {from_stage} to {to_stage}: {reason}"
        )


# Validation-related exceptions


class ValidationError(ProcurementKernelError):
    """Base exception for validation errors."""

    code: str = "VALIDATION_ERROR"


class MissingRequiredFieldError(ValidationError):
    """A record was constructed without one or more mandatory fields."""

    code: str = "MISSING_REQUIRED_FIELD"

    def __init__(self, record_type: str, missing_fields: list[str]):
        self.record_type = record_type
        self.missing_fields = missing_fields
        super().__init__(
            f"{record_type} is missing required fields: {', '.join(missing_fields)}"
        )


# Versioning-related exceptions


class VersioningError(ProcurementKernelError):
    """Base exception for document versioning errors."""

    code: str = "VERSIONING_ERROR"


class VersionNotFoundError(VersioningError):
    """Requested version does not exist on the document."""

    code: str = "VERSION_NOT_FOUND"

    def __init__(self, document_id: str, version_number: int):
        self.document_id = document_id
        self.version_number = version_number
        super().__init__(
            f"Version {version_number} not found for document {document_id}"
        )


class InvalidRollbackTargetError(VersioningError):
    """Rollback target is not strictly earlier than the current version."""

    code: str = "INVALID_ROLLBACK_TARGET"

    def __init__(self, document_id: str, current_version: int, target_version: int):
        self.document_id = document_id
        self.current_version = current_version
        self.target_version = target_version
        super().__init__(
            f"Cannot roll back document {document_id} from version "
            f"{current_version} to version {target_version}"
        )


class VersionChainDefectError(VersioningError):
    """
    A stored version chain failed validation.

    Raised by the persistence layer when a chain loaded from storage has
    gaps or incomplete versions; the engine itself only reports defects.
    """

    code: str = "VERSION_CHAIN_DEFECT"

    def __init__(self, document_id: str, defects: list[str]):
        self.document_id = document_id
        self.defects = defects
        super().__init__(
            f"Version chain for document {document_id} has "
            f"{len(defects)} defect(s): {'; '.join(defects)}"
        )


# Concurrency-related exceptions


class ConcurrencyError(ProcurementKernelError):
    """Base exception for concurrent-writer errors."""

    code: str = "CONCURRENCY_ERROR"


class DuplicateVersionError(ConcurrencyError):
    """
    Another writer already stored this version number for the document.

    The unique constraint on (document_id, version_number) serializes
    concurrent ``create_version`` calls against the same document.
    """

    code: str = "DUPLICATE_VERSION"

    def __init__(self, document_id: str, version_number: int):
        self.document_id = document_id
        self.version_number = version_number
        super().__init__(
            f"Version {version_number} already exists for document {document_id}"
        )


# Immutability-related exceptions


class ImmutabilityError(ProcurementKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Configuration errors


class ConfigurationError(ProcurementKernelError):
    """Static configuration failed structural validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, problems: list[str], source: str | None = None):
        self.problems = problems
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Invalid procurement configuration{where}: {'; '.join(problems)}"
        )
