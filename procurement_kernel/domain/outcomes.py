"""
Failure codes for result-valued engine operations.

Engines report business-rule failures as data, never as exceptions.  Each
failed result carries one of these codes next to its human-readable reason
so callers can branch on the code instead of parsing messages.
"""

from enum import Enum


class FailureCode(str, Enum):
    """Machine-readable reason a result-valued operation did not succeed."""

    UNKNOWN_STAGE = "UNKNOWN_STAGE"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    TERMINAL_STAGE = "TERMINAL_STAGE"
    MIN_DWELL_NOT_MET = "MIN_DWELL_NOT_MET"
    REQUIREMENTS_NOT_MET = "REQUIREMENTS_NOT_MET"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    VALIDATION_VIOLATION = "VALIDATION_VIOLATION"
    NO_CONTENT_CHANGE = "NO_CONTENT_CHANGE"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    INVALID_ROLLBACK_TARGET = "INVALID_ROLLBACK_TARGET"
    VERSION_CHAIN_DEFECT = "VERSION_CHAIN_DEFECT"
    VERSION_ALREADY_APPROVED = "VERSION_ALREADY_APPROVED"
