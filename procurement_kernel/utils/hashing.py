"""
Canonical serialization and SHA-256 hashing.

``canonicalize_json`` is the one serialization used for audit change
detection, configuration checksums and engine trace fingerprints: keys
sorted, no whitespace, domain types reduced to stable JSON values.
``hash_content`` hashes raw document content for version chains.
"""

import dataclasses
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _to_json_value(obj: Any) -> Any:
    """``json.dumps`` default hook.

    Decimals are normalized so ``1.50`` and ``1.5`` serialize alike.

    Raises:
        TypeError: for any type not listed here.
    """
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_to_json_value)


def hash_payload(payload: Any) -> str:
    """SHA-256 hex digest of ``canonicalize_json(payload)``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def content_bytes(content: str | bytes) -> bytes:
    """Document content as bytes; text is UTF-8 encoded."""
    return content if isinstance(content, bytes) else content.encode("utf-8")


def hash_content(content: str | bytes) -> str:
    """SHA-256 hex digest of document content.

    A string and its UTF-8 encoding hash identically.
    """
    return hashlib.sha256(content_bytes(content)).hexdigest()
