"""
procurement_engines.tracer -- PROCUREMENT_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine method and logs one trace record per
    call: engine name and version, a fingerprint of selected arguments, the
    wrapped function's qualified name and the call duration.

Architecture position:
    Engines -- infrastructure for the pure calculation layer.  Emits a log
    record and nothing else.

Invariants enforced:
    - Arguments are bound against the function signature (defaults applied),
      so positional and keyword calls with the same values share a
      fingerprint.
    - The fingerprint is the first 16 hex chars of SHA-256 over canonical
      JSON; a str-valued enum and its value hash identically.

Failure modes:
    - A fingerprint field the function does not accept is hashed as null.
    - Values canonical JSON cannot encode are hashed by ``repr()``.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from typing import Any

from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import canonicalize_json

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "PROCUREMENT_ENGINE_TRACE"


def _field_text(value: Any) -> str:
    try:
        return canonicalize_json(value)
    except TypeError:
        return repr(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char fingerprint of ``arguments`` restricted to ``fingerprint_fields``."""
    canonical = "|".join(
        f"{name}={_field_text(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[Callable], Callable]:
    """Trace every call of the decorated engine function."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = (time.perf_counter() - started) * 1000

            _logger.info(
                TRACE_MESSAGE,
                extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round(elapsed_ms, 2),
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
