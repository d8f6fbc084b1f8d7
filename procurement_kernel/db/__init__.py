"""Database layer: declarative base, engine/session management, immutability."""

from procurement_kernel.db.base import Base, UTCDateTime, UUIDString
from procurement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from procurement_kernel.db.immutability import (
    archival_scope,
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "UUIDString",
    "archival_scope",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "register_immutability_listeners",
    "reset_engine",
    "session_scope",
    "unregister_immutability_listeners",
]
