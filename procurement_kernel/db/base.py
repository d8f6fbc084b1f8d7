"""
Module: procurement_kernel.db.base
Responsibility: declarative base and portable column types for the
    persistence sink.
Architecture position: Kernel > DB.  Lowest import target in db/; every
    model imports from here.  MUST NOT import from models/, domain/ or any
    outer layer.

Invariants enforced:
    - Every table has a UUID primary key stored as 36-char text, so the same
      schema runs on PostgreSQL and SQLite.
    - ``datetime`` columns always load as aware UTC values.
"""

from datetime import UTC, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp column.

    SQLite drops the offset on storage; a naive value read back is taken
    to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Declarative base: UUID ``id`` primary key, UTC timestamps."""

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)
