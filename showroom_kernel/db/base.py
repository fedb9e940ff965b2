"""
Declarative base for the showroom ORM models.

Every table gets a uuid4 primary key stored as 36 characters, money columns
map to Numeric(38, 9) and timestamps are timezone-aware, so the same schema
runs unchanged on PostgreSQL and on the SQLite files the tests and the
operator CLI use.  Nothing here imports from models/, services/ or domain/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Rows written by the kernel itself rather than on an employee's behalf
SYSTEM_ACTOR_ID = UUID(int=0)


class UUIDString(TypeDecorator):
    """UUID held as its canonical string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows that record when and by whom they were written.

    created_at comes from the database clock on INSERT; created_by_id is the
    speaking employee, or SYSTEM_ACTOR_ID for catalog and seed data.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    created_by_id: Mapped[UUID]
