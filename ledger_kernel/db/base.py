"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for every ORM model in the ledger,
    the rate tables and the income module.  Fixes the primary key convention,
    the column type for each Python type, and the audit timestamp mixin.
Architecture position: Kernel > DB.  Lowest-level import target in the
    kernel.  MUST NOT import from models/, services/, selectors/ or outer
    layers.

Invariants enforced:
    - Primary keys are uuid4 values stored as String(36), so the same schema
      runs on PostgreSQL and on the SQLite test database.
    - Python Decimal maps to Numeric(38, 9).  Monetary values are never
      stored as float.
    - TrackedBase rows carry created_at/updated_at and the acting owner.

Failure modes:
    - IntegrityError on a duplicate primary key.

Audit relevance:
    created_at/updated_at/created_by_id/updated_by_id are audit metadata and
    stay writable on otherwise immutable rows (see db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36).

    Guarantees:
        - process_bind_param: UUID (or UUID string) -> str on write.
        - process_result_value: str -> UUID on read.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is a uuid4 UUID.
        - Decimal -> Numeric(38, 9); datetime -> tz-aware DateTime;
          date -> Date; int -> BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor tracking.

    Contract:
        created_by_id is the identity that wrote the row.  In this system
        that is the owner on whose behalf the engine ran.

    Guarantees:
        - created_at is set by the database on INSERT.
        - updated_at is refreshed on every UPDATE.
        - created_by_id is NOT NULL.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
