"""
Module: finance_kernel.db.base
Responsibility: Declarative base classes for the project finance ORM models.
    Provides the UUID primary key convention, the type annotation map that
    fixes column types for Decimal / datetime / UUID, and the TrackedBase
    mixin for audit columns.
Architecture position: Kernel > DB.  Lowest-level import target; every ORM
    module (kernel journal, project, revenue, WIP) imports from here.

Invariants enforced:
    - UUID primary keys (uuid4, stored as String(36) for PostgreSQL / SQLite
      portability).
    - Decimal maps to ExactDecimal(38, 9): Numeric on PostgreSQL, the exact
      string form on SQLite.  Monetary amounts are never floats.
    - TrackedBase rows always record the creating actor.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string form."""

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


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never round-trips through a binary float.

    PostgreSQL stores NUMERIC(precision, scale).  SQLite has no exact numeric
    storage, so the value is kept as its string form there.  Columns of this
    type must not be compared or aggregated in SQL on SQLite.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 38, scale: int = 9):
        super().__init__(precision=precision, scale=scale)
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(Numeric(self.precision, self.scale))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(str(value))


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is a uuid4-generated UUID.
        - Decimal -> ExactDecimal(38, 9), datetime -> DateTime(timezone=True),
          int -> BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(38, 9),
        datetime: DateTime(timezone=True),
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

    created_at / updated_at are server-stamped; created_by_id is required,
    updated_by_id is set by services on every mutation.
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
