"""
Module: billing_kernel.db.base
Responsibility: declarative base for the ORM models.  Fixes the column
    types every table shares: UUID keys stored as strings, two-decimal
    amounts, timezone-aware timestamps, and the owning account.
Architecture position: Kernel > DB.  Lowest import target inside the
    kernel; MUST NOT import from models/, store/, services/, selectors/ or
    domain/.

Invariants enforced:
    - Every row has a uuid4 primary key and a non-null, indexed account_id.
    - Decimal annotations map to Numeric(12, 2); floats are never used for
      money.
    - created_at / updated_at are always present.  The store stamps them
      from its Clock; the server default only covers rows written by hand.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import String, TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column kept as its 36-character text form (portable to SQLite)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base; see module docstring for the shared column types."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(12, 2),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class OwnedBase(Base):
    """Abstract base for rows that belong to one account."""

    __abstract__ = True

    account_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
