"""
Module: billing_kernel.models.quote
Responsibility: ORM persistence for quotes (a proposed price for a service).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - value is a non-negative two-decimal amount (validated before insert).
    - status is one of sent / approved / lost (validated at the boundary;
      stored as a short string).
    - client_id is a weak reference: nullable, never cascaded.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import OwnedBase, UUIDString
from billing_kernel.db.types import Money

class Quote(OwnedBase):
    """A priced proposal sent to a client."""

    __tablename__ = "quotes"

    __table_args__ = (
        Index("idx_quote_account_created", "account_id", "created_at"),
        Index("idx_quote_status", "status"),
    )

    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=True,
    )

    # Denormalized snapshot of the client's name at save time
    client_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    service: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    value: Mapped[Money] = mapped_column(
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="sent",
    )

    def __repr__(self) -> str:
        return f"<Quote {self.id}: {self.service} {self.value} ({self.status})>"
