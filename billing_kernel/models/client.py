"""
Module: billing_kernel.models.client
Responsibility: ORM persistence for the customers an account does work for.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A client row cannot be deleted while any quote, payment or appointment
      still references it by id.  The foreign keys declared on those tables
      carry no ON DELETE action, so the database rejects the delete and the
      store surfaces a ReferentialConflictError.

Audit relevance:
    Quotes and payments keep their own client_name snapshot; editing or
    removing a client never makes financial history unreadable.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import OwnedBase


class Client(OwnedBase):
    """A customer of the account."""

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_client_account_name", "account_id", "name"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Contact string (usually a phone number)
    phone: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Service category, e.g. "Ar-condicionado"
    service_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        String(2000),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Client {self.name}>"
