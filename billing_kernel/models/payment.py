"""
Module: billing_kernel.models.payment
Responsibility: ORM persistence for payments -- money owed to or received by
    the account, optionally derived from an approved quote.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quote_id is a weak back-reference with NO foreign key: deleting a quote
      nulls it out first and never deletes the payment.
    - uq_payment_quote_id: at most one payment row per non-null quote_id.
      NULLs are distinct, so any number of manual payments may coexist.
      The linkage service is the primary guard; the constraint is the
      conditional-insert backstop for writers racing from other processes.
    - paid_at is stamped when status moves to paid.

Failure modes:
    - IntegrityError on a second payment for the same quote_id, surfaced by
      the store as ReferentialConflictError.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import OwnedBase, UUIDString
from billing_kernel.db.types import Money

class Payment(OwnedBase):
    """A billable record, manual or derived from an approved quote."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("quote_id", name="uq_payment_quote_id"),
        Index("idx_payment_account_created", "account_id", "created_at"),
        Index("idx_payment_status", "status"),
    )

    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=True,
    )

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
        default="pending",
    )

    # pix / cash / other; required once status is paid
    payment_method: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id}: {self.value} ({self.status})>"
