"""
Module: billing_kernel.models.appointment
Responsibility: ORM persistence for scheduled visits on the account's agenda.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import OwnedBase, UUIDString


class Appointment(OwnedBase):
    """A scheduled appointment with a client."""

    __tablename__ = "appointments"

    __table_args__ = (
        Index("idx_appointment_account_date", "account_id", "date"),
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
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

    date: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="scheduled",
    )

    notes: Mapped[str | None] = mapped_column(
        String(2000),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.title} @ {self.date} ({self.status})>"
