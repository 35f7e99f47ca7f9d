"""
DTOs -- Immutable data transfer objects for kernel boundaries.

Responsibility:
    Defines the frozen dataclasses that services and selectors return
    instead of raw store rows, and the ``from_row`` parsers that turn a
    gateway row (a plain dict) into a typed object.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Status fields are closed enums.  ``from_row`` raises
      UnknownStatusError for anything outside them.
    - Money fields are quantized two-decimal Decimals.
    - Timestamps are timezone-aware.

Data flow:
    store row (dict) -> *Info.from_row -> services / aggregation
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from billing_kernel.db.types import to_money
from billing_kernel.domain.statuses import (
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
    QuoteStatus,
    parse_optional,
    parse_status,
)
from billing_kernel.domain.values import ensure_aware

Row = Mapping[str, Any]


def _uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _optional_uuid(value: UUID | str | None) -> UUID | None:
    if value is None or value == "":
        return None
    return _uuid(value)


def _optional_moment(value: datetime | None) -> datetime | None:
    return ensure_aware(value) if value is not None else None


@dataclass(frozen=True)
class ClientInfo:
    """Immutable view of a client row."""

    id: UUID
    name: str
    phone: str
    service_type: str
    notes: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Row) -> ClientInfo:
        return cls(
            id=_uuid(row["id"]),
            name=row["name"],
            phone=row["phone"],
            service_type=row["service_type"],
            notes=row.get("notes"),
            created_at=ensure_aware(row["created_at"]),
            updated_at=ensure_aware(row["updated_at"]),
        )


@dataclass(frozen=True)
class QuoteSnapshot:
    """
    The quote fields the linkage engine copies onto the derived payment.

    This is a copy-on-write snapshot: ``client_name`` is the name at the
    moment the quote was saved, not a live reference to the client row.
    """

    id: UUID
    client_id: UUID | None
    client_name: str
    service: str
    value: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_money(self.value))


@dataclass(frozen=True)
class QuoteInfo:
    """Immutable view of a quote row."""

    id: UUID
    client_id: UUID | None
    client_name: str
    service: str
    value: Decimal
    status: QuoteStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_approved(self) -> bool:
        return self.status == QuoteStatus.APPROVED

    def snapshot(self) -> QuoteSnapshot:
        """Return the fields mirrored onto the linked payment."""
        return QuoteSnapshot(
            id=self.id,
            client_id=self.client_id,
            client_name=self.client_name,
            service=self.service,
            value=self.value,
        )

    @classmethod
    def from_row(cls, row: Row) -> QuoteInfo:
        return cls(
            id=_uuid(row["id"]),
            client_id=_optional_uuid(row.get("client_id")),
            client_name=row["client_name"],
            service=row["service"],
            value=to_money(row["value"]),
            status=parse_status(QuoteStatus, row["status"], "quote status"),
            created_at=ensure_aware(row["created_at"]),
            updated_at=ensure_aware(row["updated_at"]),
        )


@dataclass(frozen=True)
class PaymentInfo:
    """Immutable view of a payment row."""

    id: UUID
    quote_id: UUID | None
    client_id: UUID | None
    client_name: str
    service: str
    value: Decimal
    status: PaymentStatus
    payment_method: PaymentMethod | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def is_linked(self) -> bool:
        return self.quote_id is not None

    @classmethod
    def from_row(cls, row: Row) -> PaymentInfo:
        return cls(
            id=_uuid(row["id"]),
            quote_id=_optional_uuid(row.get("quote_id")),
            client_id=_optional_uuid(row.get("client_id")),
            client_name=row["client_name"],
            service=row["service"],
            value=to_money(row["value"]),
            status=parse_status(PaymentStatus, row["status"], "payment status"),
            payment_method=parse_optional(
                PaymentMethod, row.get("payment_method"), "payment method"
            ),
            paid_at=_optional_moment(row.get("paid_at")),
            created_at=ensure_aware(row["created_at"]),
            updated_at=ensure_aware(row["updated_at"]),
        )


@dataclass(frozen=True)
class AppointmentInfo:
    """Immutable view of an appointment row."""

    id: UUID
    title: str
    client_id: UUID | None
    client_name: str
    date: datetime
    status: AppointmentStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Row) -> AppointmentInfo:
        return cls(
            id=_uuid(row["id"]),
            title=row["title"],
            client_id=_optional_uuid(row.get("client_id")),
            client_name=row["client_name"],
            date=ensure_aware(row["date"]),
            status=parse_status(
                AppointmentStatus, row["status"], "appointment status"
            ),
            notes=row.get("notes"),
            created_at=ensure_aware(row["created_at"]),
            updated_at=ensure_aware(row["updated_at"]),
        )
