"""
Closed status enumerations for quotes, payments and appointments.

Every downstream rule (aggregation filters, transition legality) is defined
only over the members listed here.  Raw strings coming from the store or the
presentation layer are parsed through ``parse_status`` so that an unknown
value is rejected at the boundary instead of being silently aggregated as
zero.
"""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from billing_kernel.exceptions import UnknownStatusError


class QuoteStatus(str, Enum):
    """Quote lifecycle status."""

    SENT = "sent"
    APPROVED = "approved"
    LOST = "lost"


class PaymentStatus(str, Enum):
    """Payment lifecycle status."""

    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """How a paid payment was settled."""

    PIX = "pix"
    CASH = "cash"
    OTHER = "other"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


E = TypeVar("E", bound=Enum)


def parse_status(enum_type: type[E], raw: E | str, field: str = "status") -> E:
    """
    Parse a raw value into a member of ``enum_type``.

    Raises:
        UnknownStatusError: If ``raw`` is not a member value.
    """
    if isinstance(raw, enum_type):
        return raw
    try:
        return enum_type(raw)
    except ValueError:
        raise UnknownStatusError(
            field, str(raw), [member.value for member in enum_type]
        ) from None


def parse_optional(enum_type: type[E], raw: E | str | None, field: str) -> E | None:
    """Like ``parse_status`` but maps None (and empty string) to None."""
    if raw is None or raw == "":
        return None
    return parse_status(enum_type, raw, field)
