"""
Status transition rules for quotes and payments
(``billing_kernel.domain.transitions``).

Responsibility
--------------
Pure state machines.  Decides whether a requested status change is legal and
which side effects it carries; the services apply the result through the
store.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Imports only ``domain/statuses`` and
the exception types.

Rules
-----
* Quote: ``sent | approved | lost``.  Every transition is legal, including a
  same-state re-save.  Every transition INTO approved requires the linked
  payment to be ensured.  Leaving approved never retracts the payment.
* Payment: ``pending | paid``.  Moving to paid requires a payment method and
  stamps ``paid_at`` (only on the actual pending -> paid edge; a paid
  re-save keeps the original stamp).  A method is only accepted with
  paid; sending one with pending is rejected rather than dropped.  Moving
  back to pending is otherwise always legal and has no side effects unless
  the caller asks to clear the paid fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from billing_kernel.domain.statuses import PaymentMethod, PaymentStatus, QuoteStatus
from billing_kernel.exceptions import InvalidTransitionError


QUOTE_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    status: frozenset(QuoteStatus) for status in QuoteStatus
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.PAID, PaymentStatus.PENDING}),
}

# Marker used in error payloads when an entity is being created.
NEW = "new"


@dataclass(frozen=True)
class QuoteTransition:
    """Outcome of validating a quote status change."""

    from_status: QuoteStatus | None
    to_status: QuoteStatus

    @property
    def requires_payment_sync(self) -> bool:
        """True whenever the quote ends up approved, re-saves included."""
        return self.to_status == QuoteStatus.APPROVED

    @property
    def leaves_approved(self) -> bool:
        """True when an approval is being reversed (payment is kept)."""
        return (
            self.from_status == QuoteStatus.APPROVED
            and self.to_status != QuoteStatus.APPROVED
        )


@dataclass(frozen=True)
class PaymentTransition:
    """Outcome of validating a payment status change: the fields to write."""

    from_status: PaymentStatus | None
    to_status: PaymentStatus
    patch: dict[str, Any] = field(default_factory=dict)

    @property
    def marks_paid(self) -> bool:
        return (
            self.to_status == PaymentStatus.PAID
            and self.from_status != PaymentStatus.PAID
        )


def plan_quote_transition(
    current: QuoteStatus | None,
    target: QuoteStatus,
) -> QuoteTransition:
    """
    Validate a quote status change.

    Args:
        current: Current status, or None when the quote is being created.
        target: Requested status.

    Raises:
        InvalidTransitionError: If the edge is not in QUOTE_TRANSITIONS.
    """
    if current is not None and target not in QUOTE_TRANSITIONS[current]:
        raise InvalidTransitionError(
            "quote", current.value, target.value, "transition not allowed"
        )
    return QuoteTransition(from_status=current, to_status=target)


def plan_payment_transition(
    current: PaymentStatus | None,
    target: PaymentStatus,
    *,
    payment_method: PaymentMethod | None,
    now: datetime,
    current_method: PaymentMethod | None = None,
    current_paid_at: datetime | None = None,
    clear_paid_at: bool = False,
) -> PaymentTransition:
    """
    Validate a payment status change and compute the fields to write.

    Args:
        current: Current status, or None when the payment is being created.
        target: Requested status.
        payment_method: Method supplied with the request.
        now: Time used to stamp ``paid_at``.
        current_method: Method already stored on the payment.
        current_paid_at: ``paid_at`` already stored on the payment.
        clear_paid_at: On a move to pending, also clear ``paid_at`` and
            ``payment_method``.

    Returns:
        PaymentTransition whose ``patch`` holds status, method and paid_at
        changes (store-ready primitive values).

    Raises:
        InvalidTransitionError: If moving to paid without a method, a
            method is given for pending, or the edge is not in
            PAYMENT_TRANSITIONS.
    """
    from_label = current.value if current is not None else NEW

    if current is not None and target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransitionError(
            "payment", from_label, target.value, "transition not allowed"
        )

    if target == PaymentStatus.PAID:
        method = payment_method
        if method is None and current == PaymentStatus.PAID:
            method = current_method
        if method is None:
            raise InvalidTransitionError(
                "payment", from_label, target.value, "payment_method is required"
            )
        patch: dict[str, Any] = {
            "status": PaymentStatus.PAID.value,
            "payment_method": method.value,
        }
        if current != PaymentStatus.PAID or current_paid_at is None:
            patch["paid_at"] = now
        return PaymentTransition(from_status=current, to_status=target, patch=patch)

    if payment_method is not None:
        raise InvalidTransitionError(
            "payment", from_label, target.value, "payment_method requires status paid"
        )
    patch = {"status": PaymentStatus.PENDING.value}
    if clear_paid_at or current is None:
        patch["paid_at"] = None
        patch["payment_method"] = None
    return PaymentTransition(from_status=current, to_status=target, patch=patch)
