"""
Service layer for Payment operations.

Covers manual payments (typed in directly, optionally pointing at an
approved quote) and the status workflow shared with quote-derived ones:
mark as paid, revert to pending.  Status changes are planned by
``plan_payment_transition`` before anything is written, so a rejected
transition leaves the row untouched.

A payment that names a quote claims it through LinkageService, which
refuses a second payment for the same quote.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Any
from uuid import UUID

from billing_kernel.db.types import to_money
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import ClientInfo, PaymentInfo
from billing_kernel.domain.statuses import (
    PaymentMethod,
    PaymentStatus,
    parse_optional,
    parse_status,
)
from billing_kernel.domain.transitions import plan_payment_transition
from billing_kernel.exceptions import MissingFieldError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.base import (
    UNSET,
    BaseService,
    matches_search,
    require_text,
)
from billing_kernel.services.linkage_service import LinkageService
from billing_kernel.store.base import EntityStore, Table

logger = get_logger("services.payment")


class PaymentService(BaseService):
    """Service for managing payments.  Returns PaymentInfo DTOs."""

    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        linkage: LinkageService | None = None,
    ):
        super().__init__(store, clock)
        self.linkage = linkage or LinkageService(store, self.clock)

    def _get_row(self, payment_id: UUID) -> PaymentInfo:
        return PaymentInfo.from_row(self.store.get(Table.PAYMENTS, payment_id))

    def _client(self, client_id: UUID | None) -> ClientInfo:
        if client_id is None:
            raise MissingFieldError("payment", "client_id")
        return ClientInfo.from_row(self.store.get(Table.CLIENTS, client_id))

    def _write_scope(
        self, quote_id: UUID | None, payment_id: UUID | None = None
    ) -> AbstractContextManager[None]:
        if quote_id is None:
            return self.store.transaction()
        return self.linkage.claim_quote(quote_id, payment_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        """
        Get payment by ID.

        Raises:
            RowNotFoundError: If the payment does not exist for this account.
        """
        return self._get_row(payment_id)

    def list_payments(
        self,
        search: str | None = None,
        status: PaymentStatus | str | None = None,
    ) -> list[PaymentInfo]:
        """
        List payments, newest first.

        Args:
            search: Optional case-insensitive filter on client name or service.
            status: Optional status filter.
        """
        filters = {}
        if status is not None:
            filters["status"] = parse_status(PaymentStatus, status, "payment status").value
        payments = [
            PaymentInfo.from_row(row) for row in self.store.list(Table.PAYMENTS, filters)
        ]
        payments.sort(key=lambda p: (p.created_at, str(p.id)), reverse=True)
        return [p for p in payments if matches_search(search, p.client_name, p.service)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_payment(
        self,
        client_id: UUID,
        service: str,
        value: Decimal | str | int,
        status: PaymentStatus | str = PaymentStatus.PENDING,
        payment_method: PaymentMethod | str | None = None,
        quote_id: UUID | None = None,
    ) -> PaymentInfo:
        """
        Create a manual payment.

        Args:
            client_id: Client who pays; its current name is copied.
            service: Description of the work.
            value: Non-negative amount.
            status: pending (default) or paid.
            payment_method: Required when status is paid.
            quote_id: Optional approved quote this payment settles.

        Returns:
            Created PaymentInfo.

        Raises:
            InvalidTransitionError: If created as paid without a method, or
                as pending with one.
            DuplicateLinkError: If another payment already links quote_id.
            RowNotFoundError: If the client or the quote does not exist.
        """
        target = parse_status(PaymentStatus, status, "payment status")
        method = parse_optional(PaymentMethod, payment_method, "payment method")
        transition = plan_payment_transition(
            None, target, payment_method=method, now=self.clock.now()
        )
        service = require_text("payment", "service", service)
        amount = to_money(value)
        client = self._client(client_id)

        with self._write_scope(quote_id):
            row = self.store.insert(
                Table.PAYMENTS,
                {
                    "client_id": client.id,
                    "client_name": client.name,
                    "quote_id": quote_id,
                    "service": service,
                    "value": amount,
                    **transition.patch,
                },
            )
        payment = PaymentInfo.from_row(row)

        with LogContext.bind(payment_id=payment.id, quote_id=quote_id):
            logger.info(
                "payment_created",
                extra={"status": payment.status.value, "value": payment.value},
            )
        return payment

    def update_payment(
        self,
        payment_id: UUID,
        *,
        client_id: UUID | None = None,
        service: str | None = None,
        value: Decimal | str | int | None = None,
        status: PaymentStatus | str | None = None,
        payment_method: PaymentMethod | str | None = None,
        quote_id: Any = UNSET,
        clear_paid_at: bool = False,
    ) -> PaymentInfo:
        """
        Edit a payment.

        Omitted arguments keep their stored value; pass ``quote_id=None`` to
        detach the payment from its quote.  The status change is validated
        before any write.

        Raises:
            InvalidTransitionError: If moving to paid without a method, or
                a method is given while the payment stays pending.
            DuplicateLinkError: If the new quote already has a payment.
            RowNotFoundError: If the payment, client or quote does not exist.
        """
        current = self._get_row(payment_id)
        target = (
            parse_status(PaymentStatus, status, "payment status")
            if status is not None
            else current.status
        )
        method = parse_optional(PaymentMethod, payment_method, "payment method")
        transition = plan_payment_transition(
            current.status,
            target,
            payment_method=method,
            now=self.clock.now(),
            current_method=current.payment_method,
            current_paid_at=current.paid_at,
            clear_paid_at=clear_paid_at,
        )

        patch: dict[str, Any] = dict(transition.patch)
        if service is not None:
            patch["service"] = require_text("payment", "service", service)
        if value is not None:
            patch["value"] = to_money(value)
        if client_id is not None:
            client = self._client(client_id)
            patch["client_id"] = client.id
            patch["client_name"] = client.name

        claimed: UUID | None = None
        if quote_id is not UNSET:
            patch["quote_id"] = quote_id
            if quote_id is not None and quote_id != current.quote_id:
                claimed = quote_id

        with self._write_scope(claimed, current.id):
            self.store.update(Table.PAYMENTS, current.id, patch)
            payment = self._get_row(current.id)

        with LogContext.bind(payment_id=payment.id, quote_id=payment.quote_id):
            if transition.marks_paid:
                logger.info(
                    "payment_marked_paid",
                    extra={
                        "payment_method": payment.payment_method,
                        "value": payment.value,
                    },
                )
            elif (
                current.status == PaymentStatus.PAID
                and payment.status == PaymentStatus.PENDING
            ):
                logger.info(
                    "payment_reverted_to_pending",
                    extra={"cleared_paid_at": clear_paid_at},
                )
            logger.debug("payment_updated", extra={"fields": sorted(patch)})
        return payment

    def mark_as_paid(
        self, payment_id: UUID, payment_method: PaymentMethod | str
    ) -> PaymentInfo:
        """
        Confirm that a payment was received.

        Raises:
            InvalidTransitionError: If no method is given.  The payment
                stays as it was.
        """
        return self.update_payment(
            payment_id, status=PaymentStatus.PAID, payment_method=payment_method
        )

    def revert_to_pending(
        self, payment_id: UUID, clear_paid_at: bool = False
    ) -> PaymentInfo:
        """Move a payment back to pending; paid_at survives unless cleared."""
        return self.update_payment(
            payment_id, status=PaymentStatus.PENDING, clear_paid_at=clear_paid_at
        )

    def delete_payment(self, payment_id: UUID) -> None:
        """
        Delete a payment.

        Raises:
            RowNotFoundError: If the payment does not exist for this account.
        """
        self.store.delete(Table.PAYMENTS, payment_id)
        with LogContext.bind(payment_id=payment_id):
            logger.info("payment_deleted")
