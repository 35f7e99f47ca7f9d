"""
Service layer for Quote operations.

Every save whose resulting status is approved goes through the linkage
service in the same store transaction, so a quote is never left approved
without its payment.  Leaving approved keeps the payment as it is.
Deleting a quote unlinks its payments before the quote row goes away.

Returns QuoteInfo DTOs, never store rows.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from billing_kernel.db.types import to_money
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import ClientInfo, QuoteInfo
from billing_kernel.domain.statuses import QuoteStatus, parse_status
from billing_kernel.domain.transitions import plan_quote_transition
from billing_kernel.exceptions import MissingFieldError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.base import BaseService, matches_search, require_text
from billing_kernel.services.linkage_service import LinkageService
from billing_kernel.store.base import EntityStore, Table

logger = get_logger("services.quote")


class QuoteService(BaseService):
    """
    Service for managing quotes.

    Handles create, edit, status change and delete.  Approval side
    effects are delegated to LinkageService.
    """

    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        linkage: LinkageService | None = None,
    ):
        super().__init__(store, clock)
        self.linkage = linkage or LinkageService(store, self.clock)

    def _get_row(self, quote_id: UUID) -> QuoteInfo:
        return QuoteInfo.from_row(self.store.get(Table.QUOTES, quote_id))

    def _client(self, client_id: UUID | None) -> ClientInfo:
        if client_id is None:
            raise MissingFieldError("quote", "client_id")
        return ClientInfo.from_row(self.store.get(Table.CLIENTS, client_id))

    def get_quote(self, quote_id: UUID) -> QuoteInfo:
        """
        Get quote by ID.

        Raises:
            RowNotFoundError: If the quote does not exist for this account.
        """
        return self._get_row(quote_id)

    def list_quotes(self, search: str | None = None) -> list[QuoteInfo]:
        """
        List quotes, newest first.

        Args:
            search: Optional case-insensitive filter on client name or service.
        """
        quotes = [QuoteInfo.from_row(row) for row in self.store.list(Table.QUOTES)]
        quotes.sort(key=lambda q: (q.created_at, str(q.id)), reverse=True)
        return [q for q in quotes if matches_search(search, q.client_name, q.service)]

    def approved_quotes_for_client(self, client_id: UUID) -> list[QuoteInfo]:
        """Approved quotes of one client: the ones a manual payment may reference."""
        rows = self.store.list(
            Table.QUOTES,
            {"client_id": client_id, "status": QuoteStatus.APPROVED.value},
        )
        quotes = [QuoteInfo.from_row(row) for row in rows]
        quotes.sort(key=lambda q: (q.created_at, str(q.id)), reverse=True)
        return quotes

    def create_quote(
        self,
        client_id: UUID,
        service: str,
        value: Decimal | str | int,
        status: QuoteStatus | str = QuoteStatus.SENT,
    ) -> QuoteInfo:
        """
        Create a quote for a client.

        The client's current name is copied onto the quote.  A quote created
        as approved gets its payment in the same transaction.

        Args:
            client_id: Client the quote is for.
            service: Description of the work.
            value: Non-negative amount.
            status: Initial status (default sent).

        Returns:
            Created QuoteInfo.

        Raises:
            MissingFieldError: If client_id or service is missing.
            InvalidAmountError: If value is negative or not a number.
            UnknownStatusError: If status is not a quote status.
            RowNotFoundError: If the client does not exist.
        """
        target = parse_status(QuoteStatus, status, "quote status")
        transition = plan_quote_transition(None, target)
        service = require_text("quote", "service", service)
        amount = to_money(value)
        client = self._client(client_id)

        with self.store.transaction():
            row = self.store.insert(
                Table.QUOTES,
                {
                    "client_id": client.id,
                    "client_name": client.name,
                    "service": service,
                    "value": amount,
                    "status": target.value,
                },
            )
            quote = QuoteInfo.from_row(row)
            if transition.requires_payment_sync:
                self.linkage.ensure_payment_for_approved_quote(quote.snapshot())

        with LogContext.bind(quote_id=quote.id):
            logger.info(
                "quote_created",
                extra={"status": quote.status.value, "value": quote.value},
            )
        return quote

    def update_quote(
        self,
        quote_id: UUID,
        *,
        client_id: UUID | None = None,
        service: str | None = None,
        value: Decimal | str | int | None = None,
        status: QuoteStatus | str | None = None,
    ) -> QuoteInfo:
        """
        Edit a quote.

        Omitted arguments keep their stored value.  Passing ``client_id``
        re-takes the client's current name.  If the quote is approved after
        the edit, its payment is created or re-synchronized.

        Raises:
            RowNotFoundError: If the quote (or the new client) does not exist.
            InvalidAmountError / UnknownStatusError / MissingFieldError:
                On invalid input; nothing is written.
        """
        current = self._get_row(quote_id)
        target = (
            parse_status(QuoteStatus, status, "quote status")
            if status is not None
            else current.status
        )
        transition = plan_quote_transition(current.status, target)

        patch: dict = {"status": target.value}
        if service is not None:
            patch["service"] = require_text("quote", "service", service)
        if value is not None:
            patch["value"] = to_money(value)
        if client_id is not None:
            client = self._client(client_id)
            patch["client_id"] = client.id
            patch["client_name"] = client.name

        with self.store.transaction():
            self.store.update(Table.QUOTES, current.id, patch)
            quote = self._get_row(current.id)
            if transition.requires_payment_sync:
                self.linkage.ensure_payment_for_approved_quote(quote.snapshot())

        with LogContext.bind(quote_id=quote.id):
            if transition.leaves_approved:
                logger.info(
                    "quote_approval_reversed",
                    extra={"status": quote.status.value},
                )
            logger.info(
                "quote_updated",
                extra={
                    "from_status": current.status.value,
                    "status": quote.status.value,
                    "value": quote.value,
                },
            )
        return quote

    def change_status(self, quote_id: UUID, status: QuoteStatus | str) -> QuoteInfo:
        """Change only the status of a quote (approving runs the linkage)."""
        return self.update_quote(quote_id, status=status)

    def delete_quote(self, quote_id: UUID) -> int:
        """
        Delete a quote, keeping its payments.

        Returns:
            Number of payments that were unlinked from the quote.
        """
        return self.linkage.unlink_payments_for_deleted_quote(quote_id)
