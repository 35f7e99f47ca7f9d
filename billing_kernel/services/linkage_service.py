"""
LinkageService -- keeps exactly one payment per approved quote.

Responsibility:
    Owns the 1:1 link between an approved quote and the payment derived
    from it.  Approving (or re-saving an approved) quote creates the
    payment or re-synchronizes its client, service and value.  Deleting a
    quote detaches its payments and then removes the quote.

Architecture position:
    Kernel > Services -- imperative shell.  Called by QuoteService on
    every approved save and on delete, and by PaymentService when a manual
    payment claims a quote.

Invariants enforced:
    - At most one payment carries a given non-null quote_id.  The
      read-then-write for a quote runs inside ``store.transaction()``,
      first taking the quote row's store lock (``lock_row``) and then a
      per-quote in-process lock.  The row lock serializes writers on other
      sessions or processes; the in-process lock covers threads sharing
      one store.  Locks are always taken in that order.
    - Status, payment_method and paid_at of a linked payment are never
      touched by a re-sync; only client, service and value follow the
      quote.
    - Deleting a quote never deletes a payment.  Every payment pointing at
      it has quote_id set to None first.

Failure modes:
    - DuplicateLinkError: the quote already has more than one payment.
      Nothing is written.
    - LinkageRaceError: a writer outside this process linked the quote
      between our lookup and our insert.  Our own row is removed (or was
      rejected by the unique constraint) before the error is raised.
    - StoreError subclasses propagate unchanged after the transaction
      rolls back.  There are no retries.

Audit relevance:
    Emits ``payment_linked``, ``payment_link_synced``,
    ``payment_link_unchanged`` and ``payments_unlinked``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator
from uuid import UUID, uuid4

from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import PaymentInfo, QuoteSnapshot
from billing_kernel.domain.statuses import PaymentStatus
from billing_kernel.exceptions import (
    DuplicateLinkError,
    LinkageRaceError,
    ReferentialConflictError,
    RowNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.base import BaseService
from billing_kernel.store.base import EntityStore, Table
from billing_kernel.utils.locks import KeyedLock

logger = get_logger("services.linkage")

# Process-wide registry so every service instance serializes on the same quote.
_QUOTE_LOCKS = KeyedLock()


class LinkageOutcome(str, Enum):
    """What ensure_payment_for_approved_quote did to the payment."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class LinkageResult:
    """The payment linked to the quote and how it got there."""

    payment: PaymentInfo
    outcome: LinkageOutcome

    @property
    def created(self) -> bool:
        return self.outcome == LinkageOutcome.CREATED


class LinkageService(BaseService):
    """
    Service maintaining the quote -> payment link.

    Contract:
        Both public operations are atomic with respect to the store and
        serialized per quote id.  Callers may wrap them in a wider
        ``store.transaction()``.
    """

    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        locks: KeyedLock | None = None,
    ):
        super().__init__(store, clock)
        self._locks = locks if locks is not None else _QUOTE_LOCKS

    def ensure_payment_for_approved_quote(self, quote: QuoteSnapshot) -> LinkageResult:
        """
        Create or re-sync the payment derived from an approved quote.

        Args:
            quote: Snapshot of the quote as just saved.

        Returns:
            LinkageResult with the single linked payment.

        Raises:
            DuplicateLinkError: If more than one payment already links the quote.
            LinkageRaceError: If a concurrent writer linked the quote first.
            StoreError: On store failure (all writes rolled back).
        """
        account_id = self.store.account_id("ensure_payment_for_approved_quote")
        race: LinkageRaceError | None = None

        with LogContext.bind(account_id=account_id, quote_id=quote.id):
            with self._hold(account_id, quote.id):
                linked = self._linked_payments(quote.id)
                if len(linked) > 1:
                    raise DuplicateLinkError(
                        str(quote.id), [str(p.id) for p in linked]
                    )

                if linked:
                    result = self._sync(linked[0], quote)
                else:
                    payment_id = uuid4()
                    payment = self._insert_linked(payment_id, quote)
                    result = LinkageResult(payment, LinkageOutcome.CREATED)

                    after = self._linked_payments(quote.id)
                    if len(after) > 1:
                        self.store.delete(Table.PAYMENTS, payment_id)
                        race = LinkageRaceError(str(quote.id), str(payment_id))

            if race is not None:
                logger.warning(
                    "payment_link_race",
                    extra={"discarded_payment_id": race.discarded_payment_id},
                )
                raise race

            if result.outcome == LinkageOutcome.CREATED:
                logger.info(
                    "payment_linked",
                    extra={"payment_id": result.payment.id, "value": result.payment.value},
                )
            elif result.outcome == LinkageOutcome.UPDATED:
                logger.info(
                    "payment_link_synced",
                    extra={"payment_id": result.payment.id, "value": result.payment.value},
                )
            else:
                logger.debug(
                    "payment_link_unchanged",
                    extra={"payment_id": result.payment.id},
                )
            return result

    def unlink_payments_for_deleted_quote(self, quote_id: UUID) -> int:
        """
        Detach every payment from a quote, then delete the quote.

        Payments keep every other field.  A quote that is already gone is
        not an error: the unlink still runs and the count is returned.

        Args:
            quote_id: Quote being deleted.

        Returns:
            Number of payments whose quote_id was cleared.
        """
        account_id = self.store.account_id("unlink_payments_for_deleted_quote")

        with LogContext.bind(account_id=account_id, quote_id=quote_id):
            with self._hold(account_id, quote_id) as present:
                unlinked = self.store.update_where(
                    Table.PAYMENTS, {"quote_id": quote_id}, {"quote_id": None}
                )
                if present:
                    self.store.delete(Table.QUOTES, quote_id)
                else:
                    logger.info("quote_already_deleted")

            logger.info("payments_unlinked", extra={"unlinked": unlinked})
            return unlinked

    @contextmanager
    def claim_quote(
        self, quote_id: UUID, payment_id: UUID | None = None
    ) -> Iterator[None]:
        """
        Hold a quote so a manual payment can link it.

        Opens a transaction, takes the quote's lock and checks that the
        quote exists and that no payment other than ``payment_id`` links
        it.  The caller writes its payment inside the ``with`` body.

        Raises:
            RowNotFoundError: If the quote does not exist.
            DuplicateLinkError: If another payment already links the quote.
        """
        account_id = self.store.account_id("claim_quote")
        with self._hold(account_id, quote_id) as present:
            if not present:
                raise RowNotFoundError(Table.QUOTES.value, str(quote_id))
            others = [p for p in self._linked_payments(quote_id) if p.id != payment_id]
            if others:
                raise DuplicateLinkError(str(quote_id), [str(p.id) for p in others])
            yield

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _hold(self, account_id: UUID, quote_id: UUID) -> Iterator[bool]:
        """Transaction plus both quote locks; yields whether the quote row exists."""
        with self.store.transaction():
            present = self.store.lock_row(Table.QUOTES, quote_id)
            with self._locks.hold((account_id, quote_id)):
                yield present

    def _linked_payments(self, quote_id: UUID) -> list[PaymentInfo]:
        rows = self.store.list(Table.PAYMENTS, {"quote_id": quote_id})
        return [PaymentInfo.from_row(row) for row in rows]

    def _insert_linked(self, payment_id: UUID, quote: QuoteSnapshot) -> PaymentInfo:
        try:
            row = self.store.insert(
                Table.PAYMENTS,
                {
                    "id": payment_id,
                    "quote_id": quote.id,
                    "client_id": quote.client_id,
                    "client_name": quote.client_name,
                    "service": quote.service,
                    "value": quote.value,
                    "status": PaymentStatus.PENDING.value,
                    "payment_method": None,
                    "paid_at": None,
                },
            )
        except ReferentialConflictError as exc:
            # The unique constraint on quote_id rejected us: someone else won.
            if not self._linked_payments(quote.id):
                raise
            raise LinkageRaceError(str(quote.id), str(payment_id)) from exc
        return PaymentInfo.from_row(row)

    def _sync(self, current: PaymentInfo, quote: QuoteSnapshot) -> LinkageResult:
        patch = {}
        if current.client_id != quote.client_id:
            patch["client_id"] = quote.client_id
        if current.client_name != quote.client_name:
            patch["client_name"] = quote.client_name
        if current.service != quote.service:
            patch["service"] = quote.service
        if current.value != quote.value:
            patch["value"] = quote.value

        if not patch:
            return LinkageResult(current, LinkageOutcome.UNCHANGED)

        self.store.update(Table.PAYMENTS, current.id, patch)
        refreshed = PaymentInfo.from_row(self.store.get(Table.PAYMENTS, current.id))
        return LinkageResult(refreshed, LinkageOutcome.UPDATED)
