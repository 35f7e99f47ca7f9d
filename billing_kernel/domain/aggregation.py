"""
Aggregation -- monthly financial summary and recent-activity feed.

Responsibility:
    Computes, on demand, read-only rollups over the current payment and
    quote collections of one account.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Callers supply the
    rows (already parsed into DTOs) and the explicit window; nothing here
    reads the wall clock.

Invariants enforced:
    - Half-open windows: a row counts iff ``start <= created_at < end``.
    - Exact decimal sums through MoneyAccumulator; zero-value rows are
      counted, never filtered.
    - Recent activity ordering is total: created_at descending, then id
      descending, so equal timestamps still give a stable answer.

Failure modes:
    - InvalidWindowError when ``window_start >= window_end``.
    - Nothing else: empty collections produce zero sums and an empty feed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo

from billing_kernel.domain.dtos import PaymentInfo, QuoteInfo
from billing_kernel.domain.statuses import PaymentStatus, QuoteStatus
from billing_kernel.domain.values import MoneyAccumulator, ensure_aware
from billing_kernel.exceptions import InvalidWindowError

DEFAULT_RECENT_LIMIT = 5


@dataclass(frozen=True)
class MonthlySummary:
    """Money received, still pending and lost within one window."""

    window_start: datetime
    window_end: datetime
    received: Decimal
    pending: Decimal
    lost_this_month: Decimal
    received_count: int = 0
    pending_count: int = 0
    lost_count: int = 0

    @property
    def expected_total(self) -> Decimal:
        """Received plus still-pending money for the window."""
        return self.received + self.pending


def _in_window(moment: datetime, start: datetime, end: datetime) -> bool:
    return start <= ensure_aware(moment) < end


def monthly_summary(
    payments: Iterable[PaymentInfo],
    quotes: Iterable[QuoteInfo],
    window_start: datetime,
    window_end: datetime,
) -> MonthlySummary:
    """
    Sum paid, pending and lost money created inside ``[window_start, window_end)``.

    Args:
        payments: Current payments of the account.
        quotes: Current quotes of the account.
        window_start: Inclusive lower bound (naive values are read as UTC).
        window_end: Exclusive upper bound.

    Returns:
        MonthlySummary with quantized two-decimal totals.

    Raises:
        InvalidWindowError: If the window is empty or inverted.
    """
    start = ensure_aware(window_start)
    end = ensure_aware(window_end)
    if start >= end:
        raise InvalidWindowError(start.isoformat(), end.isoformat())

    received = MoneyAccumulator()
    pending = MoneyAccumulator()
    lost = MoneyAccumulator()

    for payment in payments:
        if not _in_window(payment.created_at, start, end):
            continue
        if payment.status == PaymentStatus.PAID:
            received.add(payment.value)
        elif payment.status == PaymentStatus.PENDING:
            pending.add(payment.value)

    for quote in quotes:
        if quote.status == QuoteStatus.LOST and _in_window(quote.created_at, start, end):
            lost.add(quote.value)

    return MonthlySummary(
        window_start=start,
        window_end=end,
        received=received.total,
        pending=pending.total,
        lost_this_month=lost.total,
        received_count=received.count,
        pending_count=pending.count,
        lost_count=lost.count,
    )


def recent_activity(
    payments: Iterable[PaymentInfo],
    limit: int = DEFAULT_RECENT_LIMIT,
) -> list[PaymentInfo]:
    """
    Return the ``limit`` most recently created payments, newest first.

    Not windowed.  Ties on ``created_at`` are broken by id (descending).
    A non-positive limit yields an empty list.
    """
    if limit <= 0:
        return []
    ordered = sorted(
        payments,
        key=lambda p: (ensure_aware(p.created_at), str(p.id)),
        reverse=True,
    )
    return ordered[:limit]


def month_window(year: int, month: int, tz: str | ZoneInfo = "UTC") -> tuple[datetime, datetime]:
    """
    Half-open calendar-month window in the given reporting timezone.

    Returns:
        (first instant of the month, first instant of the next month),
        both aware in ``tz``.

    Raises:
        ValueError: If month is not 1..12.
    """
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    start = datetime.combine(date(year, month, 1), time.min, tzinfo=zone)
    if month == 12:
        end = datetime.combine(date(year + 1, 1, 1), time.min, tzinfo=zone)
    else:
        end = datetime.combine(date(year, month + 1, 1), time.min, tzinfo=zone)
    return start, end


def window_containing(moment: datetime, tz: str | ZoneInfo = "UTC") -> tuple[datetime, datetime]:
    """Calendar-month window (in ``tz``) that contains ``moment``."""
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    local = ensure_aware(moment).astimezone(zone)
    return month_window(local.year, local.month, zone)
