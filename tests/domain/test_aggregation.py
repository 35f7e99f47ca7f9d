"""
Tests for the monthly summary and recent-activity feed.

Verifies:
- Bucket sums over a half-open window (received / pending / lost)
- Window boundaries: start included, end excluded
- Exact decimals and zero-value rows
- Recent activity ordering and limits
- Calendar-month windows in a reporting timezone
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest

from billing_kernel.domain.aggregation import (
    month_window,
    monthly_summary,
    recent_activity,
    window_containing,
)
from billing_kernel.domain.dtos import PaymentInfo, QuoteInfo
from billing_kernel.domain.statuses import PaymentMethod, PaymentStatus, QuoteStatus
from billing_kernel.exceptions import InvalidWindowError

UTC = timezone.utc
START = datetime(2024, 1, 1, tzinfo=UTC)
END = datetime(2024, 2, 1, tzinfo=UTC)
MID = datetime(2024, 1, 10, 9, 30, tzinfo=UTC)


def make_payment(
    value: str,
    status: PaymentStatus = PaymentStatus.PENDING,
    created_at: datetime = MID,
    payment_id: UUID | None = None,
) -> PaymentInfo:
    paid = status == PaymentStatus.PAID
    return PaymentInfo(
        id=payment_id or uuid4(),
        quote_id=None,
        client_id=None,
        client_name="Maria",
        service="Limpeza",
        value=Decimal(value),
        status=status,
        payment_method=PaymentMethod.PIX if paid else None,
        paid_at=created_at if paid else None,
        created_at=created_at,
        updated_at=created_at,
    )


def make_quote(
    value: str,
    status: QuoteStatus = QuoteStatus.SENT,
    created_at: datetime = MID,
) -> QuoteInfo:
    return QuoteInfo(
        id=uuid4(),
        client_id=None,
        client_name="Maria",
        service="Limpeza",
        value=Decimal(value),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


class TestMonthlySummary:
    """Tests for monthly_summary."""

    def test_reference_scenario(self):
        """paid 500+300, pending 200+150, lost 500 -> 800 / 350 / 500."""
        payments = [
            make_payment("500", PaymentStatus.PAID),
            make_payment("300", PaymentStatus.PAID),
            make_payment("200"),
            make_payment("150"),
        ]
        quotes = [
            make_quote("500", QuoteStatus.LOST),
            make_quote("900", QuoteStatus.APPROVED),
            make_quote("120", QuoteStatus.SENT),
        ]

        summary = monthly_summary(payments, quotes, START, END)

        assert summary.received == Decimal("800.00")
        assert summary.pending == Decimal("350.00")
        assert summary.lost_this_month == Decimal("500.00")
        assert summary.expected_total == Decimal("1150.00")
        assert (summary.received_count, summary.pending_count, summary.lost_count) == (2, 2, 1)

    def test_row_one_second_before_start_excluded(self):
        """A payment created just before the window does not count."""
        payments = [
            make_payment("100", PaymentStatus.PAID, created_at=START - timedelta(seconds=1)),
            make_payment("40", PaymentStatus.PAID, created_at=START),
        ]
        summary = monthly_summary(payments, [], START, END)
        assert summary.received == Decimal("40.00")
        assert summary.received_count == 1

    def test_end_is_exclusive(self):
        """A row created exactly at window_end belongs to the next window."""
        payments = [make_payment("10", created_at=END)]
        quotes = [make_quote("10", QuoteStatus.LOST, created_at=END)]
        summary = monthly_summary(payments, quotes, START, END)
        assert summary.pending == Decimal("0.00")
        assert summary.lost_this_month == Decimal("0.00")

    def test_zero_value_rows_counted(self):
        """A 0.00 payment adds nothing but is counted."""
        summary = monthly_summary([make_payment("0", PaymentStatus.PAID)], [], START, END)
        assert summary.received == Decimal("0.00")
        assert summary.received_count == 1

    def test_exact_decimal_sums(self):
        """Thirty payments of 0.10 sum to exactly 3.00."""
        payments = [make_payment("0.10") for _ in range(30)]
        summary = monthly_summary(payments, [], START, END)
        assert summary.pending == Decimal("3.00")

    def test_empty_inputs(self):
        """No rows -> zeros everywhere."""
        summary = monthly_summary([], [], START, END)
        assert summary.received == summary.pending == summary.lost_this_month == Decimal("0.00")
        assert summary.received_count == summary.pending_count == summary.lost_count == 0

    def test_naive_datetimes_read_as_utc(self):
        """Naive created_at values are compared as UTC."""
        payments = [make_payment("5", created_at=datetime(2024, 1, 31, 23, 59, 59))]
        summary = monthly_summary(payments, [], START, END)
        assert summary.pending == Decimal("5.00")

    @pytest.mark.parametrize("end", [START, START - timedelta(days=1)])
    def test_invalid_window(self, end):
        """start >= end raises InvalidWindowError."""
        with pytest.raises(InvalidWindowError) as exc_info:
            monthly_summary([], [], START, end)
        assert exc_info.value.code == "INVALID_WINDOW"


class TestRecentActivity:
    """Tests for recent_activity."""

    def test_newest_first_limited(self):
        """Six payments at T1..T6 -> T6, T5, T4, T3, T2."""
        base = datetime(2024, 1, 1, tzinfo=UTC)
        payments = [make_payment("1", created_at=base + timedelta(hours=i)) for i in range(1, 7)]

        recent = recent_activity(payments, limit=5)

        assert [p.created_at for p in recent] == [
            base + timedelta(hours=i) for i in (6, 5, 4, 3, 2)
        ]

    def test_not_windowed(self):
        """Old payments still appear when they are the most recent ones."""
        old = make_payment("1", created_at=datetime(2019, 5, 1, tzinfo=UTC))
        assert recent_activity([old]) == [old]

    def test_ties_broken_by_id_descending(self):
        """Equal created_at values are ordered by id, descending."""
        low = make_payment("1", payment_id=UUID(int=1))
        high = make_payment("1", payment_id=UUID(int=2))
        assert recent_activity([low, high]) == [high, low]
        assert recent_activity([high, low]) == [high, low]

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_limit(self, limit):
        """limit <= 0 returns an empty list."""
        assert recent_activity([make_payment("1")], limit=limit) == []

    def test_fewer_rows_than_limit(self):
        """All rows are returned when there are fewer than limit."""
        payments = [make_payment("1"), make_payment("2")]
        assert len(recent_activity(payments, limit=5)) == 2

    def test_empty(self):
        assert recent_activity([]) == []


class TestMonthWindow:
    """Tests for calendar-month windows."""

    def test_utc_month(self):
        """January in UTC is [Jan 1, Feb 1)."""
        start, end = month_window(2024, 1)
        assert start == datetime(2024, 1, 1, tzinfo=UTC)
        assert end == datetime(2024, 2, 1, tzinfo=UTC)

    def test_december_rolls_year(self):
        """December ends at January 1 of the next year."""
        _, end = month_window(2023, 12)
        assert end == datetime(2024, 1, 1, tzinfo=UTC)

    def test_reporting_timezone(self):
        """Month boundaries follow the reporting timezone."""
        start, _ = month_window(2024, 3, "America/Sao_Paulo")
        assert start.utcoffset() == timedelta(hours=-3)
        assert start.astimezone(UTC) == datetime(2024, 3, 1, 3, 0, tzinfo=UTC)

    def test_invalid_month(self):
        """Month 13 is rejected."""
        with pytest.raises(ValueError):
            month_window(2024, 13)

    def test_window_containing_crosses_midnight(self):
        """00:30 UTC on Feb 1 is still January in Sao Paulo."""
        moment = datetime(2024, 2, 1, 0, 30, tzinfo=UTC)
        start, end = window_containing(moment, ZoneInfo("America/Sao_Paulo"))
        assert (start.year, start.month) == (2024, 1)
        assert start <= moment < end

    def test_window_containing_utc(self):
        """The window contains the moment it was built from."""
        start, end = window_containing(MID)
        assert start == START and end == END
