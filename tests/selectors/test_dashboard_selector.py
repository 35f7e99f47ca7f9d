"""
Tests for DashboardSelector: store rows in, dashboard figures out.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from billing_kernel.exceptions import UnknownStatusError
from billing_kernel.selectors.dashboard_selector import DashboardSelector
from billing_kernel.store.base import Table

UTC = timezone.utc


@pytest.fixture
def january_book(quote_service, payment_service, client, clock):
    """paid 500 + 300, pending 200 + 150, one lost quote of 500, all in January 2024."""
    for value in ("500", "300"):
        payment = payment_service.create_payment(client.id, "Serviço", value)
        payment_service.mark_as_paid(payment.id, "pix")
        clock.advance(60)
    for value in ("200", "150"):
        payment_service.create_payment(client.id, "Serviço", value)
        clock.advance(60)
    quote_service.create_quote(client.id, "Perdido", "500", status="lost")


class TestMonthlySummary:
    """Tests for monthly_summary / current_month_summary."""

    def test_reference_scenario(self, dashboard, january_book):
        summary = dashboard.monthly_summary(2024, 1)
        assert summary.received == Decimal("800.00")
        assert summary.pending == Decimal("350.00")
        assert summary.lost_this_month == Decimal("500.00")

    def test_other_month_is_empty(self, dashboard, january_book):
        summary = dashboard.monthly_summary(2024, 2)
        assert summary.received == summary.pending == summary.lost_this_month == Decimal("0.00")

    def test_current_month_uses_clock(self, dashboard, january_book):
        assert dashboard.current_month_summary().received == Decimal("800.00")

    def test_reporting_timezone(self, memory_store, clock, client):
        """A payment at 01:00 UTC on Feb 1 is January in Sao Paulo."""
        memory_store.insert(
            Table.PAYMENTS,
            {
                "client_id": client.id,
                "client_name": client.name,
                "service": "s",
                "value": "70",
                "created_at": datetime(2024, 2, 1, 1, 0, tzinfo=UTC),
            },
        )
        local = DashboardSelector(memory_store, clock, timezone="America/Sao_Paulo")
        utc = DashboardSelector(memory_store, clock)
        assert local.monthly_summary(2024, 1).pending == Decimal("70.00")
        assert utc.monthly_summary(2024, 1).pending == Decimal("0.00")

    def test_unknown_status_in_store_fails_loudly(self, dashboard, memory_store, client):
        """A row with an unknown status is rejected, never summed as zero."""
        memory_store.insert(
            Table.PAYMENTS,
            {"client_name": client.name, "service": "s", "value": "1", "status": "refunded"},
        )
        with pytest.raises(UnknownStatusError):
            dashboard.monthly_summary(2024, 1)


class TestRecentActivity:
    """Tests for recent_activity."""

    def test_default_limit(self, payment_service, client, clock, dashboard):
        created = []
        for i in range(6):
            created.append(payment_service.create_payment(client.id, f"S{i}", "1"))
            clock.advance(60)

        recent = dashboard.recent_activity()

        assert [p.id for p in recent] == [p.id for p in reversed(created)][:5]

    def test_explicit_limit(self, payment_service, client, dashboard):
        payment_service.create_payment(client.id, "S", "1")
        assert dashboard.recent_activity(limit=0) == []

    def test_from_config(self, memory_store, clock):
        config = SimpleNamespace(reporting_timezone="America/Sao_Paulo", recent_activity_limit=2)
        selector = DashboardSelector.from_config(memory_store, config, clock=clock)
        assert selector.recent_limit == 2
        assert str(selector.timezone) == "America/Sao_Paulo"
