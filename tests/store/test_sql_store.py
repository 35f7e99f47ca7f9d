"""
Tests specific to SqlEntityStore: the payments.quote_id unique constraint,
savepoint recovery and error translation.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from billing_kernel.exceptions import ReferentialConflictError, StoreUnavailableError
from billing_kernel.store.base import Table

pytestmark = pytest.mark.sql


def _payment_row(**overrides):
    row = {"client_name": "Maria Silva", "service": "Limpeza", "value": "100"}
    row.update(overrides)
    return row


class TestQuoteIdUniqueness:
    """At most one payment row per non-null quote_id."""

    def test_second_link_rejected(self, sql_store):
        quote_id = uuid4()
        sql_store.insert(Table.PAYMENTS, _payment_row(quote_id=quote_id))

        with pytest.raises(ReferentialConflictError):
            sql_store.insert(Table.PAYMENTS, _payment_row(quote_id=quote_id))

        assert len(sql_store.list(Table.PAYMENTS, {"quote_id": quote_id})) == 1

    def test_many_unlinked_payments_allowed(self, sql_store):
        """NULL quote_ids never collide."""
        for _ in range(3):
            sql_store.insert(Table.PAYMENTS, _payment_row())
        assert len(sql_store.list(Table.PAYMENTS, {"quote_id": None})) == 3


class TestErrorTranslation:
    """SQLAlchemy errors never escape the store."""

    def test_operational_error_becomes_unavailable(self, sql_store, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(sql_store.session, "scalars", broken)

        with pytest.raises(StoreUnavailableError) as exc_info:
            sql_store.list(Table.CLIENTS)
        assert exc_info.value.operation == "list"
        assert exc_info.value.table == "clients"

    def test_aware_timestamps(self, sql_store, clock):
        """Timestamps come back timezone-aware even from SQLite."""
        row = sql_store.insert(Table.PAYMENTS, _payment_row())
        sql_store.session.expire_all()
        stored = sql_store.get(Table.PAYMENTS, row["id"])
        assert stored["created_at"].tzinfo is not None
        assert stored["created_at"] == clock.now()
