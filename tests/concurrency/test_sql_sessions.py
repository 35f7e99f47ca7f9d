"""
Concurrency tests for the quote -> payment link across SQL sessions.

Each worker gets its own Session on a file-backed SQLite database and its
own KeyedLock, as separate processes would.  Only the database row lock
taken by ``lock_row`` stands between them.

Run with: pytest tests/concurrency -v
Skip with: pytest -m "not concurrency"
"""

import time
from concurrent.futures import ThreadPoolExecutor
from threading import Event

import pytest
from sqlalchemy.orm import sessionmaker

from billing_kernel.db.engine import build_engine, create_tables, session_scope
from billing_kernel.domain.identity import StaticIdentityProvider
from billing_kernel.services import ClientService, LinkageService, QuoteService
from billing_kernel.services.linkage_service import LinkageOutcome
from billing_kernel.store.base import Table
from billing_kernel.store.sql import SqlEntityStore
from billing_kernel.utils.locks import KeyedLock

pytestmark = [pytest.mark.concurrency, pytest.mark.sql]


@pytest.fixture
def sessions(tmp_path):
    """Session factory on a fresh SQLite file."""
    engine = build_engine(f"sqlite:///{tmp_path / 'billing.db'}")
    create_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def worker(sessions, account_id, clock):
    """Build a store and linkage service as an independent process would."""
    identity = StaticIdentityProvider(account_id)

    def _build(session):
        store = SqlEntityStore(session, identity, clock)
        return store, LinkageService(store, clock, locks=KeyedLock())

    return _build


@pytest.fixture
def quote(sessions, worker):
    with session_scope(sessions) as session:
        store, linkage = worker(session)
        client = ClientService(store).create_client(
            name="Ana Souza", phone="+55 21 98888-0000", service_type="Limpeza"
        )
        return QuoteService(store, linkage=linkage).create_quote(client.id, "Limpeza", "300")


def _payments(sessions, worker, quote_id):
    with session_scope(sessions) as session:
        store, _linkage = worker(session)
        return store.list(Table.PAYMENTS, {"quote_id": quote_id})


class TestSeparateSessions:
    """Two sessions linking the same quote."""

    def test_second_session_waits_for_open_transaction(self, sessions, worker, quote):
        """
        A second ensure blocks on the first one's open transaction and then
        finds its payment, instead of failing or inserting another.
        """
        written = Event()
        snapshot = quote.snapshot()

        def first():
            with session_scope(sessions) as session:
                _store, linkage = worker(session)
                try:
                    outcome = linkage.ensure_payment_for_approved_quote(snapshot).outcome
                finally:
                    written.set()
                time.sleep(0.3)
            return outcome

        def second():
            assert written.wait(timeout=5)
            with session_scope(sessions) as session:
                _store, linkage = worker(session)
                return linkage.ensure_payment_for_approved_quote(snapshot).outcome

        with ThreadPoolExecutor(max_workers=2) as pool:
            first_future = pool.submit(first)
            second_future = pool.submit(second)
            outcomes = (first_future.result(), second_future.result())

        assert outcomes == (LinkageOutcome.CREATED, LinkageOutcome.UNCHANGED)
        assert len(_payments(sessions, worker, quote.id)) == 1

    def test_many_sessions_approve_one_quote(self, sessions, worker, quote):
        """Approvals on four sessions leave exactly one linked payment."""

        def approve(_):
            with session_scope(sessions) as session:
                store, linkage = worker(session)
                QuoteService(store, linkage=linkage).change_status(quote.id, "approved")

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(approve, range(4)))

        payments = _payments(sessions, worker, quote.id)
        assert len(payments) == 1
        assert payments[0]["status"] == "pending"

    def test_delete_waits_for_open_link(self, sessions, worker, quote):
        """Deleting the quote while a link is being written still unlinks it."""
        written = Event()
        snapshot = quote.snapshot()

        def link():
            with session_scope(sessions) as session:
                _store, linkage = worker(session)
                try:
                    linkage.ensure_payment_for_approved_quote(snapshot)
                finally:
                    written.set()
                time.sleep(0.3)

        def delete():
            assert written.wait(timeout=5)
            with session_scope(sessions) as session:
                _store, linkage = worker(session)
                return linkage.unlink_payments_for_deleted_quote(quote.id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            link_future = pool.submit(link)
            delete_future = pool.submit(delete)
            link_future.result()
            unlinked = delete_future.result()

        assert unlinked == 1
        assert _payments(sessions, worker, quote.id) == []
        assert len(_payments(sessions, worker, None)) == 1
