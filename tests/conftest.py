"""
Pytest fixtures for the billing kernel test suite.

Provides:
- In-memory and SQLite-backed entity stores scoped to a test account
- A deterministic clock shared by stores and services
- Service and selector fixtures wired to the in-memory store
- Structured log capture
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.identity import StaticIdentityProvider
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.selectors.dashboard_selector import DashboardSelector
from billing_kernel.services import (
    AppointmentService,
    ClientService,
    LinkageService,
    PaymentService,
    QuoteService,
)
from billing_kernel.store.memory import InMemoryEntityStore
from billing_kernel.store.sql import SqlEntityStore
from billing_kernel.utils.locks import KeyedLock

# Start of the test month used throughout the suite.
TEST_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, quote_service):
            quote_service.change_status(quote.id, "approved")
            logs = captured_logs()
            assert any(r["message"] == "payment_linked" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: test runs real threads against a shared store"
    )
    config.addinivalue_line(
        "markers", "sql: test runs against the SQLAlchemy-backed store"
    )


# =============================================================================
# Identity, clock and stores
# =============================================================================


@pytest.fixture
def account_id():
    return uuid4()


@pytest.fixture
def identity(account_id) -> StaticIdentityProvider:
    return StaticIdentityProvider(account_id)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def memory_store(identity, clock) -> InMemoryEntityStore:
    return InMemoryEntityStore(identity, clock)


@pytest.fixture(scope="session")
def _sqlite_engine():
    """One in-memory SQLite database for the whole run."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_session(_sqlite_engine) -> Generator[Session, None, None]:
    """Session whose work is rolled back after each test."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sql_store(sql_session, identity, clock) -> SqlEntityStore:
    return SqlEntityStore(sql_session, identity, clock)


# =============================================================================
# Services and selectors (in-memory store)
# =============================================================================


@pytest.fixture
def quote_locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def linkage_service(memory_store, clock, quote_locks) -> LinkageService:
    return LinkageService(memory_store, clock, locks=quote_locks)


@pytest.fixture
def client_service(memory_store, clock) -> ClientService:
    return ClientService(memory_store, clock)


@pytest.fixture
def quote_service(memory_store, clock, linkage_service) -> QuoteService:
    return QuoteService(memory_store, clock, linkage=linkage_service)


@pytest.fixture
def payment_service(memory_store, clock, linkage_service) -> PaymentService:
    return PaymentService(memory_store, clock, linkage=linkage_service)


@pytest.fixture
def appointment_service(memory_store, clock) -> AppointmentService:
    return AppointmentService(memory_store, clock)


@pytest.fixture
def dashboard(memory_store, clock) -> DashboardSelector:
    return DashboardSelector(memory_store, clock)


@pytest.fixture
def client(client_service):
    """A client of the test account."""
    return client_service.create_client(
        name="Maria Silva",
        phone="+55 11 99999-0000",
        service_type="Ar-condicionado",
    )
