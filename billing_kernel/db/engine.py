"""
Module: billing_kernel.db.engine
Responsibility: the process-wide SQLAlchemy engine and session factory
    used by ``SqlEntityStore``, plus the commit-or-rollback unit of work.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from store/, services/, selectors/ or domain/ (create_tables
    imports models/ lazily so that Base.metadata is populated).

Invariants enforced:
    - Referential integrity is the database's job.  PostgreSQL enforces it
      natively; SQLite connections get ``PRAGMA foreign_keys=ON`` on
      connect so deleting a referenced client is rejected there too.
    - On SQLite, SQLAlchemy (not pysqlite) emits BEGIN IMMEDIATE, so
      SAVEPOINTs opened by the store nest inside the outer transaction and
      a second writer waits (up to the busy timeout) instead of failing
      with "database is locked" when it upgrades its lock.  SQLite ignores
      FOR UPDATE; this is what serializes ``lock_row`` there.
    - In-memory SQLite URLs share one connection (StaticPool) so every
      session sees the same database.

Failure modes:
    - RuntimeError from any accessor called before an ``init_engine_*``.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from billing_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_on_connect(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    dbapi_connection.isolation_level = None


def _sqlite_on_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def _engine_options(database_url: str, pool: dict[str, Any]) -> dict[str, Any]:
    if not database_url.startswith("sqlite"):
        return {"poolclass": QueuePool, **pool}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if database_url in _MEMORY_URLS:
        options["poolclass"] = StaticPool
    return options


def build_engine(database_url: str, echo: bool = False, **pool: Any) -> Engine:
    """An Engine with the SQLite listeners attached; not made process-wide."""
    engine = create_engine(database_url, echo=echo, **_engine_options(database_url, pool))
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)
    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Replaces any engine created before.  Pool arguments apply to server
    databases only; SQLite gets a per-thread-safe connection instead.

    Args:
        database_url: SQLAlchemy URL (``postgresql://...`` or ``sqlite://...``).
        echo: Log every SQL statement.

    Returns:
        The new Engine.
    """
    global _engine, _SessionFactory

    engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
    )
    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def init_engine_from_config(config) -> Engine:
    """Initialize from a KernelConfig (``database_url`` and ``sql_echo``)."""
    return init_engine_from_url(config.database_url, echo=config.sql_echo)


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    return _require_factory()


def get_session() -> Session:
    """A new Session bound to the current engine."""
    return _require_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

    Sessions come from ``factory`` when given, else from the process-wide
    factory.

    Usage:
        with session_scope() as session:
            store = SqlEntityStore(session, identity)
            QuoteService(store).delete_quote(quote_id)
    """
    session = factory() if factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from billing_kernel.db.base import Base
    import billing_kernel.models  # noqa: F401

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    """Create every table declared in billing_kernel.models."""
    _metadata().create_all(engine or get_engine())


def drop_tables() -> None:
    """Drop every table.  Tests only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
