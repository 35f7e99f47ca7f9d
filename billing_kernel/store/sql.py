"""
SqlEntityStore -- EntityStore over the SQLAlchemy ORM models.

Responsibility:
    Maps gateway calls onto the ``billing_kernel.models`` tables inside a
    caller-owned Session.  Every write runs in its own SAVEPOINT and is
    flushed, never committed; the caller (``session_scope`` or a test
    fixture) owns the outer transaction.

Architecture position:
    Kernel > Store.  The only module outside models/ and db/ that imports
    SQLAlchemy.

Invariants enforced:
    - Account scoping: every statement carries ``account_id = :current``.
    - Error translation: ``IntegrityError`` -> ReferentialConflictError,
      any other ``DBAPIError`` -> StoreUnavailableError.  SQLAlchemy
      exceptions never escape.
    - Timestamps are written in UTC and read back timezone-aware.

Failure modes:
    - ReferentialConflictError when a foreign key or the payments.quote_id
      unique constraint rejects the write.  The savepoint is rolled back,
      so the session stays usable.
    - StoreUnavailableError on connection or operational failures.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.db.base import OwnedBase
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.identity import IdentityProvider
from billing_kernel.domain.values import ensure_aware
from billing_kernel.exceptions import (
    ReferentialConflictError,
    RowNotFoundError,
    StoreUnavailableError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models import Appointment, Client, Payment, Quote
from billing_kernel.store.base import (
    MOMENT_COLUMNS,
    EntityStore,
    Filters,
    Row,
    Table,
)

logger = get_logger("store.sql")

MODELS: dict[Table, type[OwnedBase]] = {
    Table.CLIENTS: Client,
    Table.QUOTES: Quote,
    Table.PAYMENTS: Payment,
    Table.APPOINTMENTS: Appointment,
}


class SqlEntityStore(EntityStore):
    """
    EntityStore backed by a SQLAlchemy Session.

    Contract:
        Flush-only.  ``transaction()`` opens a SAVEPOINT so that a failing
        unit of work inside a larger session rolls back on its own.
    """

    def __init__(
        self,
        session: Session,
        identity: IdentityProvider,
        clock: Clock | None = None,
    ):
        super().__init__(identity, clock)
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, table: Table, filters: Filters | None = None) -> list[Row]:
        account_id = self.account_id(f"list {table.value}")
        model = MODELS[table]
        conditions = [
            getattr(model, name) == value
            for name, value in self._normalize(filters or {}).items()
        ]
        stmt = (
            select(model)
            .where(model.account_id == account_id, *conditions)
            .order_by(model.created_at, model.id)
        )
        with self._guard("list", table):
            return [self._to_row(obj) for obj in self.session.scalars(stmt).all()]

    def get(self, table: Table, row_id: UUID) -> Row:
        account_id = self.account_id(f"get {table.value}")
        with self._guard("get", table):
            return self._to_row(self._load(table, account_id, row_id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        account_id = self.account_id(f"insert {table.value}")
        values = self._normalize(self._prepare_insert(table, row))
        now = self.clock.now()
        stamps = self._normalize(
            {
                "id": row.get("id") or uuid4(),
                "created_at": row.get("created_at") or now,
                "updated_at": now,
            }
        )
        obj = MODELS[table](account_id=account_id, **stamps, **values)
        with self._guard("insert", table, stamps["id"]):
            with self.session.begin_nested():
                self.session.add(obj)
                self.session.flush()
        return self._to_row(obj)

    def update(self, table: Table, row_id: UUID, patch: Mapping[str, Any]) -> None:
        account_id = self.account_id(f"update {table.value}")
        self._check_patch(table, patch)
        values = self._normalize({**patch, "updated_at": self.clock.now()})
        with self._guard("update", table, row_id):
            obj = self._load(table, account_id, row_id)
            with self.session.begin_nested():
                for name, value in values.items():
                    setattr(obj, name, value)
                self.session.flush()

    def update_where(
        self, table: Table, filters: Filters, patch: Mapping[str, Any]
    ) -> int:
        account_id = self.account_id(f"update {table.value}")
        self._check_patch(table, patch)
        model = MODELS[table]
        conditions = [
            getattr(model, name) == value
            for name, value in self._normalize(filters).items()
        ]
        values = self._normalize({**patch, "updated_at": self.clock.now()})
        stmt = (
            update(model)
            .where(model.account_id == account_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        with self._guard("update_where", table):
            with self.session.begin_nested():
                result = self.session.execute(stmt)
        return result.rowcount

    def delete(self, table: Table, row_id: UUID) -> None:
        account_id = self.account_id(f"delete {table.value}")
        with self._guard("delete", table, row_id):
            obj = self._load(table, account_id, row_id)
            with self.session.begin_nested():
                self.session.delete(obj)
                self.session.flush()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._guard("transaction", None):
            with self.session.begin_nested():
                yield

    def lock_row(self, table: Table, row_id: UUID) -> bool:
        account_id = self.account_id(f"lock {table.value}")
        model = MODELS[table]
        try:
            key = self._normalize({"id": row_id})["id"]
        except ValueError:
            return False
        # SQLite drops FOR UPDATE; BEGIN IMMEDIATE (db.engine) serializes there.
        stmt = (
            select(model.id)
            .where(model.id == key, model.account_id == account_id)
            .with_for_update()
        )
        with self._guard("lock_row", table, key):
            return self.session.execute(stmt).first() is not None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, table: Table, account_id: UUID, row_id: UUID | str) -> OwnedBase:
        model = MODELS[table]
        try:
            key = self._normalize({"id": row_id})["id"]
        except ValueError:
            raise RowNotFoundError(table.value, str(row_id)) from None
        obj = self.session.scalars(
            select(model).where(model.id == key, model.account_id == account_id)
        ).one_or_none()
        if obj is None:
            raise RowNotFoundError(table.value, str(row_id))
        return obj

    @staticmethod
    def _to_row(obj: OwnedBase) -> Row:
        row: Row = {}
        for column in obj.__table__.columns:
            value = getattr(obj, column.key)
            if column.key in MOMENT_COLUMNS and value is not None:
                value = ensure_aware(value)
            row[column.key] = value
        return row

    @contextmanager
    def _guard(
        self, operation: str, table: Table | None, row_id: UUID | str | None = None
    ) -> Iterator[None]:
        table_name = table.value if table is not None else "*"
        try:
            yield
        except IntegrityError as exc:
            logger.warning(
                "store_integrity_conflict",
                extra={"operation": operation, "table": table_name},
            )
            raise ReferentialConflictError(
                table_name,
                str(row_id) if row_id is not None else None,
                str(exc.orig),
            ) from exc
        except DBAPIError as exc:
            logger.error(
                "store_unavailable",
                extra={"operation": operation, "table": table_name},
            )
            raise StoreUnavailableError(operation, table_name, str(exc.orig)) from exc
