"""
InMemoryEntityStore -- dict-backed EntityStore for tests and scripts.

Rows live in one dict per table, keyed by id, and carry their account_id.
Transactions snapshot the tables on entry and restore the snapshot if the
body raises; nested transactions stack snapshots.  One re-entrant lock
covers every operation and every open transaction, so readers only ever
see committed rows, and every row handed out is a deep copy.

Integrity mirrors the hosted backend the kernel was built against:
client references are checked on write and on client delete, but nothing
enforces uniqueness of ``payments.quote_id``; that is the linkage
service's job.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping
from uuid import UUID, uuid4

from billing_kernel.domain.clock import Clock
from billing_kernel.domain.identity import IdentityProvider
from billing_kernel.exceptions import (
    ReferentialConflictError,
    RowNotFoundError,
    StoreUnavailableError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.store.base import (
    CLIENT_REFERENCING_TABLES,
    EntityStore,
    Filters,
    Row,
    Table,
)

logger = get_logger("store.memory")


class _Fault:
    __slots__ = ("operation", "table", "remaining")

    def __init__(self, operation: str, table: Table | None, remaining: int):
        self.operation = operation
        self.table = table
        self.remaining = remaining

    def matches(self, operation: str, table: Table) -> bool:
        return self.operation == operation and self.table in (None, table)


class _SharedState:
    """Tables, lock and fault plan shared by stores bound to other identities."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.tables: dict[Table, dict[UUID, Row]] = {table: {} for table in Table}
        self.snapshots: list[dict[Table, dict[UUID, Row]]] = []
        self.faults: list[_Fault] = []


class InMemoryEntityStore(EntityStore):
    """EntityStore over plain dicts; see module docstring."""

    def __init__(
        self,
        identity: IdentityProvider,
        clock: Clock | None = None,
        _state: _SharedState | None = None,
    ):
        super().__init__(identity, clock)
        self._state = _state or _SharedState()

    def with_identity(self, identity: IdentityProvider) -> InMemoryEntityStore:
        """Return a store over the same rows, scoped to another identity."""
        return InMemoryEntityStore(identity, self.clock, _state=self._state)

    # ------------------------------------------------------------------
    # Fault injection
    # ------------------------------------------------------------------

    def fail_on(self, operation: str, table: Table | None = None, times: int = 1) -> None:
        """
        Make the next ``times`` matching operations raise StoreUnavailableError.

        Args:
            operation: One of list, get, insert, update, update_where, delete,
                lock_row.
            table: Restrict the fault to one table; None matches any.
            times: How many calls fail before the fault is spent.
        """
        with self._state.lock:
            self._state.faults.append(_Fault(operation, table, times))

    def clear_faults(self) -> None:
        with self._state.lock:
            self._state.faults.clear()

    def _maybe_fail(self, operation: str, table: Table) -> None:
        for fault in self._state.faults:
            if fault.remaining > 0 and fault.matches(operation, table):
                fault.remaining -= 1
                logger.debug(
                    "store_fault_injected",
                    extra={"operation": operation, "table": table.value},
                )
                raise StoreUnavailableError(operation, table.value, "injected fault")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, table: Table, filters: Filters | None = None) -> list[Row]:
        account_id = self.account_id(f"list {table.value}")
        wanted = self._normalize(filters or {})
        with self._state.lock:
            self._maybe_fail("list", table)
            return [
                copy.deepcopy(row)
                for row in self._state.tables[table].values()
                if row["account_id"] == account_id
                and all(row.get(name) == value for name, value in wanted.items())
            ]

    def get(self, table: Table, row_id: UUID) -> Row:
        account_id = self.account_id(f"get {table.value}")
        with self._state.lock:
            self._maybe_fail("get", table)
            return copy.deepcopy(self._owned(table, account_id, row_id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        account_id = self.account_id(f"insert {table.value}")
        values = self._normalize(self._prepare_insert(table, row))
        row_id = self._normalize({"id": row.get("id") or uuid4()})["id"]
        now = self.clock.now()
        created_at = row.get("created_at") or now
        stored: Row = {
            "id": row_id,
            "account_id": account_id,
            **values,
            **self._normalize({"created_at": created_at, "updated_at": now}),
        }
        with self._state.lock:
            self._maybe_fail("insert", table)
            if row_id in self._state.tables[table]:
                raise ReferentialConflictError(table.value, str(row_id), "duplicate id")
            self._check_client_reference(table, account_id, row_id, stored)
            self._state.tables[table][row_id] = stored
            return copy.deepcopy(stored)

    def update(self, table: Table, row_id: UUID, patch: Mapping[str, Any]) -> None:
        account_id = self.account_id(f"update {table.value}")
        self._check_patch(table, patch)
        values = self._normalize(patch)
        with self._state.lock:
            self._maybe_fail("update", table)
            current = self._owned(table, account_id, row_id)
            merged = {**current, **values}
            self._check_client_reference(table, account_id, current["id"], merged)
            merged["updated_at"] = self._normalize({"updated_at": self.clock.now()})["updated_at"]
            self._state.tables[table][current["id"]] = merged

    def update_where(
        self, table: Table, filters: Filters, patch: Mapping[str, Any]
    ) -> int:
        account_id = self.account_id(f"update {table.value}")
        self._check_patch(table, patch)
        wanted = self._normalize(filters)
        values = self._normalize(patch)
        with self._state.lock:
            self._maybe_fail("update_where", table)
            stamp = self._normalize({"updated_at": self.clock.now()})["updated_at"]
            matched = [
                row
                for row in self._state.tables[table].values()
                if row["account_id"] == account_id
                and all(row.get(name) == value for name, value in wanted.items())
            ]
            for row in matched:
                self._check_client_reference(table, account_id, row["id"], {**row, **values})
            for row in matched:
                row.update(values)
                row["updated_at"] = stamp
            return len(matched)

    def delete(self, table: Table, row_id: UUID) -> None:
        account_id = self.account_id(f"delete {table.value}")
        with self._state.lock:
            self._maybe_fail("delete", table)
            current = self._owned(table, account_id, row_id)
            if table == Table.CLIENTS:
                for referencing in CLIENT_REFERENCING_TABLES:
                    for row in self._state.tables[referencing].values():
                        if row.get("client_id") == current["id"]:
                            raise ReferentialConflictError(
                                table.value,
                                str(current["id"]),
                                f"still referenced by {referencing.value} {row['id']}",
                            )
            del self._state.tables[table][current["id"]]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._state.lock:
            self._state.snapshots.append(copy.deepcopy(self._state.tables))
            try:
                yield
            except BaseException:
                self._state.tables = self._state.snapshots.pop()
                logger.debug("memory_transaction_rolled_back")
                raise
            else:
                self._state.snapshots.pop()

    def lock_row(self, table: Table, row_id: UUID) -> bool:
        # transaction() already holds the store-wide lock for its whole body.
        account_id = self.account_id(f"lock {table.value}")
        with self._state.lock:
            self._maybe_fail("lock_row", table)
            try:
                self._owned(table, account_id, row_id)
            except RowNotFoundError:
                return False
            return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _owned(self, table: Table, account_id: UUID, row_id: UUID | str) -> Row:
        try:
            key = self._normalize({"id": row_id})["id"]
        except ValueError:
            raise RowNotFoundError(table.value, str(row_id)) from None
        row = self._state.tables[table].get(key)
        if row is None or row["account_id"] != account_id:
            raise RowNotFoundError(table.value, str(row_id))
        return row

    def _check_client_reference(
        self, table: Table, account_id: UUID, row_id: UUID, row: Row
    ) -> None:
        client_id = row.get("client_id")
        if table not in CLIENT_REFERENCING_TABLES or client_id is None:
            return
        client = self._state.tables[Table.CLIENTS].get(client_id)
        if client is None or client["account_id"] != account_id:
            raise ReferentialConflictError(
                table.value, str(row_id), f"client {client_id} does not exist"
            )
