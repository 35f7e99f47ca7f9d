"""
EntityStore -- the row-oriented gateway to the backing store.

Responsibility:
    Defines the contract every backend must satisfy: list / get / insert /
    update / update_where / delete by table and equality filter, plus a
    transaction scope.  Rows are plain dicts keyed by column name.

Architecture position:
    Kernel > Store.  May import from db/types, domain/identity,
    domain/clock and exceptions.  Services and selectors depend on this
    contract only, never on a concrete backend.

Invariants enforced:
    - Account scoping: every operation is implicitly limited to the account
      returned by the IdentityProvider.  Rows of other accounts are
      invisible (list/get) and untouchable (update/delete).  With no
      account, every operation raises NotAuthenticatedError.
    - Store-owned fields: ``id``, ``account_id`` and ``created_at`` are set
      on insert and cannot be patched.  ``updated_at`` is stamped from the
      store's Clock on every write.
    - Error translation: backends raise only StoreError subclasses
      (RowNotFoundError, ReferentialConflictError, StoreUnavailableError).

Failure modes:
    - RowNotFoundError: get/update/delete of an id the account does not own.
    - ReferentialConflictError: integrity constraint (e.g. deleting a client
      that quotes still reference).
    - StoreUnavailableError: I/O failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from billing_kernel.db.types import to_money
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.identity import IdentityProvider, require_account
from billing_kernel.domain.values import to_utc
from billing_kernel.exceptions import MissingFieldError

Row = dict[str, Any]
Filters = Mapping[str, Any]


class Table(str, Enum):
    """Tables reachable through the gateway."""

    CLIENTS = "clients"
    QUOTES = "quotes"
    PAYMENTS = "payments"
    APPOINTMENTS = "appointments"


# Columns each table accepts on insert, with defaults for optional ones.
TABLE_COLUMNS: dict[Table, dict[str, Any]] = {
    Table.CLIENTS: {
        "name": ...,
        "phone": ...,
        "service_type": ...,
        "notes": None,
    },
    Table.QUOTES: {
        "client_id": None,
        "client_name": ...,
        "service": ...,
        "value": ...,
        "status": "sent",
    },
    Table.PAYMENTS: {
        "quote_id": None,
        "client_id": None,
        "client_name": ...,
        "service": ...,
        "value": ...,
        "status": "pending",
        "payment_method": None,
        "paid_at": None,
    },
    Table.APPOINTMENTS: {
        "title": ...,
        "client_id": None,
        "client_name": ...,
        "date": ...,
        "status": "scheduled",
        "notes": None,
    },
}

# Tables whose client_id must point at an existing client of the account.
CLIENT_REFERENCING_TABLES: tuple[Table, ...] = (
    Table.QUOTES,
    Table.PAYMENTS,
    Table.APPOINTMENTS,
)

STORE_OWNED_FIELDS = frozenset({"id", "account_id", "created_at", "updated_at"})

UUID_COLUMNS = frozenset({"id", "account_id", "client_id", "quote_id"})
MONEY_COLUMNS = frozenset({"value"})
MOMENT_COLUMNS = frozenset({"created_at", "updated_at", "paid_at", "date"})


class EntityStore(ABC):
    """
    Abstract row gateway scoped to the authenticated account.

    Contract:
        Concrete stores receive an IdentityProvider (and optionally a Clock)
        and implement the seven operations below.  All of them may raise
        StoreError subclasses; none of them retries.
    """

    def __init__(self, identity: IdentityProvider, clock: Clock | None = None):
        self.identity = identity
        self.clock = clock or SystemClock()

    def account_id(self, operation: str | None = None) -> UUID:
        """Current account id; raises NotAuthenticatedError when absent."""
        return require_account(self.identity, operation)

    @abstractmethod
    def list(self, table: Table, filters: Filters | None = None) -> list[Row]:
        """Return all rows of ``table`` matching every equality filter."""
        ...

    @abstractmethod
    def get(self, table: Table, row_id: UUID) -> Row:
        """Return one row by id; raises RowNotFoundError."""
        ...

    @abstractmethod
    def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        """Insert a row and return it with store-owned fields filled in."""
        ...

    @abstractmethod
    def update(self, table: Table, row_id: UUID, patch: Mapping[str, Any]) -> None:
        """Apply ``patch`` to one row; raises RowNotFoundError."""
        ...

    @abstractmethod
    def update_where(
        self, table: Table, filters: Filters, patch: Mapping[str, Any]
    ) -> int:
        """Apply ``patch`` to every matching row; return how many matched."""
        ...

    @abstractmethod
    def delete(self, table: Table, row_id: UUID) -> None:
        """Delete one row; raises RowNotFoundError / ReferentialConflictError."""
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Scope in which all writes commit together or not at all."""
        ...

    @abstractmethod
    def lock_row(self, table: Table, row_id: UUID) -> bool:
        """
        Hold a write lock on one row until the enclosing transaction ends.

        Another store, even one on a different Session or in a different
        process, that asks for the same row blocks until this transaction
        commits or rolls back.  Call it inside ``transaction()``.

        Returns:
            True when the row exists and is locked; False when there is no
            such row for the current account.
        """
        ...

    # ------------------------------------------------------------------
    # Shared validation
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_insert(table: Table, row: Mapping[str, Any]) -> Row:
        """Apply column defaults and reject unknown or missing columns."""
        columns = TABLE_COLUMNS[table]
        unknown = set(row) - set(columns) - {"id", "created_at"}
        if unknown:
            raise ValueError(f"Unknown columns for {table.value}: {sorted(unknown)}")
        prepared: Row = {}
        for name, default in columns.items():
            if name in row:
                prepared[name] = row[name]
            elif default is ...:
                raise MissingFieldError(table.value, name)
            else:
                prepared[name] = default
        return prepared

    @staticmethod
    def _check_patch(table: Table, patch: Mapping[str, Any]) -> None:
        """Reject patches that touch store-owned or unknown columns."""
        forbidden = set(patch) & STORE_OWNED_FIELDS
        if forbidden:
            raise ValueError(f"Cannot patch store-owned fields: {sorted(forbidden)}")
        unknown = set(patch) - set(TABLE_COLUMNS[table])
        if unknown:
            raise ValueError(f"Unknown columns for {table.value}: {sorted(unknown)}")

    @staticmethod
    def _normalize(values: Mapping[str, Any]) -> Row:
        """Coerce ids to UUID, money to Decimal, timestamps to UTC, enums to str."""
        normalized: Row = {}
        for name, value in values.items():
            if value is None:
                normalized[name] = None
            elif name in UUID_COLUMNS:
                normalized[name] = value if isinstance(value, UUID) else UUID(str(value))
            elif name in MONEY_COLUMNS:
                normalized[name] = to_money(value)
            elif name in MOMENT_COLUMNS:
                normalized[name] = to_utc(value)
            elif isinstance(value, Enum):
                normalized[name] = value.value
            else:
                normalized[name] = value
        return normalized
