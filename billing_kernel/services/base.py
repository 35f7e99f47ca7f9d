"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor for every service: the EntityStore it
    reads and writes through, and the Clock it stamps business times from.

Architecture position:
    Kernel > Services -- imperative shell.  Services depend on the
    EntityStore contract only, never on a concrete backend or on
    SQLAlchemy.

Invariants enforced:
    - Services never commit.  Multi-step writes run inside
      ``store.transaction()``; the caller owns the outer unit of work
      (``session_scope`` for the SQL store).
    - Services return frozen DTOs, never raw store rows.
"""

from abc import ABC
from typing import Any

from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import MissingFieldError
from billing_kernel.store.base import EntityStore


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts an EntityStore from the caller.  The clock defaults to the
        store's clock so that rows and business timestamps agree.
    """

    def __init__(self, store: EntityStore, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            store: Account-scoped entity store.
            clock: Clock for business timestamps (e.g. ``paid_at``).
        """
        self.store = store
        self.clock = clock or store.clock


class _Unset:
    """Marker for keyword arguments the caller did not pass."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def require_text(entity: str, field: str, value: str | None) -> str:
    """Return ``value`` stripped; raise MissingFieldError when blank."""
    if value is None or not str(value).strip():
        raise MissingFieldError(entity, field)
    return str(value).strip()


def matches_search(search: str | None, *fields: str | None) -> bool:
    """Case-insensitive substring match of ``search`` against any field."""
    if not search:
        return True
    needle = search.lower()
    return any(needle in (text or "").lower() for text in fields)
