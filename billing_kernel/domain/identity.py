"""
Identity -- the account context every store call is scoped to.

The kernel never authenticates anyone.  An external session layer supplies
the current account id through an ``IdentityProvider``; the store and the
services ask it on every operation and fail with NotAuthenticatedError when
there is none.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from billing_kernel.exceptions import NotAuthenticatedError


class IdentityProvider(ABC):
    """Supplies the id of the currently authenticated account."""

    @abstractmethod
    def current_account_id(self) -> UUID | None:
        """Return the current account id, or None when signed out."""
        ...


class StaticIdentityProvider(IdentityProvider):
    """Identity fixed at construction; ``sign_out`` clears it."""

    def __init__(self, account_id: UUID | None):
        self._account_id = account_id

    def current_account_id(self) -> UUID | None:
        return self._account_id

    def sign_in(self, account_id: UUID) -> None:
        self._account_id = account_id

    def sign_out(self) -> None:
        self._account_id = None


def require_account(provider: IdentityProvider, operation: str | None = None) -> UUID:
    """
    Return the current account id or raise.

    Raises:
        NotAuthenticatedError: If the provider has no account.
    """
    account_id = provider.current_account_id()
    if account_id is None:
        raise NotAuthenticatedError(operation)
    return account_id
