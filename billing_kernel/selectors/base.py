"""
Module: billing_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: they load rows through the
    EntityStore, parse them into DTOs and hand them to pure domain
    functions.
Architecture position: Kernel > Selectors.  May import from store/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call insert, update, update_where
      or delete on the store.
    - DTO return convention: selectors return frozen dataclasses, never
      raw rows.  Parsing happens at this boundary, so an unknown status
      in the store fails loudly instead of being summed as zero.
"""

from abc import ABC

from billing_kernel.domain.clock import Clock
from billing_kernel.store.base import EntityStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept an EntityStore from the caller, perform reads
        only and return DTOs or computed results.
    """

    def __init__(self, store: EntityStore, clock: Clock | None = None):
        """
        Initialize the selector.

        Args:
            store: Account-scoped entity store.
            clock: Clock for "current month" queries; defaults to the store's.
        """
        self.store = store
        self.clock = clock or store.clock
