"""
Entity store gateway.

Services and selectors talk to persistence only through ``EntityStore``.
``InMemoryEntityStore`` backs tests and scripts; ``SqlEntityStore`` maps
the same contract onto the SQLAlchemy models.
"""

from billing_kernel.store.base import EntityStore, Row, Table
from billing_kernel.store.memory import InMemoryEntityStore
from billing_kernel.store.sql import SqlEntityStore

__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "Row",
    "SqlEntityStore",
    "Table",
]
