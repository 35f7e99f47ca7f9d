"""Database layer - engine, base classes, types."""

from billing_kernel.db.base import Base, OwnedBase, UUIDString
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_config,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from billing_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    Money,
    round_money,
    to_money,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "init_engine_from_config",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "OwnedBase",
    "UUIDString",
    "Money",
    "MONEY_DECIMAL_PLACES",
    "round_money",
    "to_money",
]
