"""Database layer - engine, base classes and column types."""

from finance_kernel.db.base import UUID, Base, ExactDecimal, TrackedBase, UUIDString
from finance_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from finance_kernel.db.types import (
    Currency,
    Money,
    Percentage,
    ensure_utc,
    month_start,
    round_money,
    round_percentage,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "ExactDecimal",
    "UUID",
    "Money",
    "Percentage",
    "Currency",
    "round_money",
    "round_percentage",
    "month_start",
    "ensure_utc",
]
