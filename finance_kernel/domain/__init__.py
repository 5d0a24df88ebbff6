"""
Pure domain layer.

Value objects and abstract boundaries with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time is only read through an injected Clock.
"""

from finance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from finance_kernel.domain.ledger import (
    LedgerGateway,
    LedgerLine,
    LineSide,
    total_credits,
    total_debits,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "LedgerGateway",
    "LedgerLine",
    "LineSide",
    "SystemClock",
    "total_credits",
    "total_debits",
]
