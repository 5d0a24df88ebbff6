"""Kernel ORM models."""

from finance_kernel.models.journal import JournalEntry, JournalLine

__all__ = [
    "JournalEntry",
    "JournalLine",
]
