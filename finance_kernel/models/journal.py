"""
Module: finance_kernel.models.journal
Responsibility: ORM persistence for the journal entries written by the
    session-backed ledger gateway.
Architecture position: Kernel > Models.  May import from db/ and the
    ledger value objects in domain/ledger.py.

Invariants enforced:
    - Balance per entry is checked by JournalLedgerGateway before insert;
      ``is_balanced`` is the read-side convenience.
    - Lines are ordered by line_seq within an entry.

Audit relevance:
    Each entry carries the (reference_type, reference_id) pair of the
    milestone, deferred revenue record or WIP period that produced it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_kernel.db.base import ExactDecimal, TrackedBase, UUIDString
from finance_kernel.domain.ledger import LineSide


class JournalEntry(TrackedBase):
    """Journal entry header."""

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_reference", "reference_type", "reference_id"),
        Index("idx_journal_entry_date", "entry_date"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} {self.reference_type}:{self.reference_id}>"

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """Individual debit or credit line within a journal entry."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    side: Mapped[LineSide] = mapped_column(String(10), nullable=False)

    # Always non-negative; side determines debit/credit
    amount: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)

    line_memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    dimensions: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.side} {self.account_code} {self.amount}>"

    @property
    def is_debit(self) -> bool:
        return LineSide(self.side) == LineSide.DEBIT

    @property
    def is_credit(self) -> bool:
        return LineSide(self.side) == LineSide.CREDIT
