"""
Ledger -- Gateway contract between the revenue / cost services and the
general ledger.

Responsibility:
    Defines the value objects a service hands to the ledger (one LedgerLine per
    debit or credit) and the abstract LedgerGateway those services depend on.
    The services never know how entries are stored; they only know that
    ``post()`` either returns an entry id or raises.

Architecture position:
    Kernel > Domain -- pure value objects and an ABC, zero I/O.
    The session-backed implementation lives in
    ``finance_kernel.services.ledger_service``.

Invariants enforced:
    - Line amounts are non-negative Decimals; the side carries the sign.
    - ``total_debits(lines) == total_credits(lines)`` is the posting
      precondition every gateway must check.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class LineSide(str, Enum):
    """Which side of the entry a line is on."""

    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class LedgerLine:
    """
    One debit or credit line handed to the ledger.

    Guarantees:
        - amount >= 0 (checked in __post_init__).
    """

    account_code: str
    side: LineSide
    amount: Decimal
    memo: str | None = None
    dimensions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.account_code:
            raise ValueError("account_code is required")
        if not isinstance(self.amount, Decimal):
            raise TypeError(
                f"amount must be Decimal, got {type(self.amount).__name__}"
            )
        if self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")

    @classmethod
    def debit(
        cls,
        account_code: str,
        amount: Decimal,
        memo: str | None = None,
        **dimensions: str,
    ) -> LedgerLine:
        return cls(account_code, LineSide.DEBIT, amount, memo, dimensions)

    @classmethod
    def credit(
        cls,
        account_code: str,
        amount: Decimal,
        memo: str | None = None,
        **dimensions: str,
    ) -> LedgerLine:
        return cls(account_code, LineSide.CREDIT, amount, memo, dimensions)


def total_debits(lines: Sequence[LedgerLine]) -> Decimal:
    return sum(
        (ln.amount for ln in lines if ln.side == LineSide.DEBIT), Decimal("0")
    )


def total_credits(lines: Sequence[LedgerLine]) -> Decimal:
    return sum(
        (ln.amount for ln in lines if ln.side == LineSide.CREDIT), Decimal("0")
    )


class LedgerGateway(ABC):
    """
    Abstract ledger collaborator.

    Contract:
        ``post`` records a balanced, non-empty set of lines dated
        ``entry_date`` and returns the id of the posted entry.  When the
        gateway participates in the caller's transaction, a later rollback
        discards the entry as well.

    Raises:
        UnbalancedEntryError: lines are empty or debits != credits.
        LedgerPostingError: the ledger could not record the entry.
    """

    @abstractmethod
    def post(
        self,
        entry_date: date,
        lines: Sequence[LedgerLine],
        *,
        description: str,
        reference_type: str,
        reference_id: UUID | str,
    ) -> UUID:
        ...
