"""
Ledger service - session-backed LedgerGateway.

The gateway is responsible for:
- Rejecting empty or unbalanced entries
- Writing JournalEntry / JournalLine rows in the caller's session
- Returning the posted entry id

The gateway does NOT:
- Commit (the calling service owns the transaction boundary)
- Decide which accounts are hit (the revenue / WIP services do)
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_kernel.domain.ledger import (
    LedgerGateway,
    LedgerLine,
    total_credits,
    total_debits,
)
from finance_kernel.exceptions import LedgerPostingError, UnbalancedEntryError
from finance_kernel.logging_config import get_logger
from finance_kernel.models.journal import JournalEntry, JournalLine

logger = get_logger("services.ledger")

# Actor recorded on journal rows when the caller does not supply one.
SYSTEM_ACTOR_ID = UUID(int=0)


class JournalLedgerGateway(LedgerGateway):
    """
    LedgerGateway that writes journal rows through the caller's Session.

    All writes happen within the caller's transaction: a rollback in the
    calling service discards the entry together with the balance update
    that triggered it.
    """

    def __init__(
        self,
        session: Session,
        *,
        currency: str = "IDR",
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        self._session = session
        self._currency = currency
        self._actor_id = actor_id

    def post(
        self,
        entry_date: date,
        lines: Sequence[LedgerLine],
        *,
        description: str,
        reference_type: str,
        reference_id: UUID | str,
    ) -> UUID:
        debits = total_debits(lines)
        credits = total_credits(lines)
        if not lines or debits != credits or debits == 0:
            logger.warning(
                "ledger_entry_unbalanced",
                extra={
                    "reference_type": reference_type,
                    "reference_id": str(reference_id),
                    "debits": str(debits),
                    "credits": str(credits),
                    "line_count": len(lines),
                },
            )
            raise UnbalancedEntryError(str(debits), str(credits), self._currency)

        entry = JournalEntry(
            id=uuid4(),
            entry_date=entry_date,
            description=description,
            reference_type=reference_type,
            reference_id=str(reference_id),
            currency=self._currency,
            created_by_id=self._actor_id,
        )
        for seq, line in enumerate(lines):
            entry.lines.append(
                JournalLine(
                    account_code=line.account_code,
                    side=line.side.value,
                    amount=line.amount,
                    line_memo=line.memo,
                    dimensions=dict(line.dimensions) or None,
                    line_seq=seq,
                    created_by_id=self._actor_id,
                )
            )

        try:
            self._session.add(entry)
            self._session.flush()
        except SQLAlchemyError as exc:
            raise LedgerPostingError(
                f"{reference_type}:{reference_id}", str(exc)
            ) from exc

        logger.info(
            "ledger_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "reference_type": reference_type,
                "reference_id": str(reference_id),
                "amount": str(debits),
                "line_count": len(lines),
            },
        )
        return entry.id

    def entries_for(
        self, reference_type: str, reference_id: UUID | str,
    ) -> list[JournalEntry]:
        """Posted entries for one source record, oldest first."""
        return list(
            self._session.scalars(
                select(JournalEntry)
                .where(
                    JournalEntry.reference_type == reference_type,
                    JournalEntry.reference_id == str(reference_id),
                )
                .order_by(JournalEntry.entry_date, JournalEntry.created_at)
            )
        )
