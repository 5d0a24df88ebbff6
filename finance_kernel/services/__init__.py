"""Services for the finance kernel (write side)."""

from finance_kernel.services.ledger_service import SYSTEM_ACTOR_ID, JournalLedgerGateway

__all__ = [
    "JournalLedgerGateway",
    "SYSTEM_ACTOR_ID",
]
