"""
Module: finance_modules.revenue.models
Responsibility:
    Frozen domain DTOs for deferred revenue balances and the revenue
    summaries reported per project and per period.

Architecture:
    finance_modules layer -- pure data definitions with ZERO I/O.
    All monetary fields use Decimal -- NEVER float.

Invariants:
    - DeferredRevenue: recognized_amount + remaining_amount == total_amount.
    - Enum values are string-backed for serialization safety.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from finance_engines.recognition import DeferralStatus
from finance_kernel.logging_config import get_logger

logger = get_logger("modules.revenue.models")


@dataclass(frozen=True)
class DeferredRevenue:
    """
    An advance payment not yet earned.

    Contract:
        total_amount is fixed at creation; recognized_amount only grows.
    """
    id: UUID
    invoice_id: str
    payment_date: date
    recognition_date: date
    obligation_description: str
    total_amount: Decimal
    recognized_amount: Decimal = Decimal("0")
    remaining_amount: Decimal | None = None
    completion_percentage: Decimal = Decimal("0")
    status: DeferralStatus = DeferralStatus.DEFERRED
    initial_entry_id: UUID | None = None
    last_entry_id: UUID | None = None
    last_recognized_at: date | None = None

    def __post_init__(self):
        if self.total_amount <= 0:
            raise ValueError("total_amount must be positive")
        if self.remaining_amount is None:
            object.__setattr__(
                self, "remaining_amount", self.total_amount - self.recognized_amount,
            )
        if self.recognized_amount + self.remaining_amount != self.total_amount:
            raise ValueError(
                f"recognized {self.recognized_amount} + remaining "
                f"{self.remaining_amount} != total {self.total_amount}"
            )


@dataclass(frozen=True)
class DeferredRevenueSummary:
    """Totals over deferred revenue records in a payment-date window."""
    record_count: int
    total_deferred: Decimal
    total_recognized: Decimal
    total_remaining: Decimal
    count_by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ScheduledRecognition:
    """An active deferred revenue balance due for recognition in a window."""
    deferred_revenue_id: UUID
    invoice_id: str
    recognition_date: date
    obligation_description: str
    remaining_amount: Decimal
    status: DeferralStatus


@dataclass(frozen=True)
class ProjectRevenueSummary:
    """Milestone revenue position of one project."""
    project_id: UUID
    milestone_count: int
    total_planned: Decimal
    total_recognized: Decimal
    total_remaining: Decimal
    average_completion: Decimal
    count_by_status: dict[str, int] = field(default_factory=dict)
    as_of: datetime | None = None
