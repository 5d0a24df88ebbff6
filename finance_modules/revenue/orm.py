"""
Module: finance_modules.revenue.orm
Responsibility:
    SQLAlchemy persistence for deferred revenue balances.  Milestone rows
    (recognized by MilestoneRevenueService) live in finance_modules.project.orm.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - At most one *active* (deferred / partially_recognized) record per
      invoice: partial unique index uq_deferred_revenue_active_invoice on
      PostgreSQL and SQLite.
    - Monetary fields are ExactDecimal(38, 9); completion ExactDecimal(7, 2).

Failure modes:
    - IntegrityError when a concurrent writer inserts a second active
      record for the same invoice (the service converts it to ConflictError).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from finance_engines.recognition import DeferralStatus
from finance_kernel.db.base import ExactDecimal, TrackedBase
from finance_kernel.db.types import round_money, round_percentage

_ACTIVE_PREDICATE = "status IN ('deferred', 'partially_recognized')"


class DeferredRevenueModel(TrackedBase):
    """
    Cash received ahead of performance, released into revenue over time.

    Maps to the ``DeferredRevenue`` DTO in ``finance_modules.revenue.models``.
    """

    __tablename__ = "deferred_revenues"

    __table_args__ = (
        Index(
            "uq_deferred_revenue_active_invoice",
            "invoice_id",
            unique=True,
            postgresql_where=text(_ACTIVE_PREDICATE),
            sqlite_where=text(_ACTIVE_PREDICATE),
        ),
        Index("idx_deferred_revenue_status", "status"),
        Index("idx_deferred_revenue_recognition_date", "recognition_date"),
        Index("idx_deferred_revenue_payment_date", "payment_date"),
    )

    invoice_id: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    recognition_date: Mapped[date] = mapped_column(Date, nullable=False)
    obligation_description: Mapped[str] = mapped_column(Text, nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    recognized_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    remaining_amount: Mapped[Decimal] = mapped_column(nullable=False)
    completion_percentage: Mapped[Decimal] = mapped_column(
        ExactDecimal(7, 2), default=Decimal("0"),
    )

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DeferralStatus.DEFERRED.value,
    )

    # Ledger references
    initial_entry_id: Mapped[UUID | None] = mapped_column(nullable=True)
    last_entry_id: Mapped[UUID | None] = mapped_column(nullable=True)
    last_recognized_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self):
        from finance_modules.revenue.models import DeferredRevenue

        return DeferredRevenue(
            id=self.id,
            invoice_id=self.invoice_id,
            payment_date=self.payment_date,
            recognition_date=self.recognition_date,
            obligation_description=self.obligation_description,
            total_amount=round_money(self.total_amount),
            recognized_amount=round_money(self.recognized_amount),
            remaining_amount=round_money(self.remaining_amount),
            completion_percentage=round_percentage(self.completion_percentage),
            status=DeferralStatus(self.status),
            initial_entry_id=self.initial_entry_id,
            last_entry_id=self.last_entry_id,
            last_recognized_at=self.last_recognized_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "DeferredRevenueModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            payment_date=dto.payment_date,
            recognition_date=dto.recognition_date,
            obligation_description=dto.obligation_description,
            total_amount=dto.total_amount,
            recognized_amount=dto.recognized_amount,
            remaining_amount=dto.remaining_amount,
            completion_percentage=dto.completion_percentage,
            status=dto.status.value,
            initial_entry_id=dto.initial_entry_id,
            last_entry_id=dto.last_entry_id,
            last_recognized_at=dto.last_recognized_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<DeferredRevenueModel {self.invoice_id} [{self.status}]>"
