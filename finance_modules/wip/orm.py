"""
Module: finance_modules.wip.orm
Responsibility: SQLAlchemy ORM persistence for project cost accumulation.
    Maps the frozen DTOs in wip.models to the ``work_in_progress`` and
    ``project_cost_allocations`` tables.

Architecture position: Modules > WIP > ORM.  Inherits from TrackedBase
    (finance_kernel.db.base).  Both tables reference ``projects`` by FK.

Invariants enforced:
    - One WIP record per (project_id, period_date) (uq_wip_project_period).
    - All monetary fields use Decimal (ExactDecimal(38, 9)) -- NEVER float.
    - Enum fields stored as String(50).

Failure modes:
    - IntegrityError when two writers create the same period concurrently.

Audit relevance:
    - The authoritative financial truth remains JournalEntry/JournalLine.
      These rows carry the id of the last entry posted against them.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from finance_kernel.db.base import ExactDecimal, TrackedBase, UUIDString
from finance_kernel.db.types import round_money, round_percentage


# =============================================================================
# WorkInProgressModel
# =============================================================================

class WorkInProgressModel(TrackedBase):
    """
    ORM model for monthly project cost buckets.

    Maps to: finance_modules.wip.models.WorkInProgress (frozen dataclass).

    Guarantees:
        - period_date is the first day of a month (service-enforced).
        - total_cost is rewritten on every accumulation as the bucket sum.
    """

    __tablename__ = "work_in_progress"

    __table_args__ = (
        UniqueConstraint("project_id", "period_date", name="uq_wip_project_period"),
        Index("idx_wip_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False,
    )
    period_date: Mapped[date] = mapped_column(Date, nullable=False)
    direct_material_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    direct_labor_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    direct_expenses: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    allocated_overhead: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    last_entry_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from finance_modules.wip.models import WorkInProgress

        return WorkInProgress(
            id=self.id,
            project_id=self.project_id,
            period_date=self.period_date,
            direct_material_cost=round_money(self.direct_material_cost),
            direct_labor_cost=round_money(self.direct_labor_cost),
            direct_expenses=round_money(self.direct_expenses),
            allocated_overhead=round_money(self.allocated_overhead),
            last_entry_id=self.last_entry_id,
        )

    def __repr__(self) -> str:
        return f"<WorkInProgressModel {self.project_id} {self.period_date} total={self.total_cost}>"


# =============================================================================
# ProjectCostAllocationModel
# =============================================================================

class ProjectCostAllocationModel(TrackedBase):
    """
    ORM model for overhead allocated to a project.

    Maps to: finance_modules.wip.models.ProjectCostAllocation.
    expense_ref identifies the source expense in an external system (no FK).
    """

    __tablename__ = "project_cost_allocations"

    __table_args__ = (
        Index("idx_cost_allocation_project", "project_id"),
        Index("idx_cost_allocation_method", "allocation_method"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False,
    )
    expense_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    allocation_method: Mapped[str] = mapped_column(String(50), nullable=False)
    allocation_percentage: Mapped[Decimal] = mapped_column(ExactDecimal(7, 2), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    allocation_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from finance_modules.wip.models import AllocationMethod, ProjectCostAllocation

        return ProjectCostAllocation(
            id=self.id,
            project_id=self.project_id,
            expense_ref=self.expense_ref,
            allocation_method=AllocationMethod(self.allocation_method),
            allocation_percentage=round_percentage(self.allocation_percentage),
            allocated_amount=round_money(self.allocated_amount),
            allocation_date=self.allocation_date,
            period_date=self.period_date,
            entry_id=self.entry_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ProjectCostAllocationModel":
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            expense_ref=dto.expense_ref,
            allocation_method=dto.allocation_method.value,
            allocation_percentage=dto.allocation_percentage,
            allocated_amount=dto.allocated_amount,
            allocation_date=dto.allocation_date,
            period_date=dto.period_date,
            entry_id=dto.entry_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ProjectCostAllocationModel {self.expense_ref} {self.allocated_amount}>"
