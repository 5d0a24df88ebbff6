"""
Module: finance_modules.project.orm
Responsibility: SQLAlchemy persistence for projects and their milestones.
Architecture position: Modules > Project > ORM.  Inherits from TrackedBase
    (finance_kernel.db.base).  MilestoneModel is also written by
    finance_modules.revenue (recognition / acceptance).

Invariants enforced:
    - Project code is unique (uq_project_code).
    - Milestone sequence is unique per project (uq_milestone_project_sequence).
    - Predecessor is a self-referential FK (same project checked by the service).
    - Monetary fields are ExactDecimal(38, 9); percentages ExactDecimal(7, 2).

Failure modes:
    - IntegrityError on duplicate project code or milestone sequence.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_engines.schedule_types import MilestoneStatus
from finance_kernel.db.base import ExactDecimal, TrackedBase
from finance_kernel.db.types import ensure_utc, round_money, round_percentage

# ---------------------------------------------------------------------------
# ProjectModel
# ---------------------------------------------------------------------------


class ProjectModel(TrackedBase):
    """
    A customer project.

    Maps to the ``Project`` DTO in ``finance_modules.project.models``.
    """

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("code", name="uq_project_code"),
        Index("idx_project_status", "status"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    estimated_budget: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")

    milestones: Mapped[list["MilestoneModel"]] = relationship(
        "MilestoneModel",
        back_populates="project",
        order_by="MilestoneModel.sequence",
        lazy="select",
    )

    def to_dto(self):
        from finance_modules.project.models import Project

        return Project(
            id=self.id,
            code=self.code,
            name=self.name,
            status=self.status,
            estimated_budget=round_money(self.estimated_budget),
            currency=self.currency,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ProjectModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            status=dto.status,
            estimated_budget=dto.estimated_budget,
            currency=dto.currency,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.code} [{self.status}]>"


# ---------------------------------------------------------------------------
# MilestoneModel
# ---------------------------------------------------------------------------


class MilestoneModel(TrackedBase):
    """
    A project milestone.

    Maps to the ``Milestone`` DTO in ``finance_modules.project.models``.

    Guarantees:
        - ``recognized_revenue`` only grows; ``remaining_revenue`` is kept at
          planned - recognized by the revenue service.
        - ``status`` is a MilestoneStatus value.
    """

    __tablename__ = "milestones"

    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_milestone_project_sequence"),
        Index("idx_milestone_project", "project_id"),
        Index("idx_milestone_predecessor", "predecessor_id"),
        Index("idx_milestone_status", "status"),
    )

    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Schedule
    planned_start: Mapped[datetime] = mapped_column(nullable=False)
    planned_end: Mapped[datetime] = mapped_column(nullable=False)
    actual_start: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_end: Mapped[datetime | None] = mapped_column(nullable=True)
    delay_days: Mapped[int | None] = mapped_column(nullable=True)
    delay_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Financials
    planned_revenue: Mapped[Decimal] = mapped_column(nullable=False)
    recognized_revenue: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    remaining_revenue: Mapped[Decimal] = mapped_column(nullable=False)
    estimated_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    completion_percentage: Mapped[Decimal] = mapped_column(
        ExactDecimal(7, 2), default=Decimal("0"),
    )

    predecessor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("milestones.id"), nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MilestoneStatus.PENDING.value,
    )

    # Acceptance / billing
    accepted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    invoice_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Last journal entry posted for this milestone
    last_entry_id: Mapped[UUID | None] = mapped_column(nullable=True)

    project: Mapped["ProjectModel"] = relationship(back_populates="milestones")

    def to_dto(self):
        from finance_modules.project.models import Milestone

        return Milestone(
            id=self.id,
            project_id=self.project_id,
            sequence=self.sequence,
            name=self.name,
            description=self.description,
            planned_start=ensure_utc(self.planned_start),
            planned_end=ensure_utc(self.planned_end),
            actual_start=ensure_utc(self.actual_start),
            actual_end=ensure_utc(self.actual_end),
            delay_days=self.delay_days,
            delay_reason=self.delay_reason,
            planned_revenue=round_money(self.planned_revenue),
            recognized_revenue=round_money(self.recognized_revenue),
            remaining_revenue=round_money(self.remaining_revenue),
            estimated_cost=(
                round_money(self.estimated_cost)
                if self.estimated_cost is not None else None
            ),
            actual_cost=round_money(self.actual_cost),
            completion_percentage=round_percentage(self.completion_percentage),
            predecessor_id=self.predecessor_id,
            status=MilestoneStatus(self.status),
            accepted_by=self.accepted_by,
            accepted_at=ensure_utc(self.accepted_at),
            invoice_id=self.invoice_id,
            billed_at=ensure_utc(self.billed_at),
            last_entry_id=self.last_entry_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "MilestoneModel":
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            sequence=dto.sequence,
            name=dto.name,
            description=dto.description,
            planned_start=dto.planned_start,
            planned_end=dto.planned_end,
            actual_start=dto.actual_start,
            actual_end=dto.actual_end,
            delay_days=dto.delay_days,
            delay_reason=dto.delay_reason,
            planned_revenue=dto.planned_revenue,
            recognized_revenue=dto.recognized_revenue,
            remaining_revenue=dto.remaining_revenue,
            estimated_cost=dto.estimated_cost,
            actual_cost=dto.actual_cost,
            completion_percentage=dto.completion_percentage,
            predecessor_id=dto.predecessor_id,
            status=dto.status.value,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<MilestoneModel #{self.sequence} {self.name} [{self.status}]>"
