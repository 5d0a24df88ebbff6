"""
Project Domain Models (``finance_modules.project.models``).

Responsibility
--------------
Frozen dataclass value objects for projects, their milestones, dependency
checks and schedule analyses.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``ProjectService`` and ``MilestoneRevenueService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``Milestone.remaining_revenue == planned_revenue - recognized_revenue``.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from finance_engines.critical_path import CriticalPath, TimelineMetrics
from finance_engines.dependency_graph import ForestNode
from finance_engines.risk import MilestoneRisk
from finance_engines.schedule_types import MilestoneStatus, ScheduledMilestone


@dataclass(frozen=True)
class Project:
    """A customer project."""
    id: UUID
    code: str
    name: str
    status: str = "active"  # active, on_hold, completed, cancelled
    estimated_budget: Decimal = Decimal("0")
    currency: str = "IDR"


@dataclass(frozen=True)
class Milestone:
    """A project milestone with its schedule, revenue and progress."""
    id: UUID
    project_id: UUID
    sequence: int
    name: str
    planned_start: datetime
    planned_end: datetime
    planned_revenue: Decimal
    description: str | None = None
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    delay_days: int | None = None
    delay_reason: str | None = None
    recognized_revenue: Decimal = Decimal("0")
    remaining_revenue: Decimal | None = None
    estimated_cost: Decimal | None = None
    actual_cost: Decimal = Decimal("0")
    completion_percentage: Decimal = Decimal("0")
    predecessor_id: UUID | None = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    accepted_by: str | None = None
    accepted_at: datetime | None = None
    invoice_id: str | None = None
    billed_at: datetime | None = None
    last_entry_id: UUID | None = None

    def __post_init__(self):
        if self.planned_end <= self.planned_start:
            raise ValueError("planned_end must be after planned_start")
        if self.remaining_revenue is None:
            object.__setattr__(
                self, "remaining_revenue",
                self.planned_revenue - self.recognized_revenue,
            )

    def to_scheduled(self) -> ScheduledMilestone:
        """Snapshot consumed by the schedule engines."""
        return ScheduledMilestone(
            id=self.id,
            sequence=self.sequence,
            name=self.name,
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            predecessor_id=self.predecessor_id,
            actual_start=self.actual_start,
            actual_end=self.actual_end,
            delay_days=self.delay_days,
            status=self.status,
            completion_percentage=self.completion_percentage,
        )


@dataclass(frozen=True)
class BlockingPredecessor:
    """A predecessor that has not finished yet."""
    milestone_id: UUID
    sequence: int
    name: str
    status: MilestoneStatus


@dataclass(frozen=True)
class DependencyCheck:
    """Whether a milestone's predecessor allows it to start."""
    milestone_id: UUID
    can_start: bool
    blocking: tuple[BlockingPredecessor, ...] = ()


@dataclass(frozen=True)
class ScheduleAnalysis:
    """Forest, critical path, timeline metrics and risks for one project."""
    project_id: UUID
    as_of: datetime
    forest: Mapping[Hashable, ForestNode]
    critical_path: CriticalPath
    metrics: TimelineMetrics
    risks: tuple[MilestoneRisk, ...]
