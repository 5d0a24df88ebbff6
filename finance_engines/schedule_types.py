"""
finance_engines.schedule_types -- Milestone snapshot types shared by the
schedule engines.

Responsibility:
    Immutable inputs for the dependency graph, critical path and risk
    engines.  Modules convert their ORM rows into ``ScheduledMilestone``
    before calling an engine, so engines never touch the database.

Architecture position:
    Engines -- pure value objects, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MilestoneStatus(str, Enum):
    """Milestone lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ACCEPTED = "accepted"
    BILLED = "billed"
    CANCELLED = "cancelled"

    @property
    def is_finished(self) -> bool:
        """Work is done (completed, accepted or billed)."""
        return self in FINISHED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


FINISHED_STATUSES = frozenset({
    MilestoneStatus.COMPLETED,
    MilestoneStatus.ACCEPTED,
    MilestoneStatus.BILLED,
})

TERMINAL_STATUSES = frozenset({
    MilestoneStatus.ACCEPTED,
    MilestoneStatus.BILLED,
    MilestoneStatus.CANCELLED,
})


class RiskLevel(str, Enum):
    """Schedule risk classification, ordered LOW < MEDIUM < HIGH."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


@dataclass(frozen=True)
class ScheduledMilestone:
    """
    Snapshot of one milestone as seen by the schedule engines.

    Guarantees:
        - planned_end > planned_start.
        - completion_percentage within [0, 100].
    """

    id: UUID | str
    sequence: int
    name: str
    planned_start: datetime
    planned_end: datetime
    predecessor_id: UUID | str | None = None
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    delay_days: int | None = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    completion_percentage: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.planned_end <= self.planned_start:
            raise ValueError(
                f"Milestone {self.id}: planned_end must be after planned_start"
            )
        if not (Decimal("0") <= self.completion_percentage <= Decimal("100")):
            raise ValueError(
                f"Milestone {self.id}: completion_percentage out of range "
                f"({self.completion_percentage})"
            )
