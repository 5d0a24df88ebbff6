"""
Work-in-Progress Domain Models (``finance_modules.wip.models``).

Responsibility
--------------
Frozen dataclass value objects for project cost accumulation: per-period
WIP records, the cost deltas fed into them, overhead allocation records,
and the summaries built over both.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``WipService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``WorkInProgress.total_cost`` equals the sum of the four buckets.
"""

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from finance_kernel.logging_config import get_logger

logger = get_logger("modules.wip.models")


class AllocationMethod(Enum):
    """Basis on which a shared overhead expense is spread to a project."""
    PERCENTAGE = "percentage"
    DIRECT_LABOR_HOURS = "direct_labor_hours"
    DIRECT_LABOR_COST = "direct_labor_cost"
    MACHINE_HOURS = "machine_hours"


@dataclass(frozen=True)
class CostDeltas:
    """
    Amounts to add to a period's cost buckets.

    Every accumulation is an increment; there is no "set to" form.
    """
    material: Decimal = Decimal("0")
    labor: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    overhead: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.material + self.labor + self.expenses + self.overhead

    def negative_buckets(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) < 0]

    @property
    def is_zero(self) -> bool:
        return all(getattr(self, f.name) == 0 for f in fields(self))


@dataclass(frozen=True)
class WorkInProgress:
    """Accumulated project cost for one calendar month."""
    id: UUID
    project_id: UUID
    period_date: date
    direct_material_cost: Decimal = Decimal("0")
    direct_labor_cost: Decimal = Decimal("0")
    direct_expenses: Decimal = Decimal("0")
    allocated_overhead: Decimal = Decimal("0")
    total_cost: Decimal | None = None
    last_entry_id: UUID | None = None

    def __post_init__(self):
        if self.period_date.day != 1:
            raise ValueError(f"period_date must be a month start, got {self.period_date}")
        bucket_sum = (
            self.direct_material_cost
            + self.direct_labor_cost
            + self.direct_expenses
            + self.allocated_overhead
        )
        if self.total_cost is None:
            object.__setattr__(self, "total_cost", bucket_sum)
        elif self.total_cost != bucket_sum:
            raise ValueError(f"total_cost {self.total_cost} != bucket sum {bucket_sum}")


@dataclass(frozen=True)
class ProjectCostAllocation:
    """A share of an overhead expense charged to a project."""
    id: UUID
    project_id: UUID
    expense_ref: str
    allocation_method: AllocationMethod
    allocation_percentage: Decimal
    allocated_amount: Decimal
    allocation_date: date
    period_date: date
    entry_id: UUID | None = None


@dataclass(frozen=True)
class WipSummary:
    """All period records of a project (newest first) with cumulative totals."""
    project_id: UUID
    periods: tuple[WorkInProgress, ...] = ()
    total_material: Decimal = Decimal("0")
    total_labor: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    total_overhead: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")


@dataclass(frozen=True)
class CostAllocationSummary:
    """Overhead allocations of a project grouped by allocation method."""
    project_id: UUID
    allocation_count: int
    total_allocated: Decimal
    by_method: dict[str, Decimal] = field(default_factory=dict)
    allocations: tuple[ProjectCostAllocation, ...] = ()


@dataclass(frozen=True)
class ProjectProfitability:
    """
    Cost against recognized revenue for one project.

    ``cost_variance`` is actual cost minus the project's estimated budget, so
    a positive value is an overrun.  Variance fields are ``None`` when the
    project carries no estimated budget.
    """
    project_id: UUID
    total_cost: Decimal
    recognized_revenue: Decimal
    gross_profit: Decimal
    profit_margin: Decimal
    estimated_budget: Decimal
    cost_variance: Decimal | None = None
    cost_variance_percentage: Decimal | None = None
    cost_breakdown: dict[str, Decimal] = field(default_factory=dict)
