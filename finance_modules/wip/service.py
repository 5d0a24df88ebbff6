"""
WIP Module Service (``finance_modules.wip.service``).

Responsibility
--------------
Accumulates project costs into monthly work-in-progress records and posts
the matching ledger entries: Dr WIP / Cr the cost account of each bucket
that moved.  Also records overhead allocations, which land in the
overhead bucket of their allocation month, and reports project
profitability: accumulated cost against milestone revenue recognized.

Architecture position
---------------------
**Modules layer** -- thin glue.  Reads and writes through the caller's
``Session``; journal entries go through the injected ``LedgerGateway``.

Invariants enforced
-------------------
* Accumulation is additive: create the period with the deltas or increment
  the existing buckets.  No operation overwrites a bucket.
* total_cost == material + labor + expenses + overhead after every write.
* Period dates are normalized to the first day of the month.
* Each public mutating method owns the transaction boundary.

Failure modes
-------------
* ``NotFoundError`` -- unknown project.
* ``ValidationError`` -- negative delta, all-zero deltas, bad allocation.
* ``ConflictError`` -- a period insert lost to a concurrent writer whose
  row is then not visible.  A lost insert race is otherwise retried as an
  increment of the winning row.
* ``UnbalancedEntryError`` / ``LedgerPostingError`` -- from the gateway.

Audit relevance
---------------
Every accumulation produces one journal entry referenced by the WIP row
(``last_entry_id``) and, for allocations, by the allocation row.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finance_config.schema import ProjectFinanceConfig
from finance_engines.recognition import validate_amount, validate_percentage
from finance_kernel.db.types import HUNDRED, ZERO, month_start, round_money, round_percentage
from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.domain.ledger import LedgerGateway, LedgerLine
from finance_kernel.exceptions import ConflictError, ValidationError
from finance_kernel.logging_config import LogContext, get_logger
from finance_kernel.services.ledger_service import JournalLedgerGateway
from finance_modules._posting_helpers import commit, load, rollback
from finance_modules.project.orm import MilestoneModel, ProjectModel
from finance_modules.wip.models import (
    AllocationMethod,
    CostAllocationSummary,
    CostDeltas,
    ProjectCostAllocation,
    ProjectProfitability,
    WipSummary,
    WorkInProgress,
)
from finance_modules.wip.orm import ProjectCostAllocationModel, WorkInProgressModel

logger = get_logger("modules.wip.service")


class WipService:
    """
    Orchestrates project cost accumulation.

    Contract:
        ``accumulate`` and ``allocate_overhead`` commit on success and roll
        back on any failure; the WIP row and the journal entry are written in
        the same transaction.

    Non-goals:
        - Does NOT validate expense references; they are external keys.
        - Does NOT relieve WIP to cost of sales.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProjectFinanceConfig | None = None,
        ledger: LedgerGateway | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProjectFinanceConfig.with_defaults()
        self._ledger = ledger or JournalLedgerGateway(
            session, currency=self._config.recognition.currency,
        )

    # =========================================================================
    # Accumulation
    # =========================================================================

    def accumulate(
        self,
        project_id: UUID,
        period_date: date,
        deltas: CostDeltas,
        actor_id: UUID,
    ) -> WorkInProgress:
        """Add ``deltas`` to the project's WIP record for the month of ``period_date``."""
        with LogContext.bind(project_id=project_id, actor_id=actor_id):
            try:
                wip = self._accumulate(project_id, period_date, deltas, period_date, actor_id)
                commit(self._session, logger, "wip_accumulated",
                       wip_id=wip.id, period_date=wip.period_date.isoformat(),
                       total_cost=str(wip.total_cost), entry_id=wip.last_entry_id)
                return wip
            except Exception as exc:
                rollback(self._session, logger, "wip_accumulate", exc,
                         period_date=period_date.isoformat())
                raise

    def allocate_overhead(
        self,
        project_id: UUID,
        expense_ref: str,
        method: AllocationMethod,
        percentage: Decimal,
        amount: Decimal,
        allocation_date: date,
        actor_id: UUID,
    ) -> ProjectCostAllocation:
        """Charge a share of an overhead expense to the project's overhead bucket."""
        with LogContext.bind(project_id=project_id, actor_id=actor_id):
            try:
                percentage = validate_percentage(percentage, "percentage")
                allocated = round_money(
                    validate_amount(amount, "amount"), self._config.recognition.money_places,
                )
                if allocated <= ZERO:
                    raise ValidationError("amount", "must be positive", amount)

                logger.info("overhead_allocation_started", extra={
                    "expense_ref": expense_ref,
                    "allocation_method": method.value,
                    "allocated_amount": str(allocated),
                })

                wip = self._accumulate(
                    project_id,
                    allocation_date,
                    CostDeltas(overhead=allocated),
                    allocation_date,
                    actor_id,
                    memo=f"Overhead allocation {expense_ref}",
                )
                allocation = ProjectCostAllocation(
                    id=uuid4(),
                    project_id=project_id,
                    expense_ref=expense_ref,
                    allocation_method=method,
                    allocation_percentage=percentage,
                    allocated_amount=allocated,
                    allocation_date=allocation_date,
                    period_date=wip.period_date,
                    entry_id=wip.last_entry_id,
                )
                self._session.add(
                    ProjectCostAllocationModel.from_dto(allocation, created_by_id=actor_id)
                )
                self._session.flush()

                commit(self._session, logger, "overhead_allocated",
                       allocation_id=allocation.id, expense_ref=expense_ref,
                       allocated_amount=str(allocated), entry_id=allocation.entry_id)
                return allocation
            except Exception as exc:
                rollback(self._session, logger, "overhead_allocate", exc,
                         expense_ref=expense_ref)
                raise

    def _accumulate(
        self,
        project_id: UUID,
        period_date: date,
        deltas: CostDeltas,
        entry_date: date,
        actor_id: UUID,
        memo: str | None = None,
    ) -> WorkInProgress:
        """Upsert the period row and post the entry.  Caller owns the transaction."""
        places = self._config.recognition.money_places
        deltas = CostDeltas(
            material=round_money(validate_amount(deltas.material, "material"), places),
            labor=round_money(validate_amount(deltas.labor, "labor"), places),
            expenses=round_money(validate_amount(deltas.expenses, "expenses"), places),
            overhead=round_money(validate_amount(deltas.overhead, "overhead"), places),
        )
        negative = deltas.negative_buckets()
        if negative:
            raise ValidationError(negative[0], "cost deltas must not be negative",
                                  getattr(deltas, negative[0]))
        if deltas.is_zero:
            raise ValidationError("deltas", "at least one cost delta must be non-zero", ZERO)

        load(self._session, ProjectModel, project_id, "Project")
        period = month_start(period_date)

        row = self._lock_period(project_id, period)
        if row is None:
            row = self._create_period(project_id, period, actor_id)
        else:
            row.updated_by_id = actor_id
        current = row.to_dto()

        logger.info("wip_accumulate_started", extra={
            "wip_id": str(row.id),
            "period_date": period.isoformat(),
            "delta_total": str(deltas.total),
            "total_before": str(current.total_cost),
        })

        entry_id = self._ledger.post(
            entry_date,
            self._cost_lines(project_id, deltas, memo),
            description=memo or f"Project cost accumulation {period:%Y-%m}",
            reference_type="work_in_progress",
            reference_id=row.id,
        )

        row.direct_material_cost = current.direct_material_cost + deltas.material
        row.direct_labor_cost = current.direct_labor_cost + deltas.labor
        row.direct_expenses = current.direct_expenses + deltas.expenses
        row.allocated_overhead = current.allocated_overhead + deltas.overhead
        row.total_cost = current.total_cost + deltas.total
        row.last_entry_id = entry_id
        self._session.flush()
        return row.to_dto()

    def _lock_period(self, project_id: UUID, period: date) -> WorkInProgressModel | None:
        return self._session.execute(
            select(WorkInProgressModel)
            .where(
                WorkInProgressModel.project_id == project_id,
                WorkInProgressModel.period_date == period,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create_period(
        self, project_id: UUID, period: date, actor_id: UUID,
    ) -> WorkInProgressModel:
        """
        Insert an empty period row inside a savepoint.

        A concurrent writer may insert the same (project, period) between our
        lookup and our flush.  The unique constraint rejects the second insert;
        the savepoint is rolled back and the winner's row is locked and
        returned instead, so the caller increments it.
        """
        row = WorkInProgressModel(
            id=uuid4(),
            project_id=project_id,
            period_date=period,
            direct_material_cost=ZERO,
            direct_labor_cost=ZERO,
            direct_expenses=ZERO,
            allocated_overhead=ZERO,
            total_cost=ZERO,
            created_by_id=actor_id,
        )
        try:
            with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            logger.warning("wip_period_insert_lost_race", extra={
                "project_id": str(project_id),
                "period_date": period.isoformat(),
            })
            existing = self._lock_period(project_id, period)
            if existing is None:
                raise ConflictError("WorkInProgress", f"{project_id}:{period}")
            existing.updated_by_id = actor_id
            return existing
        return row

    def _cost_lines(
        self, project_id: UUID, deltas: CostDeltas, memo: str | None,
    ) -> list[LedgerLine]:
        accounts = self._config.accounts
        dims = {"project_id": str(project_id)}
        lines = [LedgerLine.debit(accounts.work_in_progress, deltas.total, memo, **dims)]
        for account, amount in (
            (accounts.direct_material, deltas.material),
            (accounts.direct_labor, deltas.labor),
            (accounts.direct_expenses, deltas.expenses),
            (accounts.overhead_control, deltas.overhead),
        ):
            if amount > ZERO:
                lines.append(LedgerLine.credit(account, amount, memo, **dims))
        return lines

    # =========================================================================
    # Queries
    # =========================================================================

    def get_wip_summary(self, project_id: UUID) -> WipSummary:
        """Period records newest first, with cumulative bucket totals."""
        load(self._session, ProjectModel, project_id, "Project")
        periods = tuple(
            row.to_dto()
            for row in self._session.scalars(
                select(WorkInProgressModel)
                .where(WorkInProgressModel.project_id == project_id)
                .order_by(WorkInProgressModel.period_date.desc())
            )
        )
        return WipSummary(
            project_id=project_id,
            periods=periods,
            total_material=sum((p.direct_material_cost for p in periods), ZERO),
            total_labor=sum((p.direct_labor_cost for p in periods), ZERO),
            total_expenses=sum((p.direct_expenses for p in periods), ZERO),
            total_overhead=sum((p.allocated_overhead for p in periods), ZERO),
            total_cost=sum((p.total_cost for p in periods), ZERO),
        )

    def get_cost_allocation_summary(self, project_id: UUID) -> CostAllocationSummary:
        """Overhead allocations newest first, totalled per allocation method."""
        load(self._session, ProjectModel, project_id, "Project")
        allocations = tuple(
            row.to_dto()
            for row in self._session.scalars(
                select(ProjectCostAllocationModel)
                .where(ProjectCostAllocationModel.project_id == project_id)
                .order_by(
                    ProjectCostAllocationModel.allocation_date.desc(),
                    ProjectCostAllocationModel.created_at.desc(),
                )
            )
        )
        by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for allocation in allocations:
            by_method[allocation.allocation_method.value] += allocation.allocated_amount
        return CostAllocationSummary(
            project_id=project_id,
            allocation_count=len(allocations),
            total_allocated=sum((a.allocated_amount for a in allocations), ZERO),
            by_method=dict(by_method),
            allocations=allocations,
        )

    def get_project_profitability(self, project_id: UUID) -> ProjectProfitability:
        """
        Accumulated WIP cost against revenue recognized on the project's milestones.

        Margin is gross profit over recognized revenue in percent, zero while
        nothing has been recognized.
        """
        project = load(self._session, ProjectModel, project_id, "Project").to_dto()
        wip = self.get_wip_summary(project_id)
        recognized = sum(
            (
                row.recognized_revenue
                for row in self._session.scalars(
                    select(MilestoneModel).where(MilestoneModel.project_id == project_id)
                )
            ),
            ZERO,
        )
        places = self._config.recognition.money_places
        total_cost = round_money(wip.total_cost, places)
        recognized = round_money(recognized, places)
        gross_profit = recognized - total_cost
        margin = (
            round_percentage(gross_profit / recognized * HUNDRED)
            if recognized > ZERO else round_percentage(ZERO)
        )

        variance = variance_pct = None
        budget = project.estimated_budget
        if budget > ZERO:
            variance = total_cost - budget
            variance_pct = round_percentage(variance / budget * HUNDRED)

        breakdown = {
            bucket: (
                round_percentage(amount / total_cost * HUNDRED)
                if total_cost > ZERO else round_percentage(ZERO)
            )
            for bucket, amount in (
                ("material", wip.total_material),
                ("labor", wip.total_labor),
                ("expenses", wip.total_expenses),
                ("overhead", wip.total_overhead),
            )
        }
        return ProjectProfitability(
            project_id=project_id,
            total_cost=total_cost,
            recognized_revenue=recognized,
            gross_profit=gross_profit,
            profit_margin=margin,
            estimated_budget=budget,
            cost_variance=variance,
            cost_variance_percentage=variance_pct,
            cost_breakdown=breakdown,
        )
