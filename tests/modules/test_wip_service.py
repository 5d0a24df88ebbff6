"""
Tests for the WIP Cost Accumulator.

Validates:
- accumulate: additive upsert keyed by (project, month)
- posts Dr WIP / Cr one account per non-zero bucket
- commutativity of accumulation order
- overhead allocation and the WIP / allocation summaries
- a period insert that loses a race increments the winning row
- a failed ledger posting leaves no period row and no journal entry
- project profitability: cost against recognized revenue
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from finance_kernel.exceptions import LedgerPostingError, NotFoundError, ValidationError
from finance_kernel.models.journal import JournalEntry
from finance_modules.wip.models import AllocationMethod, CostDeltas
from finance_modules.wip.orm import WorkInProgressModel
from finance_modules.wip.service import WipService

JAN = date(2024, 1, 1)


class TestAccumulate:

    def test_first_accumulation_creates_period(self, project, wip_service, test_actor_id):
        wip = wip_service.accumulate(
            project.id, date(2024, 1, 17),
            CostDeltas(material=Decimal("100"), labor=Decimal("250.50")),
            test_actor_id,
        )

        assert wip.period_date == JAN
        assert wip.direct_material_cost == Decimal("100.00")
        assert wip.direct_labor_cost == Decimal("250.50")
        assert wip.total_cost == Decimal("350.50")

    def test_same_month_increments(self, project, wip_service, test_actor_id):
        first = wip_service.accumulate(
            project.id, date(2024, 1, 3), CostDeltas(material=Decimal("100")), test_actor_id,
        )
        second = wip_service.accumulate(
            project.id, date(2024, 1, 28),
            CostDeltas(material=Decimal("40"), expenses=Decimal("10")),
            test_actor_id,
        )

        assert second.id == first.id
        assert second.direct_material_cost == Decimal("140.00")
        assert second.direct_expenses == Decimal("10.00")
        assert second.total_cost == Decimal("150.00")

    def test_new_month_new_record(self, project, wip_service, test_actor_id):
        jan = wip_service.accumulate(project.id, JAN, CostDeltas(labor=Decimal("1")), test_actor_id)
        feb = wip_service.accumulate(
            project.id, date(2024, 2, 29), CostDeltas(labor=Decimal("2")), test_actor_id,
        )

        assert feb.id != jan.id
        assert feb.period_date == date(2024, 2, 1)
        assert feb.total_cost == Decimal("2.00")

    def test_posts_wip_against_bucket_accounts(
        self, project, wip_service, ledger, finance_config, test_actor_id,
    ):
        wip = wip_service.accumulate(
            project.id, JAN,
            CostDeltas(material=Decimal("100"), overhead=Decimal("20")),
            test_actor_id,
        )

        [entry] = ledger.entries_for("work_in_progress", wip.id)
        accounts = finance_config.accounts
        debits = [(line.account_code, line.amount) for line in entry.lines if line.side == "debit"]
        credits = {line.account_code: line.amount for line in entry.lines if line.side == "credit"}
        assert debits == [(accounts.work_in_progress, Decimal("120.00"))]
        assert credits == {
            accounts.direct_material: Decimal("100.00"),
            accounts.overhead_control: Decimal("20.00"),
        }
        assert entry.id == wip.last_entry_id

    @pytest.mark.parametrize("deltas", [
        CostDeltas(material=Decimal("-1")),
        CostDeltas(labor=Decimal("10"), overhead=Decimal("-0.01")),
    ])
    def test_negative_delta_rejected(self, project, wip_service, test_actor_id, deltas):
        with pytest.raises(ValidationError):
            wip_service.accumulate(project.id, JAN, deltas, test_actor_id)

    def test_all_zero_rejected(self, project, wip_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            wip_service.accumulate(project.id, JAN, CostDeltas(), test_actor_id)
        assert exc_info.value.field == "deltas"

    def test_unknown_project(self, wip_service, test_actor_id):
        with pytest.raises(NotFoundError):
            wip_service.accumulate(uuid4(), JAN, CostDeltas(labor=Decimal("5")), test_actor_id)

    def test_failed_call_leaves_period_untouched(self, project, wip_service, test_actor_id):
        wip_service.accumulate(project.id, JAN, CostDeltas(labor=Decimal("5")), test_actor_id)
        with pytest.raises(ValidationError):
            wip_service.accumulate(project.id, JAN, CostDeltas(labor=Decimal("-5")), test_actor_id)

        summary = wip_service.get_wip_summary(project.id)
        assert summary.total_cost == Decimal("5.00")

    @pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity")])
    def test_non_finite_delta_rejected(self, project, wip_service, test_actor_id, value):
        with pytest.raises(ValidationError) as exc_info:
            wip_service.accumulate(project.id, JAN, CostDeltas(labor=value), test_actor_id)
        assert exc_info.value.field == "labor"

    def test_lost_insert_race_increments_existing_period(
        self, project, wip_service, session, test_actor_id, captured_logs, monkeypatch,
    ):
        first = wip_service.accumulate(
            project.id, JAN, CostDeltas(material=Decimal("10")), test_actor_id,
        )

        lock_period = wip_service._lock_period
        lookups = []

        def first_lookup_misses(project_id, period):
            lookups.append(period)
            if len(lookups) == 1:
                return None
            return lock_period(project_id, period)

        monkeypatch.setattr(wip_service, "_lock_period", first_lookup_misses)

        second = wip_service.accumulate(
            project.id, date(2024, 1, 20), CostDeltas(labor=Decimal("5")), test_actor_id,
        )

        assert second.id == first.id
        assert second.direct_material_cost == Decimal("10.00")
        assert second.direct_labor_cost == Decimal("5.00")
        assert second.total_cost == Decimal("15.00")
        rows = session.scalar(select(func.count()).select_from(WorkInProgressModel))
        assert rows == 1
        messages = [r["message"] for r in captured_logs()]
        assert "wip_period_insert_lost_race" in messages


class TestRejectedPosting:

    @pytest.fixture
    def rejecting_wip_service(self, session, deterministic_clock, finance_config,
                              rejecting_ledger):
        return WipService(
            session, clock=deterministic_clock, config=finance_config,
            ledger=rejecting_ledger,
        )

    def test_new_period_not_created(
        self, project, rejecting_wip_service, wip_service, session, test_actor_id,
    ):
        with pytest.raises(LedgerPostingError):
            rejecting_wip_service.accumulate(
                project.id, JAN, CostDeltas(material=Decimal("10")), test_actor_id,
            )

        assert wip_service.get_wip_summary(project.id).periods == ()
        assert session.scalar(select(func.count()).select_from(JournalEntry)) == 0

    def test_existing_period_unchanged(
        self, project, rejecting_wip_service, wip_service, session, test_actor_id,
    ):
        before = wip_service.accumulate(
            project.id, JAN, CostDeltas(material=Decimal("10")), test_actor_id,
        )

        with pytest.raises(LedgerPostingError):
            rejecting_wip_service.accumulate(
                project.id, JAN, CostDeltas(labor=Decimal("7")), test_actor_id,
            )

        [after] = wip_service.get_wip_summary(project.id).periods
        assert after == before
        assert session.scalar(select(func.count()).select_from(JournalEntry)) == 1


class TestCommutativity:

    @pytest.mark.parametrize("order", [("a", "b", "c"), ("a", "c", "b"), ("c", "b", "a")])
    def test_order_does_not_change_totals(self, project, wip_service, test_actor_id, order):
        deltas = {
            "a": CostDeltas(material=Decimal("10.10"), labor=Decimal("3")),
            "b": CostDeltas(expenses=Decimal("7.25")),
            "c": CostDeltas(material=Decimal("0.90"), overhead=Decimal("12")),
        }

        for key in order:
            wip = wip_service.accumulate(project.id, JAN, deltas[key], test_actor_id)

        assert wip.direct_material_cost == Decimal("11.00")
        assert wip.direct_labor_cost == Decimal("3.00")
        assert wip.direct_expenses == Decimal("7.25")
        assert wip.allocated_overhead == Decimal("12.00")
        assert wip.total_cost == Decimal("33.25")


class TestOverheadAllocation:

    def test_allocation_lands_in_overhead_bucket(
        self, project, wip_service, ledger, finance_config, test_actor_id,
    ):
        allocation = wip_service.allocate_overhead(
            project.id, "EXP-100", AllocationMethod.DIRECT_LABOR_HOURS,
            Decimal("25"), Decimal("400"), date(2024, 3, 12), test_actor_id,
        )

        assert allocation.period_date == date(2024, 3, 1)
        assert allocation.allocated_amount == Decimal("400.00")
        summary = wip_service.get_wip_summary(project.id)
        assert summary.total_overhead == Decimal("400.00")

        [entry] = ledger.entries_for("work_in_progress", summary.periods[0].id)
        assert entry.id == allocation.entry_id
        assert {line.account_code for line in entry.lines} == {
            finance_config.accounts.work_in_progress,
            finance_config.accounts.overhead_control,
        }

    def test_percentage_out_of_range(self, project, wip_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            wip_service.allocate_overhead(
                project.id, "EXP-1", AllocationMethod.PERCENTAGE,
                Decimal("120"), Decimal("10"), JAN, test_actor_id,
            )
        assert exc_info.value.field == "percentage"

    def test_non_positive_amount(self, project, wip_service, test_actor_id):
        with pytest.raises(ValidationError):
            wip_service.allocate_overhead(
                project.id, "EXP-1", AllocationMethod.PERCENTAGE,
                Decimal("10"), Decimal("0"), JAN, test_actor_id,
            )

    def test_allocation_summary_by_method(self, project, wip_service, test_actor_id):
        for ref, method, amount in [
            ("EXP-1", AllocationMethod.PERCENTAGE, "100"),
            ("EXP-2", AllocationMethod.MACHINE_HOURS, "50"),
            ("EXP-3", AllocationMethod.PERCENTAGE, "25.50"),
        ]:
            wip_service.allocate_overhead(
                project.id, ref, method, Decimal("10"), Decimal(amount), JAN, test_actor_id,
            )

        summary = wip_service.get_cost_allocation_summary(project.id)

        assert summary.allocation_count == 3
        assert summary.total_allocated == Decimal("175.50")
        assert summary.by_method == {
            "percentage": Decimal("125.50"),
            "machine_hours": Decimal("50.00"),
        }


class TestWipSummary:

    def test_periods_newest_first_with_totals(self, project, wip_service, test_actor_id):
        wip_service.accumulate(project.id, date(2024, 1, 5),
                               CostDeltas(material=Decimal("10")), test_actor_id)
        wip_service.accumulate(project.id, date(2024, 3, 5),
                               CostDeltas(labor=Decimal("30")), test_actor_id)
        wip_service.accumulate(project.id, date(2024, 2, 5),
                               CostDeltas(expenses=Decimal("20")), test_actor_id)

        summary = wip_service.get_wip_summary(project.id)

        assert [p.period_date.month for p in summary.periods] == [3, 2, 1]
        assert summary.total_material == Decimal("10.00")
        assert summary.total_labor == Decimal("30.00")
        assert summary.total_expenses == Decimal("20.00")
        assert summary.total_cost == Decimal("60.00")

    def test_unknown_project(self, wip_service):
        with pytest.raises(NotFoundError):
            wip_service.get_wip_summary(uuid4())


class TestProjectProfitability:

    def test_margin_and_variance(
        self, project, milestone, wip_service, milestone_revenue_service, test_actor_id,
    ):
        milestone_revenue_service.recognize(
            milestone.id, Decimal("30"), date(2024, 1, 31), test_actor_id,
        )
        wip_service.accumulate(project.id, JAN, CostDeltas(material=Decimal("150000")),
                               test_actor_id)
        wip_service.accumulate(project.id, date(2024, 2, 1), CostDeltas(labor=Decimal("50000")),
                               test_actor_id)

        report = wip_service.get_project_profitability(project.id)

        assert report.total_cost == Decimal("200000.00")
        assert report.recognized_revenue == Decimal("300000.00")
        assert report.gross_profit == Decimal("100000.00")
        assert report.profit_margin == Decimal("33.33")
        assert report.estimated_budget == Decimal("3000000.00")
        assert report.cost_variance == Decimal("-2800000.00")
        assert report.cost_variance_percentage == Decimal("-93.33")
        assert report.cost_breakdown == {
            "material": Decimal("75.00"),
            "labor": Decimal("25.00"),
            "expenses": Decimal("0.00"),
            "overhead": Decimal("0.00"),
        }

    def test_loss_before_any_revenue(self, create_project, wip_service, test_actor_id):
        unbudgeted = create_project()
        wip_service.accumulate(unbudgeted.id, JAN, CostDeltas(expenses=Decimal("40")),
                               test_actor_id)

        report = wip_service.get_project_profitability(unbudgeted.id)

        assert report.recognized_revenue == Decimal("0.00")
        assert report.gross_profit == Decimal("-40.00")
        assert report.profit_margin == Decimal("0.00")
        assert report.cost_variance is None
        assert report.cost_variance_percentage is None

    def test_unknown_project(self, wip_service):
        with pytest.raises(NotFoundError):
            wip_service.get_project_profitability(uuid4())
