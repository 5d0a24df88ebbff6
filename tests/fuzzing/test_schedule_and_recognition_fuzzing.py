"""
Hypothesis-based fuzzing of the recognition and schedule invariants.

Properties:
- Milestone recognition: recognized <= planned and never decreases, for any
  sequence of completion percentages.
- Deferred revenue: recognized + remaining == total after any release sequence.
- WIP accumulation: totals independent of the order of the deltas.
- Dependency forest: arbitrary predecessor links either build a forest with
  level(child) == level(parent) + 1 or raise CycleDetectedError.
- Critical path: a root-to-leaf chain at least as long as every other chain.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from finance_engines.critical_path import buffer_days, duration_days, longest_chain
from finance_engines.dependency_graph import build_forest
from finance_engines.recognition import compute_milestone_recognition
from finance_engines.schedule_types import MilestoneStatus, ScheduledMilestone
from finance_kernel.exceptions import CycleDetectedError, NoOpError
from finance_modules.wip.models import CostDeltas

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

percentages = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100"), places=2,
    allow_nan=False, allow_infinity=False,
)
money = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("999999999.99"), places=2,
    allow_nan=False, allow_infinity=False,
)
cost = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("1000000"), places=2,
    allow_nan=False, allow_infinity=False,
)

DB_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


# =============================================================================
# Pure engines
# =============================================================================


class TestRecognitionProperties:

    @given(planned=money, steps=st.lists(percentages, min_size=1, max_size=12))
    @settings(max_examples=200, deadline=None)
    def test_recognized_bounded_and_monotonic(self, planned, steps):
        recognized = Decimal("0")
        status = MilestoneStatus.PENDING
        for pct in steps:
            try:
                result = compute_milestone_recognition(
                    "m", planned, recognized, pct, status,
                )
            except NoOpError:
                continue
            assert result.delta >= Decimal("0.01")
            assert result.recognized_revenue > recognized
            recognized, status = result.recognized_revenue, result.status
            assert recognized <= planned
            assert result.remaining_revenue == planned - recognized


def _random_forest(links, n):
    milestones = []
    for i in range(n):
        start = T0 + timedelta(days=i)
        milestones.append(
            ScheduledMilestone(
                id=f"M{i}",
                sequence=i + 1,
                name=f"M{i}",
                planned_start=start,
                planned_end=start + timedelta(days=links[i][1]),
                predecessor_id=(f"M{links[i][0]}" if links[i][0] is not None else None),
            )
        )
    return milestones


@st.composite
def milestone_sets(draw, acyclic=False):
    n = draw(st.integers(min_value=1, max_value=25))
    links = []
    for i in range(n):
        upper = i - 1 if acyclic else n - 1
        if upper < 0:
            pred = None
        else:
            pred = draw(st.one_of(st.none(), st.integers(min_value=0, max_value=upper)))
        links.append((pred, draw(st.integers(min_value=1, max_value=30))))
    return _random_forest(links, n)


class TestScheduleProperties:

    @given(milestones=milestone_sets())
    @settings(max_examples=200, deadline=None)
    def test_forest_levels_or_cycle(self, milestones):
        try:
            forest = build_forest(milestones)
        except CycleDetectedError as exc:
            assert exc.path[0] == exc.path[-1]
            return
        for node in forest.values():
            if node.parent_id is None:
                assert node.level == 0
            else:
                assert node.level == forest[node.parent_id].level + 1
                assert node.id in forest[node.parent_id].children

    @given(milestones=milestone_sets(acyclic=True))
    @settings(max_examples=200, deadline=None)
    def test_critical_path_is_longest_chain(self, milestones):
        path = longest_chain(milestones)
        by_id = {m.id: m for m in milestones}

        assert by_id[path.path_ids[0]].predecessor_id is None
        for parent, child in zip(path.path_ids, path.path_ids[1:]):
            assert by_id[child].predecessor_id == parent
        assert path.total_duration_days == sum(duration_days(by_id[i]) for i in path.path_ids)

        # Every root-to-node chain is no longer than the critical path
        for m in milestones:
            total, current = 0, m
            while current is not None:
                total += duration_days(current)
                current = by_id.get(current.predecessor_id)
            assert total <= path.total_duration_days

        assert buffer_days(milestones, path) >= 0


# =============================================================================
# Services
# =============================================================================


class TestDeferredRevenueProperties:

    @given(
        total=st.decimals(min_value=Decimal("1"), max_value=Decimal("100000000"), places=2),
        fractions=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1"), places=2),
            min_size=1, max_size=8,
        ),
    )
    @DB_SETTINGS
    def test_balance_identity(self, deferred_revenue_service, test_actor_id, total, fractions):
        record = deferred_revenue_service.open(
            invoice_id=f"INV-{uuid4()}",
            payment_date=date(2024, 1, 1),
            total_amount=total,
            recognition_date=date(2024, 12, 31),
            obligation_description="Fuzzed obligation",
            actor_id=test_actor_id,
        )
        for fraction in fractions:
            if not record.status.is_active:
                break
            amount = max(Decimal("0.01"), (record.remaining_amount * fraction).quantize(Decimal("0.01")))
            amount = min(amount, record.remaining_amount)
            record = deferred_revenue_service.recognize(
                record.id, amount, date(2024, 6, 30), test_actor_id,
            )
            assert record.recognized_amount + record.remaining_amount == record.total_amount
            assert record.remaining_amount >= 0


class TestWipProperties:

    @given(
        deltas=st.lists(
            st.tuples(cost, cost, cost, cost).filter(lambda t: any(t)),
            min_size=1, max_size=5,
        ),
        seed=st.randoms(use_true_random=False),
    )
    @DB_SETTINGS
    def test_accumulation_commutes(self, create_project, wip_service, test_actor_id,
                                   deltas, seed):
        forward, shuffled = create_project(), create_project()
        reordered = list(deltas)
        seed.shuffle(reordered)

        for project, sequence in ((forward, deltas), (shuffled, reordered)):
            for material, labor, expenses, overhead in sequence:
                wip_service.accumulate(
                    project.id, date(2024, 5, 20),
                    CostDeltas(material, labor, expenses, overhead),
                    test_actor_id,
                )

        a = wip_service.get_wip_summary(forward.id).periods[0]
        b = wip_service.get_wip_summary(shuffled.id).periods[0]
        assert (a.direct_material_cost, a.direct_labor_cost, a.direct_expenses,
                a.allocated_overhead, a.total_cost) == (
            b.direct_material_cost, b.direct_labor_cost, b.direct_expenses,
            b.allocated_overhead, b.total_cost)
        assert a.total_cost == sum((sum(d) for d in deltas), Decimal("0"))
