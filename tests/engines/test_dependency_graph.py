"""
Tests for the milestone dependency forest.

Covers:
- Parent / children / level construction
- Dangling predecessor references
- Cycle detection (self-link, two-node, long loop)
- would_create_cycle pre-check used by set_predecessor
"""

from datetime import datetime, timedelta, timezone

import pytest

from finance_engines.dependency_graph import (
    build_forest,
    path_to_root,
    roots,
    would_create_cycle,
)
from finance_engines.schedule_types import ScheduledMilestone
from finance_kernel.exceptions import CycleDetectedError

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ms(mid, pred=None, seq=1, start_day=0, days=5):
    start = T0 + timedelta(days=start_day)
    return ScheduledMilestone(
        id=mid,
        sequence=seq,
        name=mid,
        planned_start=start,
        planned_end=start + timedelta(days=days),
        predecessor_id=pred,
    )


class TestBuildForest:
    """Forest structure for valid snapshots."""

    def test_single_chain_levels(self):
        forest = build_forest([ms("A"), ms("B", "A", 2), ms("C", "B", 3)])

        assert [forest[i].level for i in "ABC"] == [0, 1, 2]
        assert forest["A"].children == ("B",)
        assert forest["C"].is_leaf
        assert forest["A"].is_root

    def test_branching_children_in_input_order(self):
        forest = build_forest([ms("A"), ms("C", "A", 2), ms("B", "A", 3)])

        assert forest["A"].children == ("C", "B")
        assert forest["B"].level == forest["C"].level == 1

    def test_child_listed_before_parent(self):
        forest = build_forest([ms("B", "A", 2), ms("A", None, 1)])

        assert list(forest) == ["B", "A"]
        assert forest["B"].parent_id == "A"
        assert forest["B"].level == 1

    def test_multiple_roots(self):
        forest = build_forest([ms("A"), ms("B"), ms("C", "B")])

        assert roots(forest) == ["A", "B"]

    def test_dangling_predecessor_becomes_root(self):
        forest = build_forest([ms("A", "GONE"), ms("B", "A")])

        assert forest["A"].is_root
        assert forest["A"].level == 0
        assert forest["B"].level == 1

    def test_empty_snapshot(self):
        assert build_forest([]) == {}

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            build_forest([ms("A"), ms("A")])

    def test_path_to_root(self):
        forest = build_forest([ms("A"), ms("B", "A"), ms("C", "B")])

        assert path_to_root(forest, "C") == ["C", "B", "A"]

    def test_long_chain_does_not_recurse(self):
        chain = [ms("N0")] + [ms(f"N{i}", f"N{i - 1}", i) for i in range(1, 5000)]

        forest = build_forest(chain)

        assert forest["N4999"].level == 4999


class TestCycleDetection:
    """Predecessor loops raise CycleDetectedError carrying the loop."""

    def test_self_loop(self):
        with pytest.raises(CycleDetectedError) as exc_info:
            build_forest([ms("A", "A")])
        assert exc_info.value.path == ["A", "A"]

    def test_two_node_loop(self):
        with pytest.raises(CycleDetectedError) as exc_info:
            build_forest([ms("A", "B"), ms("B", "A")])
        path = exc_info.value.path
        assert path[0] == path[-1]
        assert set(path) == {"A", "B"}

    def test_loop_hanging_off_valid_tree(self):
        milestones = [ms("R"), ms("X", "R"), ms("P", "Q"), ms("Q", "S"), ms("S", "P")]

        with pytest.raises(CycleDetectedError) as exc_info:
            build_forest(milestones)
        assert set(exc_info.value.path) == {"P", "Q", "S"}

    def test_cycle_logged(self, captured_logs):
        with pytest.raises(CycleDetectedError):
            build_forest([ms("A", "B"), ms("B", "A")])

        assert any(r["message"] == "milestone_cycle_detected" for r in captured_logs())


class TestWouldCreateCycle:

    def test_self_link(self):
        assert would_create_cycle([ms("A")], "A", "A") == ["A", "A"]

    def test_link_to_descendant(self):
        milestones = [ms("A"), ms("B", "A"), ms("C", "B")]

        assert would_create_cycle(milestones, "A", "C") == ["A", "C", "B", "A"]

    def test_safe_link(self):
        milestones = [ms("A"), ms("B", "A"), ms("C")]

        assert would_create_cycle(milestones, "C", "B") is None
