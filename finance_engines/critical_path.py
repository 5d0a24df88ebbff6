"""
finance_engines.critical_path -- Longest duration chain through the
milestone dependency forest.

Responsibility:
    Find the root-to-leaf chain with the greatest cumulative planned
    duration, the slack between the project span and that chain (buffer
    days), and the timeline metrics reported with a schedule analysis.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - duration(m) = ceil((planned_end - planned_start) / 1 day), computed in
      integer microseconds (no floats).
    - Traversal is an explicit stack with memoization; depth of the chain
      never touches the interpreter recursion limit.
    - Ties keep the chain reached first in input order (roots in input
      order, children in input order, only a strictly longer chain
      replaces the current best).
    - buffer_days >= 0.

Failure modes:
    - CycleDetectedError from build_forest on predecessor loops.

Usage:
    path = longest_chain(milestones)
    path.path_ids, path.total_duration_days
    buffer_days(milestones, path)
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from finance_engines.dependency_graph import build_forest, roots
from finance_engines.schedule_types import ScheduledMilestone
from finance_engines.tracer import traced_engine
from finance_kernel.db.types import round_percentage
from finance_kernel.logging_config import get_logger

logger = get_logger("engines.critical_path")

_MICROS_PER_DAY = 86_400 * 1_000_000


def _ceil_days(delta: timedelta) -> int:
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return -(-micros // _MICROS_PER_DAY)


def duration_days(milestone: ScheduledMilestone) -> int:
    """Planned duration in whole days, rounded up."""
    return _ceil_days(milestone.planned_end - milestone.planned_start)


def span_days(milestones: Sequence[ScheduledMilestone]) -> int:
    """ceil(max(planned_end) - min(planned_start)); 0 for no milestones."""
    if not milestones:
        return 0
    start: datetime = min(m.planned_start for m in milestones)
    end: datetime = max(m.planned_end for m in milestones)
    return _ceil_days(end - start)


@dataclass(frozen=True)
class CriticalPath:
    """Longest chain: ordered ids from root to leaf, and its length in days."""

    path_ids: tuple[Hashable, ...]
    total_duration_days: int

    def __contains__(self, milestone_id: object) -> bool:
        return milestone_id in self.path_ids


@traced_engine("critical_path", "1.0", fingerprint_fields=("milestones",))
def longest_chain(milestones: Sequence[ScheduledMilestone]) -> CriticalPath:
    """
    Compute the critical path of a milestone snapshot.

    Raises:
        CycleDetectedError: if the predecessor links loop.
    """
    if not milestones:
        return CriticalPath(path_ids=(), total_duration_days=0)

    forest = build_forest(milestones)
    durations = {m.id: duration_days(m) for m in milestones}

    # best[node] = (cumulative days from node to the end of its chain, next id)
    best: dict[Hashable, tuple[int, Hashable | None]] = {}

    for root_id in roots(forest):
        stack: list[tuple[Hashable, bool]] = [(root_id, False)]
        while stack:
            node_id, expanded = stack.pop()
            if node_id in best:
                continue
            node = forest[node_id]
            if not expanded:
                stack.append((node_id, True))
                for child in reversed(node.children):
                    if child not in best:
                        stack.append((child, False))
                continue
            tail_days, tail_next = 0, None
            for child in node.children:
                if tail_next is None or best[child][0] > tail_days:
                    tail_days, tail_next = best[child][0], child
            best[node_id] = (durations[node_id] + tail_days, tail_next)

    winner: Hashable | None = None
    for root_id in roots(forest):
        if winner is None or best[root_id][0] > best[winner][0]:
            winner = root_id

    path: list[Hashable] = []
    current = winner
    while current is not None:
        path.append(current)
        current = best[current][1]

    result = CriticalPath(
        path_ids=tuple(path),
        total_duration_days=best[winner][0] if winner is not None else 0,
    )
    logger.debug(
        "critical_path_computed",
        extra={
            "milestone_count": len(milestones),
            "path_length": len(result.path_ids),
            "total_duration_days": result.total_duration_days,
        },
    )
    return result


def buffer_days(
    milestones: Sequence[ScheduledMilestone],
    critical_path: CriticalPath | None = None,
) -> int:
    """Project span minus critical path duration, clamped at zero."""
    if critical_path is None:
        critical_path = longest_chain(milestones)
    return max(0, span_days(milestones) - critical_path.total_duration_days)


@dataclass(frozen=True)
class TimelineMetrics:
    """Summary figures reported alongside the critical path."""

    total_days: int
    critical_path_days: int
    buffer_days: int
    float_percentage: Decimal
    milestone_count: int
    completed_count: int
    delayed_count: int
    average_delay_days: Decimal
    duration_variance_days: Decimal


@traced_engine("timeline_metrics", "1.0", fingerprint_fields=("milestones",))
def timeline_metrics(
    milestones: Sequence[ScheduledMilestone],
    critical_path: CriticalPath | None = None,
) -> TimelineMetrics:
    """
    Span, critical path, slack and delay statistics for a snapshot.

    average_delay_days is taken over milestones with a positive delay;
    duration_variance_days is the mean (actual - planned) duration over
    milestones that have both actual dates.
    """
    if critical_path is None:
        critical_path = longest_chain(milestones)

    total = span_days(milestones)
    buffer = max(0, total - critical_path.total_duration_days)
    float_pct = (
        round_percentage(Decimal(buffer) * Decimal("100") / Decimal(total))
        if total > 0
        else Decimal("0.00")
    )

    delays = [m.delay_days for m in milestones if m.delay_days and m.delay_days > 0]
    avg_delay = (
        round_percentage(Decimal(sum(delays)) / Decimal(len(delays)))
        if delays
        else Decimal("0.00")
    )

    variances = [
        _ceil_days(m.actual_end - m.actual_start) - duration_days(m)
        for m in milestones
        if m.actual_start is not None and m.actual_end is not None
    ]
    variance = (
        round_percentage(Decimal(sum(variances)) / Decimal(len(variances)))
        if variances
        else Decimal("0.00")
    )

    return TimelineMetrics(
        total_days=total,
        critical_path_days=critical_path.total_duration_days,
        buffer_days=buffer,
        float_percentage=float_pct,
        milestone_count=len(milestones),
        completed_count=sum(1 for m in milestones if m.status.is_finished),
        delayed_count=len(delays),
        average_delay_days=avg_delay,
        duration_variance_days=variance,
    )
