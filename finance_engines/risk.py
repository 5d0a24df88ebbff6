"""
finance_engines.risk -- Per-milestone schedule risk classification.

Responsibility:
    Combine critical-path membership, overrun of the planned end, recorded
    delay, an imminent start, an unfinished predecessor and slow progress
    into a risk level with human-readable reasons.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Now" is a parameter;
    services pass ``clock.now()``.

Invariants enforced:
    - Rules are evaluated in a fixed order; each triggered rule appends a
      reason and can only raise the level, never lower it.
    - Milestones with no triggered rule are omitted from the result.
    - Output is ordered HIGH, MEDIUM, LOW; input order is kept within a level.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from finance_engines.critical_path import CriticalPath, longest_chain
from finance_engines.schedule_types import (
    MilestoneStatus,
    RiskLevel,
    ScheduledMilestone,
)
from finance_engines.tracer import traced_engine
from finance_kernel.logging_config import get_logger

logger = get_logger("engines.risk")


@dataclass(frozen=True)
class RiskThresholds:
    """Rule thresholds (delays in days, progress in percent)."""

    delay_high_days: int = 7
    delay_medium_days: int = 3
    upcoming_start_days: int = 7
    low_progress_pct: Decimal = Decimal("30")


@dataclass(frozen=True)
class MilestoneRisk:
    """Risk classification for one milestone."""

    milestone_id: Hashable
    sequence: int
    name: str
    level: RiskLevel
    reasons: tuple[str, ...]


class _Assessment:
    def __init__(self) -> None:
        self.level = RiskLevel.LOW
        self.reasons: list[str] = []

    def flag(self, level: RiskLevel, reason: str) -> None:
        self.reasons.append(reason)
        if level.rank > self.level.rank:
            self.level = level


@traced_engine("risk", "1.0", fingerprint_fields=("milestones", "now"))
def assess_risks(
    milestones: Sequence[ScheduledMilestone],
    now: datetime,
    thresholds: RiskThresholds | None = None,
    critical_path: CriticalPath | None = None,
    predecessors: Mapping[Hashable, ScheduledMilestone] | None = None,
) -> list[MilestoneRisk]:
    """
    Classify schedule risk for every milestone in the snapshot.

    Args:
        milestones: Snapshot of the project's milestones.
        now: Current time (timezone-aware, same zone as the milestone dates).
        thresholds: Rule thresholds; defaults to RiskThresholds().
        critical_path: Precomputed critical path; computed when omitted.
        predecessors: Milestones to resolve predecessor links against, by id.
            Defaults to the snapshot itself.  Pass the full project when the
            snapshot leaves some milestones out (e.g. cancelled ones), so a
            link to an excluded milestone still reports the blockage.

    Raises:
        CycleDetectedError: if the critical path has to be computed and the
            predecessor links loop.
    """
    policy = thresholds or RiskThresholds()
    if critical_path is None:
        critical_path = longest_chain(milestones)

    on_path = set(critical_path.path_ids)
    by_id = predecessors if predecessors is not None else {m.id: m for m in milestones}
    upcoming_window = timedelta(days=policy.upcoming_start_days)

    results: list[MilestoneRisk] = []
    for m in milestones:
        a = _Assessment()

        if m.id in on_path:
            a.flag(RiskLevel.HIGH, "On critical path")

        if m.planned_end < now and not m.status.is_finished:
            a.flag(
                RiskLevel.HIGH,
                f"Overdue: planned end {m.planned_end.date().isoformat()} has passed",
            )

        if m.delay_days is not None:
            if m.delay_days > policy.delay_high_days:
                a.flag(RiskLevel.HIGH, f"Delayed by {m.delay_days} days")
            elif m.delay_days > policy.delay_medium_days:
                a.flag(RiskLevel.MEDIUM, f"Delayed by {m.delay_days} days")

        if m.status == MilestoneStatus.PENDING:
            until_start = m.planned_start - now
            if timedelta(0) <= until_start < upcoming_window:
                a.flag(
                    RiskLevel.MEDIUM,
                    f"Starts within {policy.upcoming_start_days} days and not started",
                )

        predecessor = by_id.get(m.predecessor_id) if m.predecessor_id is not None else None
        if predecessor is not None and not predecessor.status.is_finished:
            a.flag(
                RiskLevel.MEDIUM,
                f"Blocked by unfinished predecessor #{predecessor.sequence} {predecessor.name}",
            )

        if (
            m.status == MilestoneStatus.IN_PROGRESS
            and m.completion_percentage < policy.low_progress_pct
        ):
            a.flag(
                RiskLevel.MEDIUM,
                f"Low progress: {m.completion_percentage}% complete",
            )

        if a.reasons:
            results.append(
                MilestoneRisk(
                    milestone_id=m.id,
                    sequence=m.sequence,
                    name=m.name,
                    level=a.level,
                    reasons=tuple(a.reasons),
                )
            )

    results.sort(key=lambda r: -r.level.rank)

    logger.debug(
        "risk_assessed",
        extra={
            "milestone_count": len(milestones),
            "flagged_count": len(results),
            "high_count": sum(1 for r in results if r.level == RiskLevel.HIGH),
        },
    )
    return results
