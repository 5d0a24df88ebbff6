"""
Module: finance_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: milestone dependency forest, critical path,
    schedule risk and percentage-of-completion recognition.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import finance_kernel (and sibling engine modules).
    MUST NOT import finance_config or finance_modules.

Invariants enforced:
    - Purity: engines never read the clock; "now" is a parameter.
    - Decimal-only arithmetic for money and percentages.
    - Determinism: identical inputs produce identical outputs.

Usage:
    from finance_engines import build_forest, longest_chain, assess_risks
"""

from finance_engines.critical_path import (
    CriticalPath,
    TimelineMetrics,
    buffer_days,
    duration_days,
    longest_chain,
    span_days,
    timeline_metrics,
)
from finance_engines.dependency_graph import (
    ForestNode,
    build_forest,
    path_to_root,
    roots,
    would_create_cycle,
)
from finance_engines.recognition import (
    DeferralStatus,
    MilestoneRecognition,
    compute_milestone_recognition,
    deferral_status,
    earned_revenue,
    equal_share,
    next_milestone_status,
    recognized_share,
    validate_amount,
    validate_percentage,
)
from finance_engines.risk import MilestoneRisk, RiskThresholds, assess_risks
from finance_engines.schedule_types import (
    FINISHED_STATUSES,
    MilestoneStatus,
    RiskLevel,
    ScheduledMilestone,
)
from finance_engines.tracer import traced_engine

__all__ = [
    "CriticalPath",
    "DeferralStatus",
    "FINISHED_STATUSES",
    "ForestNode",
    "MilestoneRecognition",
    "MilestoneRisk",
    "MilestoneStatus",
    "RiskLevel",
    "RiskThresholds",
    "ScheduledMilestone",
    "TimelineMetrics",
    "assess_risks",
    "buffer_days",
    "build_forest",
    "compute_milestone_recognition",
    "deferral_status",
    "duration_days",
    "earned_revenue",
    "equal_share",
    "longest_chain",
    "next_milestone_status",
    "path_to_root",
    "recognized_share",
    "roots",
    "span_days",
    "timeline_metrics",
    "traced_engine",
    "validate_amount",
    "validate_percentage",
    "would_create_cycle",
]
