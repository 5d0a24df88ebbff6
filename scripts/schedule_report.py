#!/usr/bin/env python3
"""
Print the schedule analysis of a milestone file: dependency levels, critical
path, buffer days, timeline metrics and risk flags.

The input is a YAML document:

    as_of: 2024-03-01T00:00:00Z        # optional, defaults to now (UTC)
    milestones:
      - id: design
        name: Design
        planned_start: 2024-01-01
        planned_end: 2024-01-06
        status: in_progress            # optional, default pending
        completion_percentage: 20      # optional
        delay_days: 4                  # optional
      - id: build
        name: Build
        planned_start: 2024-01-06
        planned_end: 2024-01-16
        predecessor: design

Usage:
  python3 scripts/schedule_report.py milestones.yaml [--config sets/custom.yaml] [--json]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def _as_datetime(value, field: str, milestone_id) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        return _as_datetime(datetime.fromisoformat(value), field, milestone_id)
    raise ValueError(f"milestone {milestone_id}: {field} is not a date ({value!r})")


def load_milestones(path: Path):
    """Read the YAML milestone file into ScheduledMilestone snapshots."""
    from finance_engines.schedule_types import MilestoneStatus, ScheduledMilestone

    with open(path) as f:
        doc = yaml.safe_load(f) or {}

    rows = doc.get("milestones") or []
    if not isinstance(rows, list):
        raise ValueError("'milestones' must be a list")

    milestones = []
    for seq, row in enumerate(rows, start=1):
        mid = str(row.get("id") or row.get("name") or seq)
        predecessor = row.get("predecessor")
        milestones.append(
            ScheduledMilestone(
                id=mid,
                sequence=int(row.get("sequence", seq)),
                name=str(row.get("name", mid)),
                planned_start=_as_datetime(row.get("planned_start"), "planned_start", mid),
                planned_end=_as_datetime(row.get("planned_end"), "planned_end", mid),
                predecessor_id=str(predecessor) if predecessor is not None else None,
                delay_days=row.get("delay_days"),
                status=MilestoneStatus(row.get("status", "pending")),
                completion_percentage=Decimal(str(row.get("completion_percentage", 0))),
            )
        )

    as_of = doc.get("as_of")
    now = _as_datetime(as_of, "as_of", "-") if as_of is not None else datetime.now(UTC)
    return milestones, now


def build_report(milestones, now, thresholds) -> dict:
    from finance_engines.critical_path import longest_chain, timeline_metrics
    from finance_engines.dependency_graph import build_forest
    from finance_engines.risk import assess_risks

    forest = build_forest(milestones)
    path = longest_chain(milestones)
    metrics = timeline_metrics(milestones, critical_path=path)
    risks = assess_risks(milestones, now, thresholds=thresholds, critical_path=path)
    return {
        "as_of": now.isoformat(),
        "levels": {str(node_id): node.level for node_id, node in forest.items()},
        "critical_path": [str(i) for i in path.path_ids],
        "critical_path_days": path.total_duration_days,
        "total_days": metrics.total_days,
        "buffer_days": metrics.buffer_days,
        "float_percentage": str(metrics.float_percentage),
        "completed_count": metrics.completed_count,
        "delayed_count": metrics.delayed_count,
        "average_delay_days": str(metrics.average_delay_days),
        "risks": [
            {
                "milestone": str(r.milestone_id),
                "name": r.name,
                "level": r.level.value,
                "reasons": list(r.reasons),
            }
            for r in risks
        ],
    }


def print_report(report: dict) -> None:
    print("=" * W)
    print(f"  SCHEDULE REPORT  (as of {report['as_of']})")
    print("=" * W)
    print(f"  Critical path : {' -> '.join(report['critical_path']) or '(none)'}")
    print(f"  Path duration : {report['critical_path_days']} days")
    print(f"  Total span    : {report['total_days']} days")
    print(f"  Buffer        : {report['buffer_days']} days ({report['float_percentage']}%)")
    print(f"  Completed     : {report['completed_count']}")
    print(f"  Delayed       : {report['delayed_count']} (avg {report['average_delay_days']} days)")
    print("-" * W)
    if not report["risks"]:
        print("  No risks flagged.")
    for risk in report["risks"]:
        print(f"  [{risk['level'].upper():6}] {risk['milestone']}  {risk['name']}")
        for reason in risk["reasons"]:
            print(f"           - {reason}")
    print("=" * W)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Critical path, buffer and risks for a milestone file.")
    parser.add_argument("milestones", type=Path, help="YAML milestone file")
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML (default: packaged set)")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from finance_config import get_active_config
    from finance_kernel.exceptions import CycleDetectedError
    from finance_modules.project.config import risk_thresholds

    try:
        config = get_active_config(args.config)
        milestones, now = load_milestones(args.milestones)
        report = build_report(milestones, now, risk_thresholds(config.risk))
    except CycleDetectedError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        logging.disable(logging.NOTSET)

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
