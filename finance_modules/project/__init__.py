"""
Project Module (``finance_modules.project``).

Responsibility
--------------
Registry of projects and milestones with single-predecessor links, and the
schedule analysis facade (dependency forest, critical path, timeline
metrics, risk assessment).

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models and a service facade.  All schedule
computation is delegated to ``finance_engines``.
"""

from finance_engines.schedule_types import MilestoneStatus
from finance_modules.project.models import (
    BlockingPredecessor,
    DependencyCheck,
    Milestone,
    Project,
    ScheduleAnalysis,
)
from finance_modules.project.service import ProjectService

__all__ = [
    "BlockingPredecessor",
    "DependencyCheck",
    "Milestone",
    "MilestoneStatus",
    "Project",
    "ProjectService",
    "ScheduleAnalysis",
]
