"""
Revenue Module (``finance_modules.revenue``).

Responsibility
--------------
Milestone revenue recognition by percentage of completion, milestone
acceptance, and the deferred revenue ledger (advance payments released
into revenue over time).

Architecture position
---------------------
**Modules layer** -- services delegate the maths to
``finance_engines.recognition`` and post through ``LedgerGateway``.
"""

from finance_engines.recognition import DeferralStatus
from finance_modules.revenue.models import (
    DeferredRevenue,
    DeferredRevenueSummary,
    ProjectRevenueSummary,
    ScheduledRecognition,
)
from finance_modules.revenue.service import DeferredRevenueService, MilestoneRevenueService

__all__ = [
    "DeferralStatus",
    "DeferredRevenue",
    "DeferredRevenueService",
    "DeferredRevenueSummary",
    "MilestoneRevenueService",
    "ProjectRevenueSummary",
    "ScheduledRecognition",
]
