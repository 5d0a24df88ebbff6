"""
Work-in-Progress Module (``finance_modules.wip``).

Responsibility
--------------
Project cost accumulation into monthly WIP records (material, labor,
direct expenses, allocated overhead), overhead allocation and the
project profitability report.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models and a service facade that posts
journal entries through the injected ``LedgerGateway``.
"""

from finance_modules.wip.models import (
    AllocationMethod,
    CostAllocationSummary,
    CostDeltas,
    ProjectCostAllocation,
    ProjectProfitability,
    WipSummary,
    WorkInProgress,
)
from finance_modules.wip.service import WipService

__all__ = [
    "AllocationMethod",
    "CostAllocationSummary",
    "CostDeltas",
    "ProjectCostAllocation",
    "ProjectProfitability",
    "WipService",
    "WipSummary",
    "WorkInProgress",
]
