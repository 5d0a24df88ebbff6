"""
Finance Modules.

Thin orchestration layers over the Finance Kernel and Engines.
Each module contains:
- Domain models (frozen DTOs)
- ORM models (persistence)
- A service owning the transaction boundary

Modules:
- Project: projects, milestones, predecessor links, schedule analysis
- Revenue: milestone percentage-of-completion recognition, deferred revenue
- WIP: monthly project cost accumulation, overhead allocation

Schedule and recognition maths live in ``finance_engines``.
"""

from finance_modules import project, revenue, wip

__all__ = [
    "project",
    "revenue",
    "wip",
]
