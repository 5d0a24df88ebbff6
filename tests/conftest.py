"""
Pytest fixtures for the project finance test suite.

Provides:
- A fresh in-memory SQLite database per test (every table created)
- Deterministic clock, default configuration and a journal ledger gateway
- Service fixtures and small factories for projects and milestones
- Captured structured logs

Environment Variables:
- DATABASE_URL: optional SQLAlchemy URL; defaults to in-memory SQLite.
  A PostgreSQL URL runs the same suite against a real server.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from finance_config import ProjectFinanceConfig
from finance_kernel.db.engine import (
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from finance_kernel.domain.clock import DeterministicClock
from finance_kernel.domain.ledger import LedgerGateway
from finance_kernel.exceptions import LedgerPostingError
from finance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from finance_kernel.services.ledger_service import JournalLedgerGateway
from finance_modules._orm_registry import create_all_tables
from finance_modules.project.service import ProjectService
from finance_modules.revenue.service import DeferredRevenueService, MilestoneRevenueService
from finance_modules.wip.service import WipService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# 2024-01-01 12:00 UTC, the DeterministicClock default
T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture finance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, wip_service):
            wip_service.accumulate(...)
            logs = captured_logs()
            assert any(r["message"] == "wip_accumulated_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("finance_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="function")
def session() -> Generator[Session, None, None]:
    """A session on a freshly created schema.

    Services commit for real, so each test gets its own database rather
    than a rolled-back outer transaction.
    """
    init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
    create_all_tables()
    sess = get_session()
    yield sess
    try:
        sess.close()
    finally:
        drop_tables()
        reset_engine()


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(T0)


@pytest.fixture
def finance_config() -> ProjectFinanceConfig:
    return ProjectFinanceConfig.with_defaults()


@pytest.fixture
def ledger(session, finance_config):
    return JournalLedgerGateway(
        session,
        currency=finance_config.recognition.currency,
        actor_id=TEST_ACTOR_ID,
    )


class RejectingLedger(LedgerGateway):
    """Writes the entry through the real gateway, then reports a failure."""

    def __init__(self, inner: LedgerGateway):
        self.inner = inner
        self.calls = 0

    def post(self, entry_date, lines, *, description, reference_type, reference_id):
        self.calls += 1
        self.inner.post(
            entry_date, lines, description=description,
            reference_type=reference_type, reference_id=reference_id,
        )
        raise LedgerPostingError(f"{reference_type}:{reference_id}", "ledger unavailable")


@pytest.fixture
def rejecting_ledger(ledger):
    """A gateway whose post always fails after flushing its journal rows."""
    return RejectingLedger(ledger)


# Service fixtures


@pytest.fixture
def project_service(session, deterministic_clock, finance_config):
    return ProjectService(session, clock=deterministic_clock, config=finance_config)


@pytest.fixture
def milestone_revenue_service(session, deterministic_clock, finance_config, ledger):
    return MilestoneRevenueService(
        session, clock=deterministic_clock, config=finance_config, ledger=ledger,
    )


@pytest.fixture
def deferred_revenue_service(session, deterministic_clock, finance_config, ledger):
    return DeferredRevenueService(
        session, clock=deterministic_clock, config=finance_config, ledger=ledger,
    )


@pytest.fixture
def wip_service(session, deterministic_clock, finance_config, ledger):
    return WipService(session, clock=deterministic_clock, config=finance_config, ledger=ledger)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_project(project_service, test_actor_id):
    """Factory: create a project with a unique code."""
    counter = {"n": 0}

    def _create(budget: Decimal = Decimal("0"), code: str | None = None):
        counter["n"] += 1
        return project_service.create_project(
            code=code or f"PRJ-{counter['n']:03d}",
            name=f"Project {counter['n']}",
            actor_id=test_actor_id,
            estimated_budget=budget,
        )

    return _create


@pytest.fixture
def create_milestone(project_service, test_actor_id):
    """Factory: create a milestone starting ``start_day`` days after T0."""

    def _create(
        project_id: UUID,
        sequence: int,
        start_day: int = 0,
        days: int = 10,
        planned_revenue: Decimal | None = Decimal("1000000"),
        predecessor_id: UUID | None = None,
        name: str | None = None,
    ):
        start = T0 + timedelta(days=start_day)
        return project_service.create_milestone(
            project_id=project_id,
            sequence=sequence,
            name=name or f"Milestone {sequence}",
            planned_start=start,
            planned_end=start + timedelta(days=days),
            actor_id=test_actor_id,
            planned_revenue=planned_revenue,
            predecessor_id=predecessor_id,
        )

    return _create


@pytest.fixture
def project(create_project):
    return create_project(budget=Decimal("3000000"))


@pytest.fixture
def milestone(project, create_milestone):
    return create_milestone(project.id, sequence=1)
