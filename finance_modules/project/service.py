"""
Project Module Service (``finance_modules.project.service``).

Responsibility
--------------
Registry of projects and milestones (creation, predecessor links, delays,
cancellation, billing hand-off) and the schedule analysis facade that runs
the dependency forest, critical path and risk engines over a project's
current milestones.

Architecture position
---------------------
**Modules layer** -- thin glue.  Persists through the caller's ``Session``;
all schedule computation is delegated to the pure engines in
``finance_engines`` (``build_forest``, ``longest_chain``,
``timeline_metrics``, ``assess_risks``).

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary (``commit`` on
  success, ``rollback`` + re-raise on any exception).
* Milestone sequence is unique per project.
* A predecessor belongs to the same project and never closes a loop.
* planned_end > planned_start.

Failure modes
-------------
* ``NotFoundError`` -- unknown project or milestone.
* ``ConflictError`` -- duplicate project code or milestone sequence.
* ``ValidationError`` -- bad dates, negative amounts, foreign predecessor.
* ``CycleDetectedError`` -- predecessor link would loop.
* ``InvalidStateError`` -- status does not allow the operation.

Audit relevance
---------------
Structured log events at operation start and commit / rollback carry the
project and milestone ids.  Schedule analyses emit FINANCE_ENGINE_TRACE
records through the engines.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finance_config.schema import ProjectFinanceConfig
from finance_engines.critical_path import longest_chain, timeline_metrics
from finance_engines.dependency_graph import build_forest, would_create_cycle
from finance_engines.recognition import equal_share, validate_amount
from finance_engines.risk import assess_risks
from finance_engines.schedule_types import MilestoneStatus
from finance_kernel.db.types import ZERO, ensure_utc, round_money
from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.exceptions import (
    ConflictError,
    CycleDetectedError,
    InvalidStateError,
    ValidationError,
)
from finance_kernel.logging_config import LogContext, get_logger
from finance_modules._posting_helpers import commit, load, load_for_update, rollback
from finance_modules.project.config import risk_thresholds
from finance_modules.project.models import (
    BlockingPredecessor,
    DependencyCheck,
    Milestone,
    Project,
    ScheduleAnalysis,
)
from finance_modules.project.orm import MilestoneModel, ProjectModel

logger = get_logger("modules.project.service")

_CANCELLABLE = frozenset({
    MilestoneStatus.PENDING,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.COMPLETED,
})


class ProjectService:
    """
    Project and milestone registry plus schedule analysis.

    Contract
    --------
    * Mutating methods return the refreshed frozen DTO.
    * ``get_schedule_analysis`` is read-only and recomputed on every call
      (no cache); CANCELLED milestones are left out of the snapshot.

    Non-goals
    ---------
    * Does NOT recognize revenue (``MilestoneRevenueService``).
    * Does NOT issue invoices; ``mark_milestone_billed`` records the
      invoicing collaborator's outcome.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProjectFinanceConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProjectFinanceConfig.with_defaults()

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        estimated_budget: Decimal = Decimal("0"),
        currency: str | None = None,
    ) -> Project:
        """Register a project (no posting)."""
        try:
            estimated_budget = validate_amount(estimated_budget, "estimated_budget")
            if estimated_budget < ZERO:
                raise ValidationError("estimated_budget", "must not be negative", estimated_budget)
            existing = self._session.scalar(
                select(ProjectModel.id).where(ProjectModel.code == code)
            )
            if existing is not None:
                raise ConflictError("Project", code, existing)

            project = Project(
                id=uuid4(),
                code=code,
                name=name,
                estimated_budget=round_money(estimated_budget),
                currency=currency or self._config.recognition.currency,
            )
            self._session.add(ProjectModel.from_dto(project, created_by_id=actor_id))
            self._session.flush()
            commit(self._session, logger, "project_created",
                   project_id=project.id, project_code=code)
            return project
        except Exception as exc:
            rollback(self._session, logger, "project_create", exc, project_code=code)
            raise

    def get_project(self, project_id: UUID) -> Project:
        return load(self._session, ProjectModel, project_id, "Project").to_dto()

    # =========================================================================
    # Milestones
    # =========================================================================

    def create_milestone(
        self,
        project_id: UUID,
        sequence: int,
        name: str,
        planned_start: datetime,
        planned_end: datetime,
        actor_id: UUID,
        planned_revenue: Decimal | None = None,
        description: str | None = None,
        estimated_cost: Decimal | None = None,
        predecessor_id: UUID | None = None,
    ) -> Milestone:
        """
        Create a PENDING milestone.

        When ``planned_revenue`` is omitted it is derived by spreading the
        project budget evenly over the existing milestones plus this one.
        """
        with LogContext.bind(project_id=project_id):
            try:
                project = load(self._session, ProjectModel, project_id, "Project")

                planned_start = ensure_utc(planned_start)
                planned_end = ensure_utc(planned_end)
                if planned_end <= planned_start:
                    raise ValidationError(
                        "planned_end", "must be after planned_start", planned_end,
                    )
                if estimated_cost is not None:
                    estimated_cost = validate_amount(estimated_cost, "estimated_cost")
                if estimated_cost is not None and estimated_cost < ZERO:
                    raise ValidationError("estimated_cost", "must not be negative", estimated_cost)

                duplicate = self._session.scalar(
                    select(MilestoneModel.id).where(
                        MilestoneModel.project_id == project_id,
                        MilestoneModel.sequence == sequence,
                    )
                )
                if duplicate is not None:
                    raise ConflictError("Milestone", f"{project.code}#{sequence}", duplicate)

                if predecessor_id is not None:
                    self._require_same_project(predecessor_id, project_id)

                if planned_revenue is None:
                    count = self._session.scalar(
                        select(func.count()).select_from(MilestoneModel).where(
                            MilestoneModel.project_id == project_id,
                        )
                    ) or 0
                    planned_revenue = equal_share(
                        round_money(project.estimated_budget), count,
                        self._config.recognition.money_places,
                    )
                elif validate_amount(planned_revenue, "planned_revenue") < ZERO:
                    raise ValidationError("planned_revenue", "must not be negative", planned_revenue)

                milestone = Milestone(
                    id=uuid4(),
                    project_id=project_id,
                    sequence=sequence,
                    name=name,
                    description=description,
                    planned_start=planned_start,
                    planned_end=planned_end,
                    planned_revenue=round_money(planned_revenue),
                    estimated_cost=(
                        round_money(estimated_cost) if estimated_cost is not None else None
                    ),
                    predecessor_id=predecessor_id,
                )
                logger.info("milestone_create_started", extra={
                    "milestone_id": str(milestone.id),
                    "sequence": sequence,
                    "planned_revenue": str(milestone.planned_revenue),
                })
                self._session.add(MilestoneModel.from_dto(milestone, created_by_id=actor_id))
                self._session.flush()
                commit(self._session, logger, "milestone_created",
                       milestone_id=milestone.id, sequence=sequence)
                return milestone
            except Exception as exc:
                rollback(self._session, logger, "milestone_create", exc, sequence=sequence)
                raise

    def set_predecessor(
        self,
        milestone_id: UUID,
        predecessor_id: UUID | None,
        actor_id: UUID,
    ) -> Milestone:
        """Link (or unlink, with None) a milestone to its predecessor."""
        try:
            row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
            if predecessor_id is not None:
                if predecessor_id == milestone_id:
                    raise CycleDetectedError([milestone_id, milestone_id])
                self._require_same_project(predecessor_id, row.project_id)
                snapshot = [
                    m.to_scheduled() for m in self._project_milestones(row.project_id)
                ]
                loop = would_create_cycle(snapshot, milestone_id, predecessor_id)
                if loop is not None:
                    raise CycleDetectedError(loop)

            row.predecessor_id = predecessor_id
            row.updated_by_id = actor_id
            self._session.flush()
            commit(self._session, logger, "milestone_predecessor_set",
                   milestone_id=milestone_id, predecessor_id=predecessor_id)
            return row.to_dto()
        except Exception as exc:
            rollback(self._session, logger, "milestone_predecessor_set", exc,
                     milestone_id=milestone_id, predecessor_id=predecessor_id)
            raise

    def record_delay(
        self,
        milestone_id: UUID,
        delay_days: int,
        reason: str | None,
        actor_id: UUID,
    ) -> Milestone:
        """Record how many days a milestone has slipped, and why."""
        try:
            if delay_days < 0:
                raise ValidationError("delay_days", "must not be negative", delay_days)
            row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
            if MilestoneStatus(row.status) == MilestoneStatus.CANCELLED:
                raise InvalidStateError("Milestone", milestone_id, row.status, "record_delay")
            row.delay_days = delay_days
            row.delay_reason = reason
            row.updated_by_id = actor_id
            self._session.flush()
            commit(self._session, logger, "milestone_delay_recorded",
                   milestone_id=milestone_id, delay_days=delay_days)
            return row.to_dto()
        except Exception as exc:
            rollback(self._session, logger, "milestone_delay", exc, milestone_id=milestone_id)
            raise

    def cancel_milestone(self, milestone_id: UUID, actor_id: UUID) -> Milestone:
        """Cancel a milestone that has not been accepted or billed."""
        try:
            row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
            if MilestoneStatus(row.status) not in _CANCELLABLE:
                raise InvalidStateError("Milestone", milestone_id, row.status, "cancel")
            row.status = MilestoneStatus.CANCELLED.value
            row.updated_by_id = actor_id
            self._session.flush()
            commit(self._session, logger, "milestone_cancelled", milestone_id=milestone_id)
            return row.to_dto()
        except Exception as exc:
            rollback(self._session, logger, "milestone_cancel", exc, milestone_id=milestone_id)
            raise

    def mark_milestone_billed(
        self,
        milestone_id: UUID,
        invoice_id: str,
        billed_at: datetime,
        actor_id: UUID,
    ) -> Milestone:
        """ACCEPTED -> BILLED, recording the invoice issued for the milestone."""
        try:
            row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
            if MilestoneStatus(row.status) != MilestoneStatus.ACCEPTED:
                raise InvalidStateError("Milestone", milestone_id, row.status, "bill")
            row.status = MilestoneStatus.BILLED.value
            row.invoice_id = invoice_id
            row.billed_at = ensure_utc(billed_at)
            row.updated_by_id = actor_id
            self._session.flush()
            commit(self._session, logger, "milestone_billed",
                   milestone_id=milestone_id, invoice_id=invoice_id)
            return row.to_dto()
        except Exception as exc:
            rollback(self._session, logger, "milestone_bill", exc, milestone_id=milestone_id)
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_milestone(self, milestone_id: UUID) -> Milestone:
        return load(self._session, MilestoneModel, milestone_id, "Milestone").to_dto()

    def list_milestones(self, project_id: UUID) -> list[Milestone]:
        """All milestones of a project ordered by sequence."""
        load(self._session, ProjectModel, project_id, "Project")
        return self._project_milestones(project_id)

    def check_dependencies(self, milestone_id: UUID) -> DependencyCheck:
        """Can the milestone start, i.e. is its predecessor finished?"""
        row = load(self._session, MilestoneModel, milestone_id, "Milestone")
        blocking: list[BlockingPredecessor] = []
        if row.predecessor_id is not None:
            pred = self._session.get(MilestoneModel, row.predecessor_id)
            if pred is not None and not MilestoneStatus(pred.status).is_finished:
                blocking.append(
                    BlockingPredecessor(
                        milestone_id=pred.id,
                        sequence=pred.sequence,
                        name=pred.name,
                        status=MilestoneStatus(pred.status),
                    )
                )
        return DependencyCheck(
            milestone_id=milestone_id,
            can_start=not blocking,
            blocking=tuple(blocking),
        )

    def get_schedule_analysis(self, project_id: UUID) -> ScheduleAnalysis:
        """
        Forest, critical path, timeline metrics and risks for a project.

        Raises:
            NotFoundError: unknown project.
            CycleDetectedError: stored predecessor links loop.
        """
        load(self._session, ProjectModel, project_id, "Project")
        # Cancelled milestones stay out of the forest, the critical path and
        # the risk list, but still resolve as predecessors for blockage.
        everything = [m.to_scheduled() for m in self._project_milestones(project_id)]
        snapshot = [m for m in everything if m.status != MilestoneStatus.CANCELLED]
        now = self._clock.now()

        forest = build_forest(snapshot)
        path = longest_chain(snapshot)
        metrics = timeline_metrics(snapshot, path)
        risks = assess_risks(
            snapshot, now, risk_thresholds(self._config.risk), path,
            predecessors={m.id: m for m in everything},
        )

        logger.info("schedule_analysis_computed", extra={
            "project_id": str(project_id),
            "milestone_count": len(snapshot),
            "critical_path_days": path.total_duration_days,
            "buffer_days": metrics.buffer_days,
            "risk_count": len(risks),
        })
        return ScheduleAnalysis(
            project_id=project_id,
            as_of=now,
            forest=forest,
            critical_path=path,
            metrics=metrics,
            risks=tuple(risks),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _project_milestones(self, project_id: UUID) -> list[Milestone]:
        rows = self._session.scalars(
            select(MilestoneModel)
            .where(MilestoneModel.project_id == project_id)
            .order_by(MilestoneModel.sequence)
        )
        return [row.to_dto() for row in rows]

    def _require_same_project(self, predecessor_id: UUID, project_id: UUID) -> None:
        pred = self._session.get(MilestoneModel, predecessor_id)
        if pred is None or pred.project_id != project_id:
            raise ValidationError(
                "predecessor_id", "must be a milestone of the same project", predecessor_id,
            )
