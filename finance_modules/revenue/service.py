"""
Module: finance_modules.revenue.service
Responsibility:
    Thin orchestration glue for milestone revenue recognition
    (percentage of completion) and the deferred revenue ledger.  Pure
    calculations live in ``finance_engines.recognition``; journal entries
    go through the injected ``LedgerGateway``.

    1. Loads the target row with SELECT ... FOR UPDATE.
    2. Calls the recognition engine for deltas / statuses.
    3. Posts the balanced entry through the ledger gateway.
    4. Writes the new balances and commits.

Architecture:
    finance_modules layer -- stateful only insofar as it holds a Session
    and commits/rolls back.  Each public method owns its transaction
    boundary; a ledger failure aborts the balance update with it.

    Dependency direction (strict):
        service.py  -->  finance_engines.recognition (pure maths)
        service.py  -->  finance_kernel.domain.ledger (LedgerGateway)
        service.py  -X-> finance_modules.wip          (independent ledgers)

Invariants:
    - Milestone: recognized_revenue <= planned_revenue, never decreases.
    - DeferredRevenue: recognized_amount + remaining_amount == total_amount.
    - At most one active deferred revenue record per invoice.

Failure modes:
    - ValidationError, NotFoundError, InvalidStateError, ConflictError,
      NoOpError from the checks below.
    - UnbalancedEntryError / LedgerPostingError from the gateway.
    - Session rollback on any exception; the exception is re-raised.

Audit relevance:
    - Every recognition produces exactly one journal entry whose id is
      stored on the milestone / deferred revenue row.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finance_config.schema import ProjectFinanceConfig
from finance_engines.recognition import (
    DeferralStatus,
    compute_milestone_recognition,
    deferral_status,
    recognized_share,
    validate_amount,
    validate_percentage,
)
from finance_engines.schedule_types import MilestoneStatus
from finance_kernel.db.types import ZERO, ensure_utc, round_money, round_percentage
from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.domain.ledger import LedgerGateway, LedgerLine
from finance_kernel.exceptions import (
    ConflictError,
    InvalidStateError,
    ValidationError,
)
from finance_kernel.logging_config import LogContext, get_logger
from finance_kernel.services.ledger_service import JournalLedgerGateway
from finance_modules._posting_helpers import commit, load, load_for_update, rollback
from finance_modules.project.models import Milestone
from finance_modules.project.orm import MilestoneModel, ProjectModel
from finance_modules.revenue.models import (
    DeferredRevenue,
    DeferredRevenueSummary,
    ProjectRevenueSummary,
    ScheduledRecognition,
)
from finance_modules.revenue.orm import DeferredRevenueModel

logger = get_logger("modules.revenue.service")

_ACTIVE_STATUSES = (
    DeferralStatus.DEFERRED.value,
    DeferralStatus.PARTIALLY_RECOGNIZED.value,
)


class DeferredRevenueService:
    """
    Deferred revenue ledger: open a balance on payment, release it into
    revenue as the obligation is performed.

    Contract:
        Callers supply a live Session and optionally a Clock, the active
        configuration and a LedgerGateway (defaults to a journal gateway on
        the same Session).  Each public mutating method commits on success
        and rolls back on failure.

    Guarantees:
        - ``open`` posts Dr cash / Cr deferred revenue for the total.
        - ``recognize`` posts Dr deferred revenue / Cr revenue for the amount.
        - recognized + remaining == total after every call (exact Decimal).

    Non-goals:
        - Does NOT look up or validate invoices; invoice_id is an external key.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProjectFinanceConfig | None = None,
        ledger: LedgerGateway | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProjectFinanceConfig.with_defaults()
        self._ledger = ledger or JournalLedgerGateway(
            session, currency=self._config.recognition.currency,
        )

    def open(
        self,
        invoice_id: str,
        payment_date: date,
        total_amount: Decimal,
        recognition_date: date,
        obligation_description: str,
        actor_id: UUID,
    ) -> DeferredRevenue:
        """Record an advance payment as a deferred revenue liability."""
        accounts = self._config.accounts
        places = self._config.recognition.money_places
        try:
            total = round_money(validate_amount(total_amount, "total_amount"), places)
            if total <= ZERO:
                raise ValidationError("total_amount", "must be positive", total_amount)

            existing = self._session.scalar(
                select(DeferredRevenueModel.id).where(
                    DeferredRevenueModel.invoice_id == invoice_id,
                    DeferredRevenueModel.status.in_(_ACTIVE_STATUSES),
                )
            )
            if existing is not None:
                raise ConflictError("DeferredRevenue", invoice_id, existing)

            record_id = uuid4()
            logger.info("deferred_revenue_open_started", extra={
                "deferred_revenue_id": str(record_id),
                "invoice_id": invoice_id,
                "total_amount": str(total),
            })

            entry_id = self._ledger.post(
                payment_date,
                [
                    LedgerLine.debit(accounts.cash_bank, total, invoice_id=invoice_id),
                    LedgerLine.credit(accounts.deferred_revenue, total, invoice_id=invoice_id),
                ],
                description=f"Deferred revenue for invoice {invoice_id}",
                reference_type="deferred_revenue",
                reference_id=record_id,
            )

            record = DeferredRevenue(
                id=record_id,
                invoice_id=invoice_id,
                payment_date=payment_date,
                recognition_date=recognition_date,
                obligation_description=obligation_description,
                total_amount=total,
                initial_entry_id=entry_id,
            )
            self._session.add(DeferredRevenueModel.from_dto(record, created_by_id=actor_id))
            try:
                self._session.flush()
            except IntegrityError as exc:
                raise ConflictError("DeferredRevenue", invoice_id) from exc

            commit(self._session, logger, "deferred_revenue_opened",
                   deferred_revenue_id=record_id, invoice_id=invoice_id,
                   entry_id=entry_id, total_amount=str(total))
            return record
        except Exception as exc:
            rollback(self._session, logger, "deferred_revenue_open", exc, invoice_id=invoice_id)
            raise

    def recognize(
        self,
        deferred_revenue_id: UUID,
        amount: Decimal,
        recognition_date: date,
        actor_id: UUID,
        completion_percentage: Decimal | None = None,
    ) -> DeferredRevenue:
        """Release ``amount`` of a deferred balance into revenue."""
        accounts = self._config.accounts
        policy = self._config.recognition
        try:
            release = round_money(validate_amount(amount, "amount"), policy.money_places)
            if release <= ZERO:
                raise ValidationError("amount", "must be positive", amount)
            if completion_percentage is not None:
                completion_percentage = validate_percentage(completion_percentage)

            row = load_for_update(
                self._session, DeferredRevenueModel, deferred_revenue_id, "DeferredRevenue",
            )
            current = row.to_dto()
            if current.status == DeferralStatus.FULLY_RECOGNIZED:
                raise InvalidStateError(
                    "DeferredRevenue", deferred_revenue_id, current.status.value, "recognize",
                )
            if release > current.remaining_amount:
                raise ValidationError(
                    "amount",
                    f"exceeds remaining amount {current.remaining_amount}",
                    release,
                )

            logger.info("deferred_revenue_recognize_started", extra={
                "deferred_revenue_id": str(deferred_revenue_id),
                "amount": str(release),
                "remaining_before": str(current.remaining_amount),
            })

            entry_id = self._ledger.post(
                recognition_date,
                [
                    LedgerLine.debit(accounts.deferred_revenue, release,
                                     invoice_id=current.invoice_id),
                    LedgerLine.credit(accounts.revenue, release,
                                      invoice_id=current.invoice_id),
                ],
                description=f"Revenue recognized for invoice {current.invoice_id}",
                reference_type="deferred_revenue",
                reference_id=deferred_revenue_id,
            )

            recognized = current.recognized_amount + release
            remaining = current.total_amount - recognized
            status = deferral_status(remaining, policy.epsilon)
            completion = (
                round_percentage(completion_percentage)
                if completion_percentage is not None
                else recognized_share(recognized, current.total_amount)
            )

            row.recognized_amount = recognized
            row.remaining_amount = remaining
            row.completion_percentage = completion
            row.status = status.value
            row.last_entry_id = entry_id
            row.last_recognized_at = recognition_date
            row.updated_by_id = actor_id
            self._session.flush()

            commit(self._session, logger, "deferred_revenue_recognized",
                   deferred_revenue_id=deferred_revenue_id, entry_id=entry_id,
                   amount=str(release), remaining_amount=str(remaining),
                   status=status.value)
            return row.to_dto()
        except Exception as exc:
            rollback(self._session, logger, "deferred_revenue_recognize", exc,
                     deferred_revenue_id=deferred_revenue_id)
            raise

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, deferred_revenue_id: UUID) -> DeferredRevenue:
        return load(
            self._session, DeferredRevenueModel, deferred_revenue_id, "DeferredRevenue",
        ).to_dto()

    def summarize(
        self,
        start: date | None = None,
        end: date | None = None,
        status: DeferralStatus | None = None,
    ) -> DeferredRevenueSummary:
        """Totals and per-status counts for records paid within [start, end]."""
        stmt = select(DeferredRevenueModel)
        if start is not None:
            stmt = stmt.where(DeferredRevenueModel.payment_date >= start)
        if end is not None:
            stmt = stmt.where(DeferredRevenueModel.payment_date <= end)
        if status is not None:
            stmt = stmt.where(DeferredRevenueModel.status == status.value)
        records = [row.to_dto() for row in self._session.scalars(stmt)]

        return DeferredRevenueSummary(
            record_count=len(records),
            total_deferred=sum((r.total_amount for r in records), ZERO),
            total_recognized=sum((r.recognized_amount for r in records), ZERO),
            total_remaining=sum((r.remaining_amount for r in records), ZERO),
            count_by_status=dict(Counter(r.status.value for r in records)),
        )

    def recognition_schedule(self, start: date, end: date) -> list[ScheduledRecognition]:
        """Active balances whose recognition date falls within [start, end]."""
        if end < start:
            raise ValidationError("end", "must not be before start", end)
        rows = self._session.scalars(
            select(DeferredRevenueModel)
            .where(
                DeferredRevenueModel.status.in_(_ACTIVE_STATUSES),
                DeferredRevenueModel.recognition_date >= start,
                DeferredRevenueModel.recognition_date <= end,
            )
            .order_by(DeferredRevenueModel.recognition_date, DeferredRevenueModel.invoice_id)
        )
        return [
            ScheduledRecognition(
                deferred_revenue_id=r.id,
                invoice_id=r.invoice_id,
                recognition_date=r.recognition_date,
                obligation_description=r.obligation_description,
                remaining_amount=r.remaining_amount,
                status=r.status,
            )
            for r in (row.to_dto() for row in rows)
        ]


class MilestoneRevenueService:
    """
    Percentage-of-completion revenue recognition per milestone.

    Contract:
        ``recognize`` posts only the increment between revenue earned at the
        new completion percentage and revenue already recognized.  A call
        that would not move revenue by at least epsilon raises NoOpError.

    Guarantees:
        - Posts Dr unbilled revenue / Cr revenue for the delta.
        - recognized_revenue <= planned_revenue; never decreases.
        - PENDING / IN_PROGRESS advance to IN_PROGRESS or COMPLETED;
          ``accept`` is the only COMPLETED -> ACCEPTED path.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProjectFinanceConfig | None = None,
        ledger: LedgerGateway | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProjectFinanceConfig.with_defaults()
        self._ledger = ledger or JournalLedgerGateway(
            session, currency=self._config.recognition.currency,
        )

    def recognize(
        self,
        milestone_id: UUID,
        completion_percentage: Decimal,
        recognition_date: date,
        actor_id: UUID,
        actual_cost: Decimal | None = None,
    ) -> Milestone:
        """Recognize revenue earned up to ``completion_percentage``."""
        accounts = self._config.accounts
        policy = self._config.recognition
        with LogContext.bind(milestone_id=milestone_id, actor_id=actor_id):
            try:
                pct = validate_percentage(completion_percentage)
                row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
                current = row.to_dto()

                if actual_cost is not None:
                    actual_cost = round_money(
                        validate_amount(actual_cost, "actual_cost"), policy.money_places,
                    )
                    if actual_cost < ZERO:
                        raise ValidationError("actual_cost", "must not be negative", actual_cost)
                    if actual_cost < current.actual_cost:
                        raise ValidationError(
                            "actual_cost",
                            f"must not decrease below {current.actual_cost}",
                            actual_cost,
                        )

                outcome = compute_milestone_recognition(
                    milestone_id,
                    current.planned_revenue,
                    current.recognized_revenue,
                    pct,
                    current.status,
                    epsilon=policy.epsilon,
                    money_places=policy.money_places,
                )

                logger.info("milestone_recognize_started", extra={
                    "project_id": str(current.project_id),
                    "completion_percentage": str(pct),
                    "delta": str(outcome.delta),
                    "recognized_before": str(current.recognized_revenue),
                })

                entry_id = self._ledger.post(
                    recognition_date,
                    [
                        LedgerLine.debit(
                            accounts.unbilled_revenue, outcome.delta,
                            project_id=str(current.project_id),
                            milestone_id=str(milestone_id),
                        ),
                        LedgerLine.credit(
                            accounts.revenue, outcome.delta,
                            project_id=str(current.project_id),
                            milestone_id=str(milestone_id),
                        ),
                    ],
                    description=(
                        f"Milestone #{current.sequence} {current.name} "
                        f"recognized at {pct}%"
                    ),
                    reference_type="milestone",
                    reference_id=milestone_id,
                )

                now = self._clock.now()
                row.recognized_revenue = outcome.recognized_revenue
                row.remaining_revenue = outcome.remaining_revenue
                row.completion_percentage = outcome.completion_percentage
                row.status = outcome.status.value
                if actual_cost is not None:
                    row.actual_cost = actual_cost
                if current.actual_start is None and pct > ZERO:
                    row.actual_start = now
                if outcome.status == MilestoneStatus.COMPLETED and current.actual_end is None:
                    row.actual_end = now
                row.last_entry_id = entry_id
                row.updated_by_id = actor_id
                self._session.flush()

                commit(self._session, logger, "milestone_revenue_recognized",
                       entry_id=entry_id, delta=str(outcome.delta),
                       recognized_revenue=str(outcome.recognized_revenue),
                       status=outcome.status.value)
                return row.to_dto()
            except Exception as exc:
                rollback(self._session, logger, "milestone_recognize", exc,
                         completion_percentage=str(completion_percentage))
                raise

    def accept(
        self,
        milestone_id: UUID,
        accepted_by: str,
        accepted_at: datetime,
        actor_id: UUID,
    ) -> Milestone:
        """Customer acceptance of a COMPLETED milestone."""
        with LogContext.bind(milestone_id=milestone_id, actor_id=actor_id):
            try:
                row = load_for_update(self._session, MilestoneModel, milestone_id, "Milestone")
                if MilestoneStatus(row.status) != MilestoneStatus.COMPLETED:
                    raise InvalidStateError("Milestone", milestone_id, row.status, "accept")
                row.status = MilestoneStatus.ACCEPTED.value
                row.accepted_by = accepted_by
                row.accepted_at = ensure_utc(accepted_at)
                row.updated_by_id = actor_id
                self._session.flush()
                commit(self._session, logger, "milestone_accepted", accepted_by=accepted_by)
                return row.to_dto()
            except Exception as exc:
                rollback(self._session, logger, "milestone_accept", exc)
                raise

    def get_project_revenue_summary(self, project_id: UUID) -> ProjectRevenueSummary:
        """Planned / recognized / remaining totals over a project's milestones."""
        load(self._session, ProjectModel, project_id, "Project")
        milestones = [
            row.to_dto()
            for row in self._session.scalars(
                select(MilestoneModel)
                .where(MilestoneModel.project_id == project_id)
                .order_by(MilestoneModel.sequence)
            )
        ]
        count = len(milestones)
        average = (
            round_percentage(
                sum((m.completion_percentage for m in milestones), ZERO) / Decimal(count)
            )
            if count
            else Decimal("0.00")
        )
        return ProjectRevenueSummary(
            project_id=project_id,
            milestone_count=count,
            total_planned=sum((m.planned_revenue for m in milestones), ZERO),
            total_recognized=sum((m.recognized_revenue for m in milestones), ZERO),
            total_remaining=sum((m.remaining_revenue for m in milestones), ZERO),
            average_completion=average,
            count_by_status=dict(Counter(m.status.value for m in milestones)),
            as_of=self._clock.now(),
        )
