"""
finance_engines.recognition -- Percentage-of-completion revenue maths.

Responsibility:
    Pure calculations behind milestone revenue recognition and deferred
    revenue release: earned revenue for a completion percentage, the
    incremental delta to post, the resulting milestone status, and the
    status / completion of a deferred revenue balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by
    finance_modules.revenue.

Invariants enforced:
    - Monotonicity: a delta below epsilon is rejected with NoOpError, so
      recognized revenue never decreases and no-progress calls never post.
    - recognized <= planned: earned revenue is planned x pct / 100 quantized
      to the money grid, and pct <= 100.
    - Exact Decimal arithmetic throughout.

Failure modes:
    - ValidationError for a non-finite amount or a percentage outside
      [0, 100].
    - InvalidStateError for a CANCELLED milestone.
    - NoOpError when the delta is below epsilon.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from finance_engines.schedule_types import MilestoneStatus
from finance_engines.tracer import traced_engine
from finance_kernel.db.types import HUNDRED, ZERO, round_money, round_percentage
from finance_kernel.exceptions import (
    InvalidStateError,
    NoOpError,
    ValidationError,
)

DEFAULT_EPSILON = Decimal("0.01")


def validate_amount(value: Decimal, field: str) -> Decimal:
    """Coerce to Decimal and reject NaN / infinity."""
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError(field, "must be a number", value) from exc
    if not value.is_finite():
        raise ValidationError(field, "must be a finite number", value)
    return value


def validate_percentage(value: Decimal, field: str = "completion_percentage") -> Decimal:
    """Reject percentages outside [0, 100]."""
    value = validate_amount(value, field)
    if value < ZERO or value > HUNDRED:
        raise ValidationError(field, "must be between 0 and 100", value)
    return value


def earned_revenue(
    planned_revenue: Decimal,
    completion_percentage: Decimal,
    money_places: int = 2,
) -> Decimal:
    """planned x pct / 100, rounded to the money grid."""
    return round_money(planned_revenue * completion_percentage / HUNDRED, money_places)


def next_milestone_status(
    current: MilestoneStatus,
    completion_percentage: Decimal,
) -> MilestoneStatus:
    """Status after recording progress; only PENDING / IN_PROGRESS move."""
    if current not in (MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS):
        return current
    if completion_percentage >= HUNDRED:
        return MilestoneStatus.COMPLETED
    if completion_percentage > ZERO:
        return MilestoneStatus.IN_PROGRESS
    return current


@dataclass(frozen=True)
class MilestoneRecognition:
    """Outcome of one recognition computation."""

    total_earned: Decimal
    delta: Decimal
    recognized_revenue: Decimal
    remaining_revenue: Decimal
    completion_percentage: Decimal
    status: MilestoneStatus


@traced_engine(
    "milestone_recognition",
    "1.0",
    fingerprint_fields=(
        "milestone_id",
        "planned_revenue",
        "recognized_revenue",
        "completion_percentage",
    ),
)
def compute_milestone_recognition(
    milestone_id: object,
    planned_revenue: Decimal,
    recognized_revenue: Decimal,
    completion_percentage: Decimal,
    status: MilestoneStatus,
    epsilon: Decimal = DEFAULT_EPSILON,
    money_places: int = 2,
) -> MilestoneRecognition:
    """
    Compute the incremental revenue to recognize for a milestone.

    Raises:
        ValidationError: percentage outside [0, 100].
        InvalidStateError: milestone is CANCELLED.
        NoOpError: delta below epsilon (no progress, or a backward call).
    """
    pct = validate_percentage(completion_percentage)
    if status == MilestoneStatus.CANCELLED:
        raise InvalidStateError("Milestone", milestone_id, status.value, "recognize")

    total_earned = earned_revenue(planned_revenue, pct, money_places)
    delta = total_earned - recognized_revenue
    if delta < epsilon:
        raise NoOpError(
            milestone_id,
            delta,
            f"earned {total_earned} does not exceed recognized {recognized_revenue}",
        )

    return MilestoneRecognition(
        total_earned=total_earned,
        delta=delta,
        recognized_revenue=total_earned,
        remaining_revenue=planned_revenue - total_earned,
        completion_percentage=pct,
        status=next_milestone_status(status, pct),
    )


class DeferralStatus(str, Enum):
    """Deferred revenue balance status."""

    DEFERRED = "deferred"
    PARTIALLY_RECOGNIZED = "partially_recognized"
    FULLY_RECOGNIZED = "fully_recognized"

    @property
    def is_active(self) -> bool:
        return self != DeferralStatus.FULLY_RECOGNIZED


def deferral_status(remaining: Decimal, epsilon: Decimal = DEFAULT_EPSILON) -> DeferralStatus:
    """Status after a release: fully recognized once remaining drops below epsilon."""
    if remaining < epsilon:
        return DeferralStatus.FULLY_RECOGNIZED
    return DeferralStatus.PARTIALLY_RECOGNIZED


def recognized_share(recognized: Decimal, total: Decimal) -> Decimal:
    """recognized / total x 100, quantized to two decimals."""
    if total == ZERO:
        return ZERO
    return round_percentage(recognized * HUNDRED / total)


def equal_share(budget: Decimal, existing_count: int, money_places: int = 2) -> Decimal:
    """Budget split evenly over existing milestones plus the new one."""
    return round_money(budget / Decimal(existing_count + 1), money_places)
