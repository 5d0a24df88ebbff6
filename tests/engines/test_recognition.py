"""
Tests for the percentage-of-completion recognition engine.

Covers:
- Earned revenue and delta computation
- Status transitions driven by completion
- NoOp / InvalidState / Validation failures
- Amount coercion and rejection of non-finite input
- Deferred revenue status helpers
"""

from decimal import Decimal

import pytest

from finance_engines.recognition import (
    DeferralStatus,
    compute_milestone_recognition,
    deferral_status,
    earned_revenue,
    equal_share,
    next_milestone_status,
    recognized_share,
    validate_amount,
    validate_percentage,
)
from finance_engines.schedule_types import MilestoneStatus
from finance_kernel.exceptions import InvalidStateError, NoOpError, ValidationError

PLANNED = Decimal("1000000.00")


class TestEarnedRevenue:

    def test_forty_percent(self):
        assert earned_revenue(PLANNED, Decimal("40")) == Decimal("400000.00")

    def test_rounds_half_up_to_cents(self):
        assert earned_revenue(Decimal("100.01"), Decimal("50")) == Decimal("50.01")

    def test_fractional_percentage(self):
        assert earned_revenue(Decimal("999.99"), Decimal("33.33")) == Decimal("333.30")


class TestComputeMilestoneRecognition:

    def test_first_recognition(self):
        result = compute_milestone_recognition(
            "m1", PLANNED, Decimal("0"), Decimal("40"), MilestoneStatus.PENDING,
        )

        assert result.delta == Decimal("400000.00")
        assert result.recognized_revenue == Decimal("400000.00")
        assert result.remaining_revenue == Decimal("600000.00")
        assert result.status == MilestoneStatus.IN_PROGRESS

    def test_incremental_recognition_posts_delta_only(self):
        result = compute_milestone_recognition(
            "m1", PLANNED, Decimal("400000.00"), Decimal("100"), MilestoneStatus.IN_PROGRESS,
        )

        assert result.delta == Decimal("600000.00")
        assert result.remaining_revenue == Decimal("0.00")
        assert result.status == MilestoneStatus.COMPLETED

    def test_same_percentage_is_noop(self):
        with pytest.raises(NoOpError) as exc_info:
            compute_milestone_recognition(
                "m1", PLANNED, Decimal("400000.00"), Decimal("40"),
                MilestoneStatus.IN_PROGRESS,
            )
        assert exc_info.value.delta == "0.00"

    def test_backward_percentage_is_noop(self):
        with pytest.raises(NoOpError):
            compute_milestone_recognition(
                "m1", PLANNED, Decimal("400000.00"), Decimal("30"),
                MilestoneStatus.IN_PROGRESS,
            )

    def test_delta_below_epsilon_is_noop(self):
        with pytest.raises(NoOpError):
            compute_milestone_recognition(
                "m1", Decimal("1.00"), Decimal("0"), Decimal("0.4"), MilestoneStatus.PENDING,
            )

    def test_zero_percent_on_pending_is_noop(self):
        with pytest.raises(NoOpError):
            compute_milestone_recognition(
                "m1", PLANNED, Decimal("0"), Decimal("0"), MilestoneStatus.PENDING,
            )

    def test_cancelled_rejected(self):
        with pytest.raises(InvalidStateError) as exc_info:
            compute_milestone_recognition(
                "m1", PLANNED, Decimal("0"), Decimal("50"), MilestoneStatus.CANCELLED,
            )
        assert exc_info.value.current_status == "cancelled"

    @pytest.mark.parametrize("pct", [Decimal("-0.01"), Decimal("100.01"), Decimal("150")])
    def test_out_of_range_rejected(self, pct):
        with pytest.raises(ValidationError) as exc_info:
            compute_milestone_recognition(
                "m1", PLANNED, Decimal("0"), pct, MilestoneStatus.PENDING,
            )
        assert exc_info.value.field == "completion_percentage"

    def test_zero_planned_revenue_is_noop(self):
        with pytest.raises(NoOpError):
            compute_milestone_recognition(
                "m1", Decimal("0"), Decimal("0"), Decimal("100"), MilestoneStatus.PENDING,
            )


class TestStatusTransitions:

    @pytest.mark.parametrize("current,pct,expected", [
        (MilestoneStatus.PENDING, Decimal("0"), MilestoneStatus.PENDING),
        (MilestoneStatus.PENDING, Decimal("1"), MilestoneStatus.IN_PROGRESS),
        (MilestoneStatus.PENDING, Decimal("100"), MilestoneStatus.COMPLETED),
        (MilestoneStatus.IN_PROGRESS, Decimal("99.99"), MilestoneStatus.IN_PROGRESS),
        (MilestoneStatus.IN_PROGRESS, Decimal("100"), MilestoneStatus.COMPLETED),
        (MilestoneStatus.COMPLETED, Decimal("100"), MilestoneStatus.COMPLETED),
        (MilestoneStatus.ACCEPTED, Decimal("100"), MilestoneStatus.ACCEPTED),
    ])
    def test_next_status(self, current, pct, expected):
        assert next_milestone_status(current, pct) == expected


class TestHelpers:

    def test_validate_percentage_coerces(self):
        assert validate_percentage(50) == Decimal("50")

    @pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("-Infinity"), float("nan"), "inf"])
    def test_validate_amount_rejects_non_finite(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(value, "amount")
        assert exc_info.value.field == "amount"

    def test_validate_amount_rejects_garbage(self):
        with pytest.raises(ValidationError):
            validate_amount("twelve", "amount")

    def test_validate_amount_coerces(self):
        assert validate_amount(12.5, "amount") == Decimal("12.5")
        assert validate_amount("3.10", "amount") == Decimal("3.10")

    def test_validate_percentage_rejects_nan(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_percentage(Decimal("NaN"))
        assert exc_info.value.field == "completion_percentage"

    def test_deferral_status(self):
        assert deferral_status(Decimal("0")) == DeferralStatus.FULLY_RECOGNIZED
        assert deferral_status(Decimal("0.009")) == DeferralStatus.FULLY_RECOGNIZED
        assert deferral_status(Decimal("0.01")) == DeferralStatus.PARTIALLY_RECOGNIZED

    def test_deferral_status_is_active(self):
        assert DeferralStatus.DEFERRED.is_active
        assert DeferralStatus.PARTIALLY_RECOGNIZED.is_active
        assert not DeferralStatus.FULLY_RECOGNIZED.is_active

    def test_recognized_share(self):
        assert recognized_share(Decimal("4000000"), Decimal("12000000")) == Decimal("33.33")
        assert recognized_share(Decimal("0"), Decimal("0")) == Decimal("0")

    def test_equal_share(self):
        assert equal_share(Decimal("3000000"), 2) == Decimal("1000000.00")
        assert equal_share(Decimal("100"), 2) == Decimal("33.33")
