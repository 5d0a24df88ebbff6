"""Project schedule configuration bridge."""

from __future__ import annotations

from finance_config.schema import RiskPolicy
from finance_engines.risk import RiskThresholds


def risk_thresholds(policy: RiskPolicy) -> RiskThresholds:
    """Translate the configured risk policy into risk engine thresholds."""
    return RiskThresholds(
        delay_high_days=policy.delay_high_days,
        delay_medium_days=policy.delay_medium_days,
        upcoming_start_days=policy.upcoming_start_days,
        low_progress_pct=policy.low_progress_pct,
    )
