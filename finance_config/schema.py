"""
Project finance configuration schema.

YAML sets are parsed into these frozen dataclasses by the loader and handed
to services and engines by constructor injection.  Nothing here reads files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Chart of accounts subset
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerAccounts:
    """Account codes hit by deferral, recognition and cost accumulation."""

    cash_bank: str = "1-1020"
    deferred_revenue: str = "2-1020"
    revenue: str = "4-1010"
    unbilled_revenue: str = "1-2020"
    work_in_progress: str = "1-2010"
    direct_material: str = "5-1100"
    direct_labor: str = "5-1200"
    direct_expenses: str = "5-1300"
    overhead_control: str = "5-1400"

    def __post_init__(self) -> None:
        for name, code in vars(self).items():
            if not isinstance(code, str) or not code.strip():
                raise ValueError(f"Account code {name!r} must be a non-empty string")


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecognitionPolicy:
    """Money handling for recognition and deferral."""

    currency: str = "IDR"
    # Amounts below this are treated as zero (no-op recognition, fully recognized)
    epsilon: Decimal = Decimal("0.01")
    money_places: int = 2

    def __post_init__(self) -> None:
        if len(self.currency) != 3:
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.money_places < 0:
            raise ValueError(f"money_places must be >= 0, got {self.money_places}")


# ---------------------------------------------------------------------------
# Risk thresholds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskPolicy:
    """Thresholds for the schedule risk rules."""

    delay_high_days: int = 7
    delay_medium_days: int = 3
    upcoming_start_days: int = 7
    low_progress_pct: Decimal = Decimal("30")

    def __post_init__(self) -> None:
        if self.delay_medium_days > self.delay_high_days:
            raise ValueError(
                "delay_medium_days must not exceed delay_high_days "
                f"({self.delay_medium_days} > {self.delay_high_days})"
            )
        if self.upcoming_start_days < 0:
            raise ValueError("upcoming_start_days must be >= 0")
        if not (Decimal("0") <= self.low_progress_pct <= Decimal("100")):
            raise ValueError("low_progress_pct must be within [0, 100]")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProjectFinanceConfig:
    """Root configuration object."""

    config_id: str
    version: int
    accounts: LedgerAccounts = field(default_factory=LedgerAccounts)
    recognition: RecognitionPolicy = field(default_factory=RecognitionPolicy)
    risk: RiskPolicy = field(default_factory=RiskPolicy)
    checksum: str = ""

    @classmethod
    def with_defaults(cls) -> ProjectFinanceConfig:
        """Configuration with built-in defaults (no YAML involved)."""
        return cls(config_id="builtin", version=1)
