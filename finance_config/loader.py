"""
Configuration Loader (``finance_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``finance_config.schema`` dataclasses.  Callers go through
``finance_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from finance_config.schema import (
    LedgerAccounts,
    ProjectFinanceConfig,
    RecognitionPolicy,
    RiskPolicy,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _check_keys(section: str, data: dict[str, Any], allowed: type) -> None:
    unknown = set(data) - set(allowed.__dataclass_fields__)
    if unknown:
        raise ValueError(
            f"Unknown keys in {section!r}: {', '.join(sorted(unknown))}"
        )


def parse_accounts(data: dict[str, Any]) -> LedgerAccounts:
    _check_keys("accounts", data, LedgerAccounts)
    return LedgerAccounts(**{k: str(v) for k, v in data.items()})


def parse_recognition(data: dict[str, Any]) -> RecognitionPolicy:
    _check_keys("recognition", data, RecognitionPolicy)
    kwargs: dict[str, Any] = {}
    if "currency" in data:
        kwargs["currency"] = str(data["currency"]).upper()
    if "epsilon" in data:
        kwargs["epsilon"] = Decimal(str(data["epsilon"]))
    if "money_places" in data:
        kwargs["money_places"] = int(data["money_places"])
    return RecognitionPolicy(**kwargs)


def parse_risk(data: dict[str, Any]) -> RiskPolicy:
    _check_keys("risk", data, RiskPolicy)
    kwargs: dict[str, Any] = {}
    for key in ("delay_high_days", "delay_medium_days", "upcoming_start_days"):
        if key in data:
            kwargs[key] = int(data[key])
    if "low_progress_pct" in data:
        kwargs["low_progress_pct"] = Decimal(str(data["low_progress_pct"]))
    return RiskPolicy(**kwargs)


def parse_config(data: dict[str, Any]) -> ProjectFinanceConfig:
    """Parse a whole configuration document."""
    return ProjectFinanceConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        accounts=parse_accounts(data.get("accounts") or {}),
        recognition=parse_recognition(data.get("recognition") or {}),
        risk=parse_risk(data.get("risk") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> ProjectFinanceConfig:
    """Load and parse a configuration YAML file."""
    return parse_config(load_yaml_file(path))
