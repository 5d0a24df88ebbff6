"""
finance_config -- single public entrypoint for project finance configuration.

Responsibility:
    ``get_active_config()`` is the only way services, engines and scripts
    obtain account codes, recognition money rules and risk thresholds.
    It returns a frozen ``ProjectFinanceConfig``; callers hold it and pass
    it down by constructor injection.

Architecture position:
    Configuration -- sits above ``finance_kernel`` and below
    ``finance_modules``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful call emits a ``FINANCE_CONFIG_TRACE`` log entry with the
    config id, version and checksum, tying postings to the configuration
    that produced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from finance_config.loader import load_config_file
from finance_config.schema import (
    LedgerAccounts,
    ProjectFinanceConfig,
    RecognitionPolicy,
    RiskPolicy,
)

_logger = logging.getLogger("finance_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> ProjectFinanceConfig:
    """Load the active configuration.

    Non-goals:
        - No caching across calls; hold the returned object instead.

    Args:
        path: Override path to a configuration YAML file.
            Defaults to finance_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_FILE
    config = load_config_file(config_path)

    _logger.info(
        "FINANCE_CONFIG_TRACE",
        extra={
            "trace_type": "FINANCE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "currency": config.recognition.currency,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "LedgerAccounts",
    "ProjectFinanceConfig",
    "RecognitionPolicy",
    "RiskPolicy",
]
