"""
rental_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain late-fee policy,
    schedule defaults, payment defaults, store retry budget and lock
    timeouts.  Nothing else reads the YAML.

Architecture position:
    Configuration sits above ``rental_kernel`` and below ``rental_services``.
    The kernel never imports from here; services translate the settings
    into kernel inputs (RetryPolicy, LeaseLockManager timeouts, LeaseTerms
    defaults).

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigError`` -- a value failed validation.

Every successful call emits a ``RENTAL_CONFIG_TRACE`` log entry with the
source path and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rental_config.loader import compute_checksum, load_config, parse_config
from rental_config.schema import (
    LateFeePolicy,
    LockSettings,
    PaymentDefaults,
    ReconciliationConfig,
    ScheduleDefaults,
    StoreRetrySettings,
)

_logger = logging.getLogger("rental_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> ReconciliationConfig:
    """Load, validate and trace the reconciliation configuration.

    Args:
        config_path: Override path.  Defaults to the packaged defaults.yaml.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "RENTAL_CONFIG_TRACE",
        extra={
            "trace_type": "RENTAL_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "daily_rate": str(config.late_fee.daily_rate),
            "fee_cap": str(config.late_fee.cap),
            "store_max_attempts": config.store.max_attempts,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LateFeePolicy",
    "LockSettings",
    "PaymentDefaults",
    "ReconciliationConfig",
    "ScheduleDefaults",
    "StoreRetrySettings",
    "compute_checksum",
    "get_active_config",
    "parse_config",
]
