"""
Reconciliation configuration schema.

Frozen dataclasses the loader parses YAML into.  Every section has defaults
matching the shipped ``defaults.yaml``, so a partial file only overrides what
it names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LateFeePolicy:
    """Default late-fee policy; lease columns override it per lease."""

    daily_rate: Decimal = Decimal("120")
    cap: Decimal = Decimal("3000")


@dataclass(frozen=True)
class ScheduleDefaults:
    default_due_day: int = 1


@dataclass(frozen=True)
class PaymentDefaults:
    default_method: str = "cash"
    # Spelling of the terminal status for legacy consumers
    legacy_terminal_status: str = "completed"


@dataclass(frozen=True)
class StoreRetrySettings:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 4.0
    timeout_seconds: float = 8.0
    statement_timeout_ms: int = 15000


@dataclass(frozen=True)
class LockSettings:
    timeout_seconds: float = 30.0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationConfig:
    """Everything the reconciliation core reads from configuration."""

    late_fee: LateFeePolicy = field(default_factory=LateFeePolicy)
    schedule: ScheduleDefaults = field(default_factory=ScheduleDefaults)
    payments: PaymentDefaults = field(default_factory=PaymentDefaults)
    store: StoreRetrySettings = field(default_factory=StoreRetrySettings)
    locking: LockSettings = field(default_factory=LockSettings)
    source: str | None = None
    checksum: str = ""
