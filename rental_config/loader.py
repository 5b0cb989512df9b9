"""
Configuration Loader (``rental_config.loader``).

Responsibility
--------------
Loads the reconciliation YAML file and parses it into the frozen dataclasses
of ``rental_config.schema``.  Runtime callers go through
``rental_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys are rejected, so a typo
  cannot silently fall back to a default.
* Money values are parsed as Decimal from their string form, never float.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed content.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Out-of-range or mistyped values -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from rental_config.schema import (
    LateFeePolicy,
    LockSettings,
    PaymentDefaults,
    ReconciliationConfig,
    ScheduleDefaults,
    StoreRetrySettings,
)
from rental_kernel.exceptions import ConfigError

_SECTIONS = ("late_fee", "schedule", "payments", "store", "locking")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: tuple[str, ...]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(name, "must be a mapping")
    unknown = set(section) - set(allowed)
    if unknown:
        raise ConfigError(name, f"unknown keys {sorted(unknown)}")
    return section


def _decimal(field: str, value: Any, minimum: Decimal = Decimal("0")) -> Decimal:
    if isinstance(value, bool):
        raise ConfigError(field, "must be a number")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigError(field, f"not a number: {value!r}") from None
    if not result.is_finite() or result < minimum:
        raise ConfigError(field, f"must be >= {minimum}, got {value!r}")
    return result


def _int(field: str, value: Any, minimum: int, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(field, f"must be an integer, got {value!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ConfigError(field, f"must be {bound}, got {value}")
    return value


def _float(field: str, value: Any, minimum: float = 0.0, strict: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(field, f"must be a number, got {value!r}")
    if value < minimum or (strict and value == minimum):
        op = ">" if strict else ">="
        raise ConfigError(field, f"must be {op} {minimum}, got {value}")
    return float(value)


def _str(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(field, "must be a non-empty string")
    return value.strip()


def parse_late_fee(data: dict[str, Any]) -> LateFeePolicy:
    section = _section(data, "late_fee", ("daily_rate", "cap"))
    default = LateFeePolicy()
    return LateFeePolicy(
        daily_rate=_decimal("late_fee.daily_rate", section.get("daily_rate", default.daily_rate)),
        cap=_decimal("late_fee.cap", section.get("cap", default.cap)),
    )


def parse_schedule(data: dict[str, Any]) -> ScheduleDefaults:
    section = _section(data, "schedule", ("default_due_day",))
    default = ScheduleDefaults()
    return ScheduleDefaults(
        default_due_day=_int(
            "schedule.default_due_day",
            section.get("default_due_day", default.default_due_day),
            1, 31,
        ),
    )


def parse_payments(data: dict[str, Any]) -> PaymentDefaults:
    section = _section(data, "payments", ("default_method", "legacy_terminal_status"))
    default = PaymentDefaults()
    return PaymentDefaults(
        default_method=_str(
            "payments.default_method",
            section.get("default_method", default.default_method),
        ),
        legacy_terminal_status=_str(
            "payments.legacy_terminal_status",
            section.get("legacy_terminal_status", default.legacy_terminal_status),
        ),
    )


def parse_store(data: dict[str, Any]) -> StoreRetrySettings:
    section = _section(data, "store", (
        "max_attempts",
        "base_delay_seconds",
        "backoff_multiplier",
        "max_delay_seconds",
        "timeout_seconds",
        "statement_timeout_ms",
    ))
    d = StoreRetrySettings()
    return StoreRetrySettings(
        max_attempts=_int("store.max_attempts", section.get("max_attempts", d.max_attempts), 1, 10),
        base_delay_seconds=_float(
            "store.base_delay_seconds", section.get("base_delay_seconds", d.base_delay_seconds),
        ),
        backoff_multiplier=_float(
            "store.backoff_multiplier", section.get("backoff_multiplier", d.backoff_multiplier), 1.0,
        ),
        max_delay_seconds=_float(
            "store.max_delay_seconds", section.get("max_delay_seconds", d.max_delay_seconds),
        ),
        timeout_seconds=_float(
            "store.timeout_seconds", section.get("timeout_seconds", d.timeout_seconds), strict=True,
        ),
        statement_timeout_ms=_int(
            "store.statement_timeout_ms",
            section.get("statement_timeout_ms", d.statement_timeout_ms),
            0,
        ),
    )


def parse_locking(data: dict[str, Any]) -> LockSettings:
    section = _section(data, "locking", ("timeout_seconds",))
    default = LockSettings()
    return LockSettings(
        timeout_seconds=_float(
            "locking.timeout_seconds",
            section.get("timeout_seconds", default.timeout_seconds),
            strict=True,
        ),
    )


def parse_config(data: dict[str, Any], source: str | None = None) -> ReconciliationConfig:
    """Parse a loaded YAML mapping into a ``ReconciliationConfig``."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ConfigError("<root>", f"unknown sections {sorted(unknown)}")
    return ReconciliationConfig(
        late_fee=parse_late_fee(data),
        schedule=parse_schedule(data),
        payments=parse_payments(data),
        store=parse_store(data),
        locking=parse_locking(data),
        source=source,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ReconciliationConfig:
    return parse_config(load_yaml_file(path), source=str(path))
