"""
Module: rental_engines.late_fee
Responsibility:
    The one place the late-fee policy lives: a capped daily rate applied to
    whole days late.  Used by the schedule engine and by manual payment
    entry.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is always a
    parameter.

Invariants enforced:
    - late_fee(d, rate, cap) == min(max(d, 0) * rate, cap).
    - Result is never negative and never above the cap.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

DEFAULT_DAILY_RATE = Decimal("120")
DEFAULT_FEE_CAP = Decimal("3000")


def late_fee(
    days_late: int,
    daily_rate: Decimal = DEFAULT_DAILY_RATE,
    cap: Decimal = DEFAULT_FEE_CAP,
) -> Decimal:
    """
    Late fee for ``days_late`` whole days.

    Raises:
        ValueError: negative rate or cap.
    """
    rate = Decimal(daily_rate)
    limit = Decimal(cap)
    if rate < 0:
        raise ValueError(f"daily_rate must be non-negative, got {rate}")
    if limit < 0:
        raise ValueError(f"cap must be non-negative, got {limit}")
    days = max(int(days_late), 0)
    return min(days * rate, limit)


def days_overdue(due_date: date, today: date) -> int:
    """Whole days between due date and today, floored at zero."""
    return max((_as_date(today) - _as_date(due_date)).days, 0)


def is_past_due(due_date: date | None, today: date) -> bool:
    if due_date is None:
        return False
    return _as_date(due_date) < _as_date(today)


def days_late_for_payment(payment_date: date, rent_due_day: int) -> int:
    """Days a payment landed after the due day of its own month."""
    return max(_as_date(payment_date).day - int(rent_due_day), 0)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
