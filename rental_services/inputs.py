"""
Normalization of caller-supplied inputs for the reconciliation services.

Callers hand in leases in several shapes (a UUID, its string form, a Lease
row, LeaseTerms, or a mapping with an ``id`` key) and payment dates as
dates, naive datetimes or aware datetimes.  These helpers turn them into
the one form the services work with.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from rental_kernel.db.types import round_money, to_money
from rental_kernel.domain.clock import Clock


def coerce_lease_id(lease: Any) -> UUID:
    """
    Extract a lease id.

    Raises:
        ValueError: no id can be found or it is not a UUID.
    """
    if isinstance(lease, UUID):
        return lease
    if isinstance(lease, str):
        return UUID(lease)
    if isinstance(lease, Mapping):
        raw = lease.get("id", lease.get("lease_id"))
        if raw is None:
            raise ValueError("lease mapping has no 'id'")
        return coerce_lease_id(raw)
    for attr in ("lease_id", "id"):
        raw = getattr(lease, attr, None)
        if raw is not None:
            return coerce_lease_id(raw)
    raise ValueError(f"Cannot determine lease id from {type(lease).__name__}")


def normalize_payment_date(value: date | datetime | None, clock: Clock) -> datetime:
    """Timezone-aware payment timestamp; dates become midnight UTC."""
    if value is None:
        return clock.now()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def normalize_amount(value: Any) -> Decimal | None:
    """Decimal rounded to cents, or None."""
    amount = to_money(value)
    if amount is None:
        return None
    return round_money(amount)
