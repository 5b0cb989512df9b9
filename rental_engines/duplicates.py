"""
Module: rental_engines.duplicates
Responsibility:
    Decide, for each calendar month holding more than one rent obligation of
    a lease, which obligation survives and what payment data moves onto it
    from the copies being removed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  DuplicateResolver applies
    the plan (update the survivor, then delete each copy).

Invariants enforced:
    - Only rent obligations are bucketed.  Additional payments, overpayments
      and late fees legitimately share months and are never removed.
    - Obligations without a nominal due date are never touched.
    - Ranking is a total order: status rank, then has-payment, then larger
      amount paid, then more days overdue (overdue only), then most recent
      update, then id.  The same input always keeps the same obligation.
    - Payment data moves at most once per bucket: only while the survivor
      has nothing paid.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from rental_engines.tracer import traced_engine
from rental_kernel.domain.dtos import MonthKey, ObligationView
from rental_kernel.domain.obligation import ObligationStatus, status_rank
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.duplicates")


def _recency(value: datetime | None) -> tuple[int, float]:
    if value is None:
        return (1, 0.0)
    if value.tzinfo is None:
        # SQLite hands back naive UTC values
        value = value.replace(tzinfo=timezone.utc)
    return (0, -value.timestamp())


def priority_key(view: ObligationView) -> tuple:
    """Sort key; the smallest key is the obligation to keep."""
    overdue_days = view.days_overdue if view.status is ObligationStatus.OVERDUE else 0
    return (
        status_rank(view.status),
        0 if view.has_payment else 1,
        -view.amount_paid,
        -overdue_days,
        _recency(view.updated_at),
        str(view.id),
    )


@dataclass(frozen=True)
class PaymentTransfer:
    """Payment fields copied from a removed copy onto the survivor."""

    amount_paid: Decimal
    payment_date: datetime | None
    status: str | None
    payment_method: str | None
    transaction_id: str | None

    def as_patch(self) -> dict:
        return {
            "amount_paid": self.amount_paid,
            "payment_date": self.payment_date,
            "status": self.status,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
        }


@dataclass(frozen=True)
class DuplicateRemoval:
    obligation_id: UUID
    transfer: PaymentTransfer | None = None


@dataclass(frozen=True)
class BucketResolution:
    month: MonthKey
    keep_id: UUID
    removals: tuple[DuplicateRemoval, ...]


@dataclass(frozen=True)
class DuplicateResolutionPlan:
    buckets: tuple[BucketResolution, ...] = ()

    @property
    def removal_count(self) -> int:
        return sum(len(b.removals) for b in self.buckets)


def _transfer_from(view: ObligationView) -> PaymentTransfer:
    return PaymentTransfer(
        amount_paid=view.amount_paid,
        payment_date=view.payment_date,
        status=view.status.value if view.status is not None else view.raw_status,
        payment_method=view.payment_method,
        transaction_id=view.transaction_id,
    )


def group_rent_by_month(
    obligations: Sequence[ObligationView],
) -> dict[MonthKey, list[ObligationView]]:
    buckets: dict[MonthKey, list[ObligationView]] = defaultdict(list)
    for view in obligations:
        if not view.is_rent or view.month is None:
            continue
        buckets[view.month].append(view)
    return buckets


@traced_engine("duplicates", "1.0", fingerprint_fields=("obligations",))
def plan_duplicate_resolution(
    *,
    obligations: Sequence[ObligationView],
) -> DuplicateResolutionPlan:
    """Plan which rent obligations to remove, month by month (oldest first)."""
    resolutions: list[BucketResolution] = []

    for month, bucket in sorted(group_rent_by_month(obligations).items()):
        if len(bucket) < 2:
            continue
        ranked = sorted(bucket, key=priority_key)
        keeper, copies = ranked[0], ranked[1:]

        keeper_paid = keeper.has_payment
        removals: list[DuplicateRemoval] = []
        for copy in copies:
            transfer = None
            if copy.has_payment and not keeper_paid:
                transfer = _transfer_from(copy)
                keeper_paid = True
            removals.append(DuplicateRemoval(obligation_id=copy.id, transfer=transfer))

        resolutions.append(
            BucketResolution(month=month, keep_id=keeper.id, removals=tuple(removals))
        )

    plan = DuplicateResolutionPlan(buckets=tuple(resolutions))
    if plan.buckets:
        logger.info(
            "duplicate_plan_built",
            extra={
                "bucket_count": len(plan.buckets),
                "removal_count": plan.removal_count,
            },
        )
    return plan
