"""
Module: rental_engines.waterfall
Responsibility:
    Apply one incoming payment across a lease's outstanding obligations,
    oldest nominal due date first, and report what is left over.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Sequential allocation in
    the manner of FIFO allocation: each target takes up to its balance until
    the payment runs out.

Invariants enforced:
    - Obligations are walked by original_due_date ascending (undated last),
      whatever order the caller passed them in.
    - applied = min(remaining, balance) per obligation; no obligation ever
      receives more than its balance.
    - sum(applied) + residual_amount == payment amount.
    - Nothing outstanding -> the whole amount is an additional payment.
      Outstanding but exhausted -> any remainder is an overpayment.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from rental_engines.tracer import traced_engine
from rental_kernel.domain.dtos import ObligationView
from rental_kernel.domain.obligation import ObligationStatus, ObligationType
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.waterfall")

ZERO = Decimal("0")


@dataclass(frozen=True)
class AllocationLine:
    """The effect of the payment on one obligation."""

    obligation_id: UUID
    applied: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: ObligationStatus

    @property
    def is_fully_paid(self) -> bool:
        return self.status is ObligationStatus.PAID


@dataclass(frozen=True)
class WaterfallResult:
    payment_amount: Decimal
    lines: tuple[AllocationLine, ...]
    residual_amount: Decimal
    residual_type: ObligationType | None

    @property
    def total_applied(self) -> Decimal:
        return sum((line.applied for line in self.lines), ZERO)


def waterfall_order_key(view: ObligationView) -> tuple:
    due = view.original_due_date
    return (due is None, due or date.min, str(view.id))


@traced_engine("waterfall", "1.0", fingerprint_fields=("amount", "obligations"))
def allocate_waterfall(
    *,
    amount: Decimal,
    obligations: Sequence[ObligationView],
) -> WaterfallResult:
    """
    Allocate ``amount`` oldest-first across ``obligations``.

    Raises:
        ValueError: amount is not positive.
    """
    if amount is None or amount <= 0:
        raise ValueError(f"Payment amount must be positive, got {amount}")

    outstanding = sorted(obligations, key=waterfall_order_key)
    if not outstanding:
        logger.info(
            "waterfall_no_outstanding",
            extra={"payment_amount": str(amount)},
        )
        return WaterfallResult(
            payment_amount=amount,
            lines=(),
            residual_amount=amount,
            residual_type=ObligationType.ADDITIONAL_PAYMENT,
        )

    remaining = amount
    lines: list[AllocationLine] = []
    for view in outstanding:
        if remaining <= 0:
            break
        balance = max(view.amount - view.amount_paid, ZERO)
        applied = min(remaining, balance)
        new_paid = view.amount_paid + applied
        status = (
            ObligationStatus.PAID if new_paid >= view.amount
            else ObligationStatus.PARTIALLY_PAID
        )
        remaining -= applied
        if applied == 0 and status is view.status:
            continue
        lines.append(
            AllocationLine(
                obligation_id=view.id,
                applied=applied,
                amount_paid=new_paid,
                balance=max(view.amount - new_paid, ZERO),
                status=status,
            )
        )

    residual_type = ObligationType.OVERPAYMENT if remaining > 0 else None

    logger.info(
        "waterfall_completed",
        extra={
            "payment_amount": str(amount),
            "obligations_touched": len(lines),
            "total_applied": str(amount - remaining),
            "residual_amount": str(remaining),
        },
    )
    return WaterfallResult(
        payment_amount=amount,
        lines=tuple(lines),
        residual_amount=remaining,
        residual_type=residual_type,
    )
