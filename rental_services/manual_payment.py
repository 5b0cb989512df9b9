"""
ManualPaymentRecorder -- one-off payment entry against a lease month.

Responsibility:
    Records a payment an operator enters by hand (cash at the counter, a
    bank transfer matched later).  The payment lands on an explicitly chosen
    obligation, or on the rent obligation of the payment's month, or on a
    newly created rent obligation for that month.  Lateness is measured
    from the lease's due day, and the late fee can be recorded as its own
    paid ``late_fee`` obligation.

Architecture position:
    Services -- imperative shell over rental_engines.late_fee and the
    ObligationStore.  Flushes only.

Invariants enforced:
    - Never creates a second rent obligation for a month that has one.
    - balance stays amount - amount_paid; money beyond the owed amount is
      recorded as an overpayment obligation.
    - A payment not flagged partial must clear the balance.

Failure modes:
    - InvalidPaymentAmountError: amount not positive, or short of the
      balance without the partial flag.
    - ObligationNotFoundError: target obligation missing or on another lease.
    - LeaseNotFoundError: lease missing.
    - StoreError from the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from rental_engines.late_fee import days_late_for_payment, late_fee
from rental_engines.schedule import due_date_for_month, first_of_month
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import ObligationView, month_key
from rental_kernel.domain.obligation import ObligationStatus, ObligationType
from rental_kernel.exceptions import (
    InvalidPaymentAmountError,
    ObligationNotFoundError,
)
from rental_kernel.logging_config import get_logger
from rental_kernel.models.payment_obligation import PaymentObligation
from rental_kernel.selectors.obligation_selector import LeaseSelector
from rental_kernel.services.obligation_store import ObligationStore
from rental_services.inputs import (
    coerce_lease_id,
    normalize_amount,
    normalize_payment_date,
)
from rental_services.observability import (
    EVENT_MANUAL_PAYMENT_RECORDED,
    LoggingEventSink,
    ReconciliationEventSink,
    emit_event,
)

logger = get_logger("services.manual_payment")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ManualPaymentResult:
    obligation: ObligationView
    days_late: int
    late_fee_amount: Decimal
    late_fee_obligation: ObligationView | None = None
    overpayment: ObligationView | None = None


class ManualPaymentRecorder:
    def __init__(
        self,
        store: ObligationStore,
        leases: LeaseSelector,
        clock: Clock | None = None,
        events: ReconciliationEventSink | None = None,
        default_method: str = "cash",
    ):
        self._store = store
        self._leases = leases
        self._clock = clock or SystemClock()
        self._events = events or LoggingEventSink()
        self._default_method = default_method

    def record(
        self,
        lease: Any,
        amount: Decimal | int | float | str,
        payment_date: date | datetime | None = None,
        method: str | None = None,
        description: str | None = None,
        target_obligation_id: UUID | str | None = None,
        partial: bool = False,
        include_late_fee: bool = False,
        reference_number: str | None = None,
        transaction_id: str | None = None,
    ) -> ManualPaymentResult:
        lease_id = coerce_lease_id(lease)
        try:
            value = normalize_amount(amount)
        except ValueError as exc:
            raise InvalidPaymentAmountError(str(amount), str(exc)) from exc
        if value is None or value <= 0:
            raise InvalidPaymentAmountError(str(amount))

        terms = self._leases.get_terms(lease_id)
        paid_at = normalize_payment_date(payment_date, self._clock)
        pay_method = method or self._default_method
        month_start = first_of_month(paid_at.date())

        days_late = days_late_for_payment(paid_at.date(), terms.rent_due_day)
        fee = late_fee(days_late, terms.daily_late_fee, terms.late_fee_cap)

        target = self._find_target(lease_id, target_obligation_id, month_start)

        common = {
            "payment_date": paid_at,
            "payment_method": pay_method,
            "reference_number": reference_number,
            "transaction_id": transaction_id,
        }

        if target is None:
            owed = terms.rent_amount if terms.rent_amount and terms.rent_amount > 0 else value
            applied = min(value, owed)
            status = self._status_for(value, applied, owed, partial)
            target = self._store.insert({
                "lease_id": lease_id,
                "amount": owed,
                "amount_paid": applied,
                "status": status,
                "type": ObligationType.RENT,
                "original_due_date": month_start,
                "due_date": due_date_for_month(month_start, terms.rent_due_day),
                "days_overdue": days_late,
                "late_fine_amount": fee,
                "description": description or f"Monthly rent payment for {month_start:%B %Y}",
                **common,
            })
        else:
            owed = target.amount
            already = target.amount_paid or ZERO
            applied = min(value, max(owed - already, ZERO))
            status = self._status_for(value, already + applied, owed, partial)
            patch = {
                "amount_paid": already + applied,
                "status": status,
                **common,
            }
            if ObligationType.parse(target.type) is ObligationType.RENT:
                patch["days_overdue"] = days_late
                patch["late_fine_amount"] = fee
            if description:
                patch["description"] = description
            self._store.update(target, patch)

        overpayment = None
        excess = value - applied
        if excess > 0:
            overpayment = self._store.insert({
                "lease_id": lease_id,
                "amount": excess,
                "amount_paid": excess,
                "status": ObligationStatus.PAID,
                "type": ObligationType.OVERPAYMENT,
                "original_due_date": month_start,
                "due_date": paid_at.date(),
                "description": "Overpayment",
                **common,
            })

        fee_row = None
        if include_late_fee and fee > 0:
            fee_row = self._store.insert({
                "lease_id": lease_id,
                "amount": fee,
                "amount_paid": fee,
                "status": ObligationStatus.PAID,
                "type": ObligationType.LATE_FEE,
                "original_due_date": month_start,
                "due_date": paid_at.date(),
                "days_overdue": days_late,
                "late_fine_amount": fee,
                "description": f"Late payment fee ({days_late} days late)",
                **common,
            })

        logger.info(
            "manual_payment_recorded",
            extra={
                "lease_id": str(lease_id),
                "obligation_id": str(target.id),
                "amount": str(value),
                "days_late": days_late,
                "late_fee_amount": str(fee),
                "late_fee_recorded": fee_row is not None,
            },
        )
        emit_event(
            self._events,
            EVENT_MANUAL_PAYMENT_RECORDED,
            lease_id=lease_id,
            operation="record_manual_payment",
            occurred_at=self._clock.now(),
            obligation_id=str(target.id),
            amount=str(value),
            days_late=days_late,
            late_fee_amount=str(fee),
        )
        return ManualPaymentResult(
            obligation=ObligationView.from_model(target),
            days_late=days_late,
            late_fee_amount=fee,
            late_fee_obligation=ObligationView.from_model(fee_row) if fee_row else None,
            overpayment=ObligationView.from_model(overpayment) if overpayment else None,
        )

    def _find_target(
        self,
        lease_id: UUID,
        target_obligation_id: UUID | str | None,
        month_start: date,
    ) -> PaymentObligation | None:
        if target_obligation_id is not None:
            target_id = (
                target_obligation_id if isinstance(target_obligation_id, UUID)
                else UUID(str(target_obligation_id))
            )
            row = self._store.get(target_id)
            if row is None or row.lease_id != lease_id:
                raise ObligationNotFoundError(str(target_id), lease_id=str(lease_id))
            return row

        wanted = month_key(month_start)
        for row in self._store.select(lease_id):
            if (
                ObligationType.parse(row.type) is ObligationType.RENT
                and month_key(row.original_due_date) == wanted
            ):
                return row
        return None

    @staticmethod
    def _status_for(
        value: Decimal,
        paid: Decimal,
        owed: Decimal,
        partial: bool,
    ) -> ObligationStatus:
        if paid >= owed:
            return ObligationStatus.PAID
        if not partial:
            raise InvalidPaymentAmountError(
                str(value),
                f"leaves {owed - paid} unpaid; record it as a partial payment",
            )
        return ObligationStatus.PARTIALLY_PAID
