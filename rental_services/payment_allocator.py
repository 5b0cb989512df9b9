"""
PaymentAllocator -- apply an incoming payment oldest obligation first.

Responsibility:
    Runs the waterfall for one payment on one lease: duplicates are resolved
    first, the outstanding obligations are read oldest nominal due date
    first, each receives up to its balance, and any leftover becomes an
    overpayment (or, when nothing was outstanding, an additional payment).
    Without a positive amount it only brings obligation state current.

Architecture position:
    Services -- imperative shell over rental_engines.waterfall, the
    DuplicateResolver, the ScheduleSynchronizer and the ObligationStore.
    Flushes only; the reconciliation facade owns the transaction, so a
    failure part-way through the waterfall is rolled back as a whole.

Failure modes:
    - StoreError / StoreTimeoutError (both ReconciliationError) from any
      store call in the waterfall propagate to the caller.
    - LeaseNotFoundError when the lease does not exist.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from rental_engines.schedule import first_of_month
from rental_engines.waterfall import WaterfallResult, allocate_waterfall
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import ObligationView
from rental_kernel.domain.obligation import ObligationStatus, ObligationType
from rental_kernel.exceptions import LeaseNotFoundError, ReconciliationError
from rental_kernel.logging_config import get_logger
from rental_kernel.selectors.obligation_selector import (
    LeaseSelector,
    ObligationSelector,
)
from rental_kernel.services.obligation_store import ObligationStore
from rental_services.duplicate_resolver import DuplicateResolver
from rental_services.inputs import (
    coerce_lease_id,
    normalize_amount,
    normalize_payment_date,
)
from rental_services.observability import (
    EVENT_PAYMENT_ALLOCATED,
    EVENT_RECONCILIATION_FAILED,
    LoggingEventSink,
    ReconciliationEventSink,
    emit_event,
)
from rental_services.schedule_synchronizer import ScheduleSynchronizer

logger = get_logger("services.payment_allocator")

DEFAULT_PAYMENT_METHOD = "cash"

_RESIDUAL_DESCRIPTIONS = {
    ObligationType.ADDITIONAL_PAYMENT: "Additional payment",
    ObligationType.OVERPAYMENT: "Overpayment",
}


class PaymentAllocator:
    """Waterfall allocation of a payment across a lease's obligations."""

    def __init__(
        self,
        store: ObligationStore,
        resolver: DuplicateResolver,
        synchronizer: ScheduleSynchronizer,
        leases: LeaseSelector,
        clock: Clock | None = None,
        events: ReconciliationEventSink | None = None,
        default_method: str = DEFAULT_PAYMENT_METHOD,
    ):
        self._store = store
        self._resolver = resolver
        self._synchronizer = synchronizer
        self._leases = leases
        self._obligations = ObligationSelector(store.session)
        self._clock = clock or SystemClock()
        self._events = events or LoggingEventSink()
        self._default_method = default_method
        self.last_result: WaterfallResult | None = None

    def allocate(
        self,
        lease: Any,
        amount: Decimal | int | float | str | None = None,
        payment_date: date | datetime | None = None,
        method: str | None = None,
        description: str | None = None,
    ) -> list[ObligationView]:
        """
        Allocate ``amount`` and return every obligation of the lease,
        most recent payment first.

        An absent or non-positive amount runs duplicate resolution and
        schedule synchronization only.
        """
        lease_id = coerce_lease_id(lease)
        if self._leases.get_row(lease_id) is None:
            raise LeaseNotFoundError(str(lease_id))

        value = normalize_amount(amount)
        self.last_result = None

        if value is None or value <= 0:
            logger.info(
                "payment_refresh_only",
                extra={"lease_id": str(lease_id), "amount": str(value)},
            )
            self._resolver.resolve(lease_id)
            self._synchronizer.synchronize(lease_id)
            return self._obligations.list_for_display(lease_id)

        paid_at = normalize_payment_date(payment_date, self._clock)
        pay_method = method or self._default_method

        try:
            self._resolver.resolve(lease_id)
            result = self._apply(lease_id, value, paid_at, pay_method, description)
        except ReconciliationError as exc:
            emit_event(
                self._events,
                EVENT_RECONCILIATION_FAILED,
                lease_id=lease_id,
                operation="allocate_payment",
                occurred_at=self._clock.now(),
                amount=str(value),
                error_code=exc.code,
                error=str(exc),
            )
            raise

        self.last_result = result
        emit_event(
            self._events,
            EVENT_PAYMENT_ALLOCATED,
            lease_id=lease_id,
            operation="allocate_payment",
            occurred_at=self._clock.now(),
            amount=str(value),
            obligations_touched=len(result.lines),
            residual_amount=str(result.residual_amount),
            residual_type=result.residual_type.value if result.residual_type else None,
            payment_method=pay_method,
        )
        return self._obligations.list_for_display(lease_id)

    def _apply(
        self,
        lease_id: UUID,
        amount: Decimal,
        paid_at: datetime,
        method: str,
        description: str | None,
    ) -> WaterfallResult:
        rows = self._store.select_outstanding(lease_id)
        rows_by_id = {row.id: row for row in rows}

        result = allocate_waterfall(
            amount=amount,
            obligations=[ObligationView.from_model(row) for row in rows],
        )

        for line in result.lines:
            self._store.update(rows_by_id[line.obligation_id], {
                "amount_paid": line.amount_paid,
                "payment_date": paid_at,
                "payment_method": method,
                "status": line.status,
            })

        if result.residual_type is not None and result.residual_amount > 0:
            self._store.insert({
                "lease_id": lease_id,
                "amount": result.residual_amount,
                "amount_paid": result.residual_amount,
                "status": ObligationStatus.PAID,
                "type": result.residual_type,
                "payment_date": paid_at,
                "payment_method": method,
                "original_due_date": first_of_month(paid_at.date()),
                "due_date": paid_at.date(),
                "description": description or _RESIDUAL_DESCRIPTIONS[result.residual_type],
            })

        logger.info(
            "payment_allocated",
            extra={
                "lease_id": str(lease_id),
                "amount": str(amount),
                "obligations_touched": len(result.lines),
                "residual_amount": str(result.residual_amount),
            },
        )
        return result
