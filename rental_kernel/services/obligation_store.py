"""
ObligationStore -- the only write path for payment obligations.

Responsibility:
    Select, insert, update and delete PaymentObligation rows for the
    reconciliation services.  Every write runs inside its own savepoint
    and under the store retry policy, so a transient failure rolls back
    just that write and the retry starts from a clean state.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - balance is recomputed from amount and amount_paid on every insert
      and on every update touching either field.
    - amount_paid is never negative.

Failure modes:
    - StoreError / StoreTimeoutError from the retry policy.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from rental_kernel.domain.clock import Clock
from rental_kernel.logging_config import get_logger
from rental_kernel.models.payment_obligation import PaymentObligation
from rental_kernel.selectors.obligation_selector import ObligationSelector
from rental_kernel.services.base import BaseService
from rental_kernel.services.retry_policy import RetryPolicy, run_with_retry

logger = get_logger("services.obligation_store")

T = TypeVar("T")

_BALANCE_FIELDS = frozenset({"amount", "amount_paid"})

# Columns a caller may set through insert()/update()
WRITABLE_FIELDS = frozenset({
    "lease_id",
    "amount",
    "amount_paid",
    "original_due_date",
    "due_date",
    "payment_date",
    "payment_method",
    "status",
    "type",
    "days_overdue",
    "late_fine_amount",
    "description",
    "reference_number",
    "transaction_id",
})


def _check_fields(values: dict[str, Any]) -> None:
    unknown = set(values) - WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown obligation fields: {sorted(unknown)}")
    paid = values.get("amount_paid")
    if paid is not None and Decimal(paid) < 0:
        raise ValueError("amount_paid must be non-negative")


class ObligationStore(BaseService):
    """
    Retry-wrapped persistence for payment obligations.

    Contract:
        Callers pass plain dicts of column values.  Enum values may be
        passed as enums; they are stored by value.
    """

    def __init__(
        self,
        session: Session,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        super().__init__(session)
        self._policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._monotonic = monotonic
        self._selector = ObligationSelector(session)

    def _call(self, operation_name: str, fn: Callable[[], T], lease_id: Any) -> T:
        return run_with_retry(
            fn,
            self._policy,
            operation_name,
            lease_id=str(lease_id) if lease_id is not None else None,
            sleep=self._sleep,
            monotonic=self._monotonic,
        )

    def _in_savepoint(self, fn: Callable[[], T]) -> Callable[[], T]:
        def attempt() -> T:
            with self.session.begin_nested():
                return fn()
        return attempt

    # Reads

    def select(self, lease_id: UUID) -> list[PaymentObligation]:
        """All obligations of a lease, oldest nominal due date first."""
        return self._call(
            "select_obligations",
            lambda: self._selector.list_rows(lease_id),
            lease_id,
        )

    def select_outstanding(self, lease_id: UUID) -> list[PaymentObligation]:
        return self._call(
            "select_outstanding_obligations",
            lambda: self._selector.list_outstanding_rows(lease_id),
            lease_id,
        )

    def get(self, obligation_id: UUID) -> PaymentObligation | None:
        return self._call(
            "get_obligation",
            lambda: self._selector.get_row(obligation_id),
            None,
        )

    # Writes

    def insert(self, values: dict[str, Any]) -> PaymentObligation:
        """Create one obligation and flush it."""
        values = {k: getattr(v, "value", v) for k, v in values.items()}
        _check_fields(values)

        def write() -> PaymentObligation:
            row = PaymentObligation(**values)
            if row.amount_paid is None:
                row.amount_paid = Decimal("0")
            if row.late_fine_amount is None:
                row.late_fine_amount = Decimal("0")
            if row.days_overdue is None:
                row.days_overdue = 0
            if self._clock is not None:
                row.created_at = row.updated_at = self._clock.now()
            row.recompute_balance()
            self.session.add(row)
            self.session.flush()
            return row

        row = self._call("insert_obligation", self._in_savepoint(write), values.get("lease_id"))
        logger.debug(
            "obligation_inserted",
            extra={
                "obligation_id": str(row.id),
                "lease_id": str(row.lease_id),
                "obligation_type": row.type,
                "status": row.status,
            },
        )
        return row

    def update(self, row: PaymentObligation, patch: dict[str, Any]) -> PaymentObligation:
        """Apply ``patch`` to ``row`` and flush."""
        patch = {k: getattr(v, "value", v) for k, v in patch.items()}
        _check_fields(patch)

        def write() -> PaymentObligation:
            for field, value in patch.items():
                setattr(row, field, value)
            if _BALANCE_FIELDS & patch.keys():
                row.recompute_balance()
            if self._clock is not None:
                row.updated_at = self._clock.now()
            self.session.flush()
            return row

        self._call("update_obligation", self._in_savepoint(write), row.lease_id)
        logger.debug(
            "obligation_updated",
            extra={
                "obligation_id": str(row.id),
                "lease_id": str(row.lease_id),
                "fields": sorted(patch),
            },
        )
        return row

    def delete(self, row: PaymentObligation) -> None:
        obligation_id, lease_id = row.id, row.lease_id

        def write() -> None:
            self.session.delete(row)
            self.session.flush()

        self._call("delete_obligation", self._in_savepoint(write), lease_id)
        logger.debug(
            "obligation_deleted",
            extra={"obligation_id": str(obligation_id), "lease_id": str(lease_id)},
        )
