"""
DuplicateResolver -- restore one rent obligation per lease-month.

Responsibility:
    Reads every obligation of a lease, asks the duplicates engine which copy
    of each over-populated month survives, moves payment data onto the
    survivor where needed, and deletes the other copies.

Architecture position:
    Services -- imperative shell over rental_engines.duplicates and the
    kernel ObligationStore.

Invariants enforced:
    - After a run with no store failures, no two rent obligations of the
      lease share a (year, month) of original_due_date.
    - Survivor update and copy delete commit together (one savepoint per
      removal), so a failed delete never leaves the payment counted twice.

Failure modes:
    - Store failure while reading the obligations propagates (StoreError).
    - Store failure on a single removal is logged, reported to the event
      sink, and the rest of that month is skipped; other months proceed.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from rental_engines.duplicates import plan_duplicate_resolution
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import ObligationView
from rental_kernel.exceptions import StoreError
from rental_kernel.logging_config import get_logger
from rental_kernel.services.obligation_store import ObligationStore
from rental_services.observability import (
    EVENT_DUPLICATE_FIX_FAILED,
    EVENT_DUPLICATES_RESOLVED,
    LoggingEventSink,
    ReconciliationEventSink,
    emit_event,
)

logger = get_logger("services.duplicate_resolver")


@dataclass(frozen=True)
class DuplicateResolution:
    """
    Outcome of one resolution pass.

    ``failed_count`` counts months whose cleanup stopped at a failed
    removal.  The remaining copies in such a month stay in place until the
    next run; other months are still resolved.
    """

    fixed_count: int
    failed_count: int = 0
    bucket_count: int = 0


class DuplicateResolver:
    """Best-effort removal of duplicate rent obligations."""

    def __init__(
        self,
        store: ObligationStore,
        clock: Clock | None = None,
        events: ReconciliationEventSink | None = None,
    ):
        self._store = store
        self._session = store.session
        self._clock = clock or SystemClock()
        self._events = events or LoggingEventSink()

    def resolve(self, lease_id: UUID) -> DuplicateResolution:
        rows = self._store.select(lease_id)
        rows_by_id = {row.id: row for row in rows}
        plan = plan_duplicate_resolution(
            obligations=[ObligationView.from_model(row) for row in rows],
        )

        fixed = 0
        failed = 0
        for bucket in plan.buckets:
            keeper = rows_by_id[bucket.keep_id]
            for removal in bucket.removals:
                duplicate = rows_by_id[removal.obligation_id]
                try:
                    with self._session.begin_nested():
                        if removal.transfer is not None:
                            self._store.update(keeper, removal.transfer.as_patch())
                        self._store.delete(duplicate)
                except (StoreError, SQLAlchemyError) as exc:
                    failed += 1
                    logger.warning(
                        "duplicate_removal_failed",
                        extra={
                            "lease_id": str(lease_id),
                            "obligation_id": str(removal.obligation_id),
                            "keep_id": str(bucket.keep_id),
                            "error": str(exc),
                        },
                    )
                    emit_event(
                        self._events,
                        EVENT_DUPLICATE_FIX_FAILED,
                        lease_id=lease_id,
                        operation="resolve_duplicates",
                        occurred_at=self._clock.now(),
                        obligation_id=str(removal.obligation_id),
                        month=f"{bucket.month[0]:04d}-{bucket.month[1]:02d}",
                        error=str(exc),
                    )
                    # Later removals in this month may depend on this transfer
                    break
                fixed += 1
                if removal.transfer is not None:
                    logger.info(
                        "duplicate_payment_merged",
                        extra={
                            "lease_id": str(lease_id),
                            "keep_id": str(bucket.keep_id),
                            "duplicate_id": str(removal.obligation_id),
                            "amount_paid": str(removal.transfer.amount_paid),
                        },
                    )

        emit_event(
            self._events,
            EVENT_DUPLICATES_RESOLVED,
            lease_id=lease_id,
            operation="resolve_duplicates",
            occurred_at=self._clock.now(),
            fixed_count=fixed,
            failed_count=failed,
            bucket_count=len(plan.buckets),
        )
        return DuplicateResolution(
            fixed_count=fixed,
            failed_count=failed,
            bucket_count=len(plan.buckets),
        )
