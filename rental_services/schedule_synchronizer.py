"""
ScheduleSynchronizer -- materialize and age the monthly rent schedule.

Responsibility:
    Creates the rent obligation of every lease month from the start month
    through the current month that does not have one yet, and brings the
    overdue state (status, days overdue, late fee) of existing pending or
    overdue obligations up to date.

Architecture position:
    Services -- imperative shell over rental_engines.schedule and the
    kernel ObligationStore.  Expects DuplicateResolver to have run first in
    the same invocation.

Failure modes:
    - LeaseNotFoundError when the lease does not exist.
    - Store failure while reading propagates (StoreError).
    - Store failure on one month is logged and reported, that month is
      skipped, and the run continues.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from rental_engines.duplicates import priority_key
from rental_engines.schedule import plan_schedule
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import ObligationView
from rental_kernel.domain.obligation import ObligationType
from rental_kernel.exceptions import StoreError
from rental_kernel.logging_config import get_logger
from rental_kernel.selectors.obligation_selector import LeaseSelector
from rental_kernel.services.obligation_store import ObligationStore
from rental_services.observability import (
    EVENT_SCHEDULE_ITEM_FAILED,
    EVENT_SCHEDULE_SKIPPED,
    EVENT_SCHEDULE_SYNCHRONIZED,
    LoggingEventSink,
    ReconciliationEventSink,
    emit_event,
)

logger = get_logger("services.schedule_synchronizer")


@dataclass(frozen=True)
class ScheduleSyncOutcome:
    generated_count: int
    updated_count: int
    failed_count: int = 0
    skipped_reason: str | None = None


class ScheduleSynchronizer:
    """Best-effort monthly schedule maintenance for one lease."""

    def __init__(
        self,
        store: ObligationStore,
        leases: LeaseSelector,
        clock: Clock | None = None,
        events: ReconciliationEventSink | None = None,
    ):
        self._store = store
        self._leases = leases
        self._clock = clock or SystemClock()
        self._events = events or LoggingEventSink()

    def synchronize(self, lease_id: UUID) -> ScheduleSyncOutcome:
        terms = self._leases.get_terms(lease_id)
        rows = self._store.select(lease_id)
        rows_by_id = {row.id: row for row in rows}
        existing = sorted(
            (ObligationView.from_model(row) for row in rows),
            key=priority_key,
        )
        today = self._clock.today()

        plan = plan_schedule(terms=terms, existing=existing, today=today)
        if plan.skipped_reason is not None:
            emit_event(
                self._events,
                EVENT_SCHEDULE_SKIPPED,
                lease_id=lease_id,
                operation="synchronize_schedule",
                occurred_at=self._clock.now(),
                reason=plan.skipped_reason,
            )
            return ScheduleSyncOutcome(0, 0, skipped_reason=plan.skipped_reason)

        generated = 0
        updated = 0
        failed = 0

        for entry in plan.to_create:
            try:
                self._store.insert({
                    "lease_id": lease_id,
                    "amount": entry.amount,
                    "amount_paid": Decimal("0"),
                    "original_due_date": entry.original_due_date,
                    "due_date": entry.due_date,
                    "status": entry.status,
                    "type": ObligationType.RENT,
                    "days_overdue": entry.days_overdue,
                    "late_fine_amount": entry.late_fine_amount,
                    "description": entry.description,
                })
            except StoreError as exc:
                failed += 1
                self._report_failure(lease_id, "create", entry.original_due_date, exc)
                continue
            generated += 1

        for refresh in plan.to_refresh:
            row = rows_by_id[refresh.obligation_id]
            month = row.original_due_date
            try:
                self._store.update(row, {
                    "status": refresh.status,
                    "days_overdue": refresh.days_overdue,
                    "late_fine_amount": refresh.late_fine_amount,
                })
            except StoreError as exc:
                failed += 1
                self._report_failure(lease_id, "refresh", month, exc)
                continue
            updated += 1

        emit_event(
            self._events,
            EVENT_SCHEDULE_SYNCHRONIZED,
            lease_id=lease_id,
            operation="synchronize_schedule",
            occurred_at=self._clock.now(),
            generated_count=generated,
            updated_count=updated,
            failed_count=failed,
            as_of=today.isoformat(),
        )
        return ScheduleSyncOutcome(generated, updated, failed)

    def _report_failure(self, lease_id, action: str, month, exc: StoreError) -> None:
        month_label = month.strftime("%Y-%m") if month is not None else None
        logger.warning(
            "schedule_item_failed",
            extra={
                "lease_id": str(lease_id),
                "action": action,
                "month": month_label,
                "error": str(exc),
            },
        )
        emit_event(
            self._events,
            EVENT_SCHEDULE_ITEM_FAILED,
            lease_id=lease_id,
            operation="synchronize_schedule",
            occurred_at=self._clock.now(),
            action=action,
            month=month_label,
            error=str(exc),
        )
