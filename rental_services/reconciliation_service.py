"""
rental_services.reconciliation_service -- public payment reconciliation API.

Responsibility:
    The surface the application layer calls.  Each operation runs as one
    unit of work on one lease:

        per-lease lock -> transaction -> resolve -> (synchronize | allocate
        | record) -> commit

    and returns plain result objects or ObligationView DTOs.

Architecture position:
    Services -- outermost orchestration.  Owns the transaction boundary
    (``auto_commit=True``: commit on success, roll back on failure; with
    ``auto_commit=False`` each call runs in a savepoint and the caller
    commits).  Composes DuplicateResolver, ScheduleSynchronizer,
    PaymentAllocator and ManualPaymentRecorder over one ObligationStore.

Invariants enforced:
    - Reconciliations of the same lease never interleave: an in-process
      per-lease lock plus, on PostgreSQL, a transaction-scoped advisory
      lock.  Both are released on every exit path.
    - Phases run in order: duplicates are resolved before synchronizing,
      allocating or recording.
    - A failed payment reconciliation leaves no partial writes.

Failure modes:
    - resolve_duplicate_payments / synchronize_monthly_obligations never
      raise for domain or store failures; they return success=False with
      a message.
    - reconcile_payment / record_manual_payment raise ReconciliationError
      (StoreError, StoreTimeoutError), LeaseNotFoundError,
      LeaseLockTimeoutError or PaymentError subclasses.

Usage:
    service = PaymentReconciliationService(session, clock=SystemClock())
    obligations = service.reconcile_payment(lease_id, amount=Decimal("700"))
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Generator
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rental_config import ReconciliationConfig, get_active_config
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dtos import ObligationView
from rental_kernel.exceptions import (
    LeaseNotFoundError,
    RentalKernelError,
    StoreError,
)
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.selectors.obligation_selector import (
    LeaseSelector,
    ObligationSelector,
)
from rental_kernel.services.lease_lock import (
    LeaseLockManager,
    default_lock_manager,
    lock_lease_for_transaction,
)
from rental_kernel.services.obligation_store import ObligationStore
from rental_kernel.services.retry_policy import RetryPolicy
from rental_services.duplicate_resolver import DuplicateResolver
from rental_services.inputs import coerce_lease_id
from rental_services.manual_payment import ManualPaymentRecorder, ManualPaymentResult
from rental_services.observability import (
    EVENT_SWEEP_COMPLETED,
    LoggingEventSink,
    ReconciliationEventSink,
    emit_event,
)
from rental_services.payment_allocator import PaymentAllocator
from rental_services.schedule_synchronizer import ScheduleSynchronizer

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class DuplicateFixResult:
    success: bool
    fixed_count: int
    message: str


@dataclass(frozen=True)
class ScheduleSyncResult:
    success: bool
    generated_count: int
    updated_count: int
    message: str


@dataclass(frozen=True)
class LeaseSweepResult:
    lease_id: UUID
    success: bool
    fixed_count: int = 0
    generated_count: int = 0
    updated_count: int = 0
    message: str = ""


@dataclass(frozen=True)
class SweepSummary:
    total: int
    succeeded: int
    failed: int
    generated_count: int
    results: tuple[LeaseSweepResult, ...] = ()


class PaymentReconciliationService:
    """
    Payment reconciliation facade.

    Contract:
        One instance per session.  Instances are cheap; the lock manager is
        shared process-wide unless one is injected.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
        events: ReconciliationEventSink | None = None,
        lock_manager: LeaseLockManager | None = None,
        auto_commit: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._events = events or LoggingEventSink()
        self._locks = lock_manager or default_lock_manager()
        self._lock_timeout = self._config.locking.timeout_seconds
        self._auto_commit = auto_commit

        self._store = ObligationStore(
            session,
            retry_policy=RetryPolicy.from_settings(self._config.store),
            clock=self._clock,
            sleep=sleep,
            monotonic=monotonic,
        )
        self._leases = LeaseSelector(
            session,
            default_due_day=self._config.schedule.default_due_day,
            default_daily_rate=self._config.late_fee.daily_rate,
            default_cap=self._config.late_fee.cap,
        )
        self._obligations = ObligationSelector(session)

        self._resolver = DuplicateResolver(self._store, self._clock, self._events)
        self._synchronizer = ScheduleSynchronizer(
            self._store, self._leases, self._clock, self._events,
        )
        self._allocator = PaymentAllocator(
            self._store,
            self._resolver,
            self._synchronizer,
            self._leases,
            clock=self._clock,
            events=self._events,
            default_method=self._config.payments.default_method,
        )
        self._recorder = ManualPaymentRecorder(
            self._store,
            self._leases,
            clock=self._clock,
            events=self._events,
            default_method=self._config.payments.default_method,
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, lease_id: UUID, operation: str) -> Generator[None, None, None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            lease_id=str(lease_id),
            operation=operation,
        ):
            logger.info("reconciliation_started")
            t0 = time.monotonic()
            with self._locks.acquire(lease_id, timeout_seconds=self._lock_timeout):
                try:
                    if self._auto_commit:
                        try:
                            lock_lease_for_transaction(self._session, lease_id)
                            yield
                            self._session.commit()
                        except Exception:
                            self._session.rollback()
                            raise
                    else:
                        with self._session.begin_nested():
                            lock_lease_for_transaction(self._session, lease_id)
                            yield
                except SQLAlchemyError as exc:
                    logger.error(
                        "reconciliation_failed",
                        extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                        exc_info=True,
                    )
                    raise StoreError(operation, str(exc), lease_id=str(lease_id)) from exc
                except Exception:
                    logger.error(
                        "reconciliation_failed",
                        extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                        exc_info=True,
                    )
                    raise
            logger.info(
                "reconciliation_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )

    def _require_lease(self, lease_id: UUID) -> None:
        if self._leases.get_row(lease_id) is None:
            raise LeaseNotFoundError(str(lease_id))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def resolve_duplicate_payments(self, lease_id: UUID | str) -> DuplicateFixResult:
        """Remove duplicate rent obligations of a lease."""
        try:
            lease_uuid = coerce_lease_id(lease_id)
            with self._unit_of_work(lease_uuid, "resolve_duplicates"):
                self._require_lease(lease_uuid)
                outcome = self._resolver.resolve(lease_uuid)
        except (RentalKernelError, ValueError) as exc:
            return DuplicateFixResult(success=False, fixed_count=0, message=str(exc))

        if outcome.failed_count:
            message = (
                f"Fixed {outcome.fixed_count} duplicate payment record(s); "
                f"{outcome.failed_count} could not be fixed"
            )
        elif outcome.fixed_count:
            message = f"Fixed {outcome.fixed_count} duplicate payment record(s)"
        else:
            message = "No duplicate payment records found"
        return DuplicateFixResult(
            success=outcome.failed_count == 0,
            fixed_count=outcome.fixed_count,
            message=message,
        )

    def synchronize_monthly_obligations(self, lease_id: UUID | str) -> ScheduleSyncResult:
        """Resolve duplicates, then create missing months and age overdue ones."""
        try:
            lease_uuid = coerce_lease_id(lease_id)
            with self._unit_of_work(lease_uuid, "synchronize_schedule"):
                self._require_lease(lease_uuid)
                self._resolver.resolve(lease_uuid)
                outcome = self._synchronizer.synchronize(lease_uuid)
        except (RentalKernelError, ValueError) as exc:
            return ScheduleSyncResult(
                success=False, generated_count=0, updated_count=0, message=str(exc),
            )

        if outcome.skipped_reason is not None:
            message = f"Schedule not synchronized: {outcome.skipped_reason}"
        else:
            message = (
                f"Generated {outcome.generated_count} and updated "
                f"{outcome.updated_count} payment record(s)"
            )
            if outcome.failed_count:
                message += f"; {outcome.failed_count} month(s) failed"
        return ScheduleSyncResult(
            success=outcome.failed_count == 0,
            generated_count=outcome.generated_count,
            updated_count=outcome.updated_count,
            message=message,
        )

    def reconcile_payment(
        self,
        lease: Any,
        amount: Decimal | int | float | str | None = None,
        payment_date: date | datetime | None = None,
        method: str | None = None,
        description: str | None = None,
    ) -> list[ObligationView]:
        """
        Apply a payment oldest obligation first and return all obligations,
        most recent payment first.  Without a positive amount, only refresh
        obligation state.
        """
        lease_uuid = coerce_lease_id(lease)
        with self._unit_of_work(lease_uuid, "reconcile_payment"):
            result = self._allocator.allocate(
                lease_uuid,
                amount=amount,
                payment_date=payment_date,
                method=method,
                description=description,
            )
        return result

    def record_manual_payment(
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
        """Record a hand-entered payment for the month of ``payment_date``."""
        lease_uuid = coerce_lease_id(lease)
        with self._unit_of_work(lease_uuid, "record_manual_payment"):
            self._require_lease(lease_uuid)
            self._resolver.resolve(lease_uuid)
            result = self._recorder.record(
                lease_uuid,
                amount,
                payment_date=payment_date,
                method=method,
                description=description,
                target_obligation_id=target_obligation_id,
                partial=partial,
                include_late_fee=include_late_fee,
                reference_number=reference_number,
                transaction_id=transaction_id,
            )
        return result

    def synchronize_active_leases(self) -> SweepSummary:
        """Resolve and synchronize every active lease, one transaction each."""
        lease_ids = self._leases.list_active_lease_ids()
        if self._auto_commit:
            # End the read transaction before per-lease units of work start
            self._session.commit()

        results: list[LeaseSweepResult] = []
        for lease_id in lease_ids:
            try:
                with self._unit_of_work(lease_id, "sweep_lease"):
                    fixed = self._resolver.resolve(lease_id)
                    synced = self._synchronizer.synchronize(lease_id)
            except (RentalKernelError, ValueError) as exc:
                results.append(LeaseSweepResult(lease_id=lease_id, success=False, message=str(exc)))
                continue
            results.append(
                LeaseSweepResult(
                    lease_id=lease_id,
                    success=fixed.failed_count == 0 and synced.failed_count == 0,
                    fixed_count=fixed.fixed_count,
                    generated_count=synced.generated_count,
                    updated_count=synced.updated_count,
                    message=synced.skipped_reason or "",
                )
            )

        succeeded = sum(1 for r in results if r.success)
        summary = SweepSummary(
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            generated_count=sum(r.generated_count for r in results),
            results=tuple(results),
        )
        emit_event(
            self._events,
            EVENT_SWEEP_COMPLETED,
            operation="synchronize_active_leases",
            occurred_at=self._clock.now(),
            lease_count=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
            generated_count=summary.generated_count,
        )
        return summary

    def list_obligations(self, lease_id: UUID | str) -> list[ObligationView]:
        """All obligations of a lease, most recent payment first."""
        return self._obligations.list_for_display(coerce_lease_id(lease_id))

    def status_label(self, view: ObligationView, legacy: bool = False) -> str | None:
        """Status text for display; ``legacy`` uses the old terminal spelling."""
        if view.status is None:
            return view.raw_status
        return view.status.display_value(
            legacy=legacy,
            terminal_alias=self._config.payments.legacy_terminal_status,
        )
