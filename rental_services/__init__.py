"""
rental_services -- Package init and public API.

Responsibility:
    Orchestration that composes the pure engines (rental_engines/) with the
    kernel store, selectors, locks and clock.  This is the only layer that
    owns transactions.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        rental_services/ -> rental_engines/  (allowed)
        rental_services/ -> rental_kernel/   (allowed)
        rental_services/ -> rental_config/   (allowed)
        rental_engines/  -> rental_services/ (FORBIDDEN)
        rental_kernel/   -> rental_services/ (FORBIDDEN)
"""

from rental_services.duplicate_resolver import DuplicateResolution, DuplicateResolver
from rental_services.manual_payment import ManualPaymentRecorder, ManualPaymentResult
from rental_services.observability import (
    CompositeEventSink,
    LoggingEventSink,
    ReconciliationEvent,
    ReconciliationEventSink,
    RecordingEventSink,
)
from rental_services.payment_allocator import PaymentAllocator
from rental_services.reconciliation_service import (
    DuplicateFixResult,
    LeaseSweepResult,
    PaymentReconciliationService,
    ScheduleSyncResult,
    SweepSummary,
)
from rental_services.schedule_synchronizer import (
    ScheduleSynchronizer,
    ScheduleSyncOutcome,
)

__all__ = [
    "CompositeEventSink",
    "DuplicateFixResult",
    "DuplicateResolution",
    "DuplicateResolver",
    "LeaseSweepResult",
    "LoggingEventSink",
    "ManualPaymentRecorder",
    "ManualPaymentResult",
    "PaymentAllocator",
    "PaymentReconciliationService",
    "ReconciliationEvent",
    "ReconciliationEventSink",
    "RecordingEventSink",
    "ScheduleSyncOutcome",
    "ScheduleSynchronizer",
    "ScheduleSyncResult",
    "SweepSummary",
]
