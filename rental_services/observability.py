"""
Observability sinks for payment reconciliation.

Every reconciliation step reports what it did as a ``ReconciliationEvent``
to a sink injected into the service.  Nothing is accumulated in module
state, so concurrent reconciliations in one process never share a buffer.

Sinks:
- LoggingEventSink: one structured log line per event, with a stable
  ``observability_event`` field for log pipelines.
- RecordingEventSink: keeps events in memory per instance (tests, admin
  tooling that wants a run report).
- CompositeEventSink: fan-out to several sinks.

Usage:
    sink = CompositeEventSink(LoggingEventSink(), recorder)
    service = PaymentReconciliationService(session, clock=clock, events=sink)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Protocol

from rental_kernel.logging_config import get_logger

logger = get_logger("services.observability")

# Standard event names for filtering in log pipelines
EVENT_DUPLICATES_RESOLVED = "duplicates_resolved"
EVENT_DUPLICATE_FIX_FAILED = "duplicate_fix_failed"
EVENT_SCHEDULE_SYNCHRONIZED = "schedule_synchronized"
EVENT_SCHEDULE_SKIPPED = "schedule_skipped"
EVENT_SCHEDULE_ITEM_FAILED = "schedule_item_failed"
EVENT_PAYMENT_ALLOCATED = "payment_allocated"
EVENT_MANUAL_PAYMENT_RECORDED = "manual_payment_recorded"
EVENT_RECONCILIATION_FAILED = "reconciliation_failed"
EVENT_SWEEP_COMPLETED = "lease_sweep_completed"

_WARNING_EVENTS = frozenset({
    EVENT_DUPLICATE_FIX_FAILED,
    EVENT_SCHEDULE_ITEM_FAILED,
    EVENT_RECONCILIATION_FAILED,
})


@dataclass(frozen=True)
class ReconciliationEvent:
    name: str
    lease_id: str | None = None
    operation: str | None = None
    occurred_at: datetime | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)


class ReconciliationEventSink(Protocol):
    def emit(self, event: ReconciliationEvent) -> None: ...


class LoggingEventSink:
    """Writes each event as one structured log record."""

    def emit(self, event: ReconciliationEvent) -> None:
        payload: dict[str, Any] = {
            "observability_event": event.name,
            **event.fields,
        }
        if event.lease_id is not None:
            payload["lease_id"] = event.lease_id
        if event.operation is not None:
            payload["operation"] = event.operation
        if event.name in _WARNING_EVENTS:
            logger.warning(f"reconciliation_{event.name}", extra=payload)
        else:
            logger.info(f"reconciliation_{event.name}", extra=payload)


class RecordingEventSink:
    """Keeps emitted events in order, per instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[ReconciliationEvent] = []

    def emit(self, event: ReconciliationEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[ReconciliationEvent]:
        with self._lock:
            return list(self._events)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> list[ReconciliationEvent]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CompositeEventSink:
    def __init__(self, *sinks: ReconciliationEventSink):
        self._sinks = tuple(sinks)

    def emit(self, event: ReconciliationEvent) -> None:
        for sink in self._sinks:
            sink.emit(event)


def emit_event(
    sink: ReconciliationEventSink,
    name: str,
    *,
    lease_id: Any = None,
    operation: str | None = None,
    occurred_at: datetime | None = None,
    **fields: Any,
) -> None:
    """Build and emit one event; lease ids are stringified."""
    sink.emit(
        ReconciliationEvent(
            name=name,
            lease_id=str(lease_id) if lease_id is not None else None,
            operation=operation,
            occurred_at=occurred_at,
            fields=fields,
        )
    )
