"""
Lease locking -- serialize reconciliations of the same lease.

Responsibility:
    Two reconciliations of one lease interleaving their read-modify-write
    cycles can double-apply a payment or resurrect a deleted duplicate.
    Reconciliations of one lease are therefore serialized; different
    leases proceed in parallel.

Architecture position:
    Kernel > Services -- imperative shell infrastructure, used by the
    reconciliation facade only.

Two layers:
    - LeaseLockManager: in-process, one lock per lease id, with a wait
      timeout.  Covers threads of one worker.
    - lock_lease_for_transaction(): on PostgreSQL, a transaction-scoped
      advisory lock keyed by a stable hash of the lease id.  Covers
      separate worker processes.  Released by COMMIT or ROLLBACK.  On
      SQLite the database-level write lock already serializes writers.

Failure modes:
    - LeaseLockTimeoutError: the in-process lock was not obtained within
      the timeout.
    - The advisory lock wait is bounded by the server statement_timeout
      and surfaces as a StoreError.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from rental_kernel.exceptions import LeaseLockTimeoutError
from rental_kernel.logging_config import get_logger
from rental_kernel.utils.hashing import advisory_lock_key

logger = get_logger("services.lease_lock")

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    refs: int = 0


class LeaseLockManager:
    """
    Per-lease mutual exclusion within one process.

    Entries are reference counted and dropped once no thread holds or
    waits for them, so the table does not grow with the number of leases
    ever reconciled.

    The lock is not reentrant: a thread already holding a lease must not
    acquire it again.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def acquire(
        self,
        lease_id: UUID | str,
        timeout_seconds: float | None = None,
    ) -> Generator[None, None, None]:
        key = str(lease_id)
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds

        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.refs += 1

        acquired = False
        try:
            acquired = entry.lock.acquire(timeout=timeout)
            if not acquired:
                logger.warning(
                    "lease_lock_timeout",
                    extra={"lease_id": key, "timeout_seconds": timeout},
                )
                raise LeaseLockTimeoutError(key, timeout)
            logger.debug("lease_lock_acquired", extra={"lease_id": key})
            yield
        finally:
            if acquired:
                entry.lock.release()
                logger.debug("lease_lock_released", extra={"lease_id": key})
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]

    def is_locked(self, lease_id: UUID | str) -> bool:
        with self._guard:
            entry = self._entries.get(str(lease_id))
        return entry is not None and entry.lock.locked()

    def tracked_count(self) -> int:
        """Number of lease ids currently held or waited on."""
        with self._guard:
            return len(self._entries)


_default_manager = LeaseLockManager()


def default_lock_manager() -> LeaseLockManager:
    """Process-wide manager shared by facades that are not given one."""
    return _default_manager


def lock_lease_for_transaction(session: Session, lease_id: UUID | str) -> bool:
    """
    Take the cross-process lease lock for the session's current transaction.

    Returns True when a database lock was taken (PostgreSQL), False when
    the backend needs none.
    """
    bind = session.get_bind()
    if bind.dialect.name != "postgresql":
        return False
    key = advisory_lock_key(lease_id)
    session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
    logger.debug(
        "lease_advisory_lock_acquired",
        extra={"lease_id": str(lease_id), "lock_key": key},
    )
    return True
