"""Kernel services: obligation persistence, store retries and lease locking."""

from rental_kernel.services.lease_lock import (
    LeaseLockManager,
    default_lock_manager,
    lock_lease_for_transaction,
)
from rental_kernel.services.obligation_store import ObligationStore
from rental_kernel.services.retry_policy import (
    NO_RETRY,
    RetryPolicy,
    is_transient,
    run_with_retry,
)

__all__ = [
    "LeaseLockManager",
    "default_lock_manager",
    "lock_lease_for_transaction",
    "ObligationStore",
    "NO_RETRY",
    "RetryPolicy",
    "is_transient",
    "run_with_retry",
]
