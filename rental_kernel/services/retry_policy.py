"""
Store retry policy -- bounded retries with exponential backoff.

Responsibility:
    Wraps a single store call so that transient database failures (lock
    timeouts, cancelled statements, deadlocks, pool exhaustion) are retried
    a bounded number of times, while every other failure surfaces at once
    as a typed ``StoreError``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Used by
    ObligationStore; the sleep and monotonic functions are injectable so
    tests never wait on a real clock.

Invariants enforced:
    - At most ``max_attempts`` calls of the wrapped operation.
    - No retry is started once ``timeout_seconds`` has elapsed since the
      first attempt; the call then fails with ``StoreTimeoutError``.
    - Delay before attempt n+1 is
      ``min(base_delay * multiplier ** (n - 1), max_delay)``, clipped to
      the time left before the deadline.

Failure modes:
    - StoreTimeoutError: deadline passed with the operation still failing.
    - StoreError: non-transient failure, or transient failures exhausted
      the attempt budget.
    - Exceptions that are not SQLAlchemy errors propagate unchanged.

Not retried:
    - A DBAPIError whose connection was invalidated.  The enclosing
      transaction is gone with the connection, so only the caller that
      owns the transaction can start over.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy import exc as sa_exc

from rental_kernel.exceptions import StoreError, StoreTimeoutError
from rental_kernel.logging_config import get_logger

logger = get_logger("services.retry_policy")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for one store call."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 4.0
    timeout_seconds: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("delays must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        delay = self.base_delay_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay_seconds)

    @classmethod
    def from_settings(cls, settings) -> RetryPolicy:
        """Build from a ``StoreRetrySettings`` config section."""
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.base_delay_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            max_delay_seconds=settings.max_delay_seconds,
            timeout_seconds=settings.timeout_seconds,
        )


NO_RETRY = RetryPolicy(max_attempts=1, base_delay_seconds=0.0, max_delay_seconds=0.0)


def is_transient(error: BaseException) -> bool:
    """True for database failures worth retrying inside the transaction."""
    if isinstance(error, sa_exc.TimeoutError):
        return True
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return False
    return isinstance(error, sa_exc.OperationalError)


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    operation_name: str,
    lease_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> T:
    """
    Run ``operation`` under ``policy``.

    Args:
        operation: Zero-argument callable performing one store call.  It
            must be safe to repeat after a failure (ObligationStore runs
            each attempt inside its own savepoint).
        policy: Retry budget.
        operation_name: Name used in logs and raised errors.
        lease_id: Lease being reconciled, for logs and errors.
        sleep: Injectable sleep.
        monotonic: Injectable monotonic clock.

    Returns:
        Whatever ``operation`` returns.
    """
    started = monotonic()
    attempt = 0
    while True:
        attempt += 1
        try:
            result = operation()
        except sa_exc.SQLAlchemyError as error:
            elapsed = monotonic() - started
            if not is_transient(error):
                logger.error(
                    "store_call_failed",
                    extra={
                        "operation": operation_name,
                        "lease_id": lease_id,
                        "attempt": attempt,
                        "error_type": type(error).__name__,
                        "transient": False,
                    },
                )
                raise StoreError(
                    operation_name, str(error), attempts=attempt, lease_id=lease_id,
                ) from error

            remaining = policy.timeout_seconds - elapsed
            if remaining <= 0:
                logger.error(
                    "store_call_timed_out",
                    extra={
                        "operation": operation_name,
                        "lease_id": lease_id,
                        "attempts": attempt,
                        "elapsed_seconds": round(elapsed, 3),
                    },
                )
                raise StoreTimeoutError(
                    operation_name, policy.timeout_seconds,
                    attempts=attempt, lease_id=lease_id,
                ) from error

            if attempt >= policy.max_attempts:
                logger.error(
                    "store_retries_exhausted",
                    extra={
                        "operation": operation_name,
                        "lease_id": lease_id,
                        "attempts": attempt,
                        "error_type": type(error).__name__,
                    },
                )
                raise StoreError(
                    operation_name, str(error), attempts=attempt, lease_id=lease_id,
                ) from error

            delay = min(policy.delay_for(attempt), remaining)
            logger.warning(
                "store_call_retrying",
                extra={
                    "operation": operation_name,
                    "lease_id": lease_id,
                    "attempt": attempt,
                    "delay_seconds": round(delay, 3),
                    "error_type": type(error).__name__,
                },
            )
            sleep(delay)
        else:
            if attempt > 1:
                logger.info(
                    "store_call_recovered",
                    extra={
                        "operation": operation_name,
                        "lease_id": lease_id,
                        "attempts": attempt,
                    },
                )
            return result
