"""
Typed Exception Hierarchy for the Rental Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the UI/API layer, the sweep script) must react to failures without
parsing message strings:
  - Every error has a TYPED exception class (catch by type, not message)
  - Every exception has a CODE attribute (machine-readable, API-safe)
  - Exceptions carry structured DATA (lease id, operation, detail)

Example:
    try:
        service.reconcile_payment(lease, amount=Decimal("700"))
    except LeaseLockTimeoutError as e:
        api_response(code=e.code, lease=e.lease_id)   # ask the user to retry
    except ReconciliationError as e:
        log.error("reconciliation failed", extra={"code": e.code})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RentalKernelError (base)
    |
    +-- ReconciliationError
    |   +-- StoreError
    |       +-- StoreTimeoutError
    |
    +-- LeaseError
    |   +-- LeaseNotFoundError
    |
    +-- PaymentError
    |   +-- InvalidPaymentAmountError
    |   +-- ObligationNotFoundError
    |
    +-- ConcurrencyError
    |   +-- LeaseLockTimeoutError
    |
    +-- ConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Reconciliation  | RECONCILIATION_FAILED       | A reconciliation pass could not finish
                | STORE_ERROR                 | A store read/write failed
                | STORE_TIMEOUT               | Store retries exceeded the deadline
----------------|-----------------------------|-----------------------------------------
Lease           | LEASE_NOT_FOUND             | Lease ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Payment         | INVALID_PAYMENT_AMOUNT      | Manual payment not positive / short
                | OBLIGATION_NOT_FOUND        | Target obligation missing / other lease
----------------|-----------------------------|-----------------------------------------
Concurrency     | LEASE_LOCK_TIMEOUT          | Another reconciliation holds the lease
----------------|-----------------------------|-----------------------------------------
Config          | CONFIG_INVALID              | Configuration file failed validation

===============================================================================
"""


class RentalKernelError(Exception):
    """
    Base exception for all rental kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RENTAL_KERNEL_ERROR"


# Reconciliation exceptions


class ReconciliationError(RentalKernelError):
    """A reconciliation operation failed."""

    code: str = "RECONCILIATION_FAILED"

    def __init__(
        self,
        detail: str,
        lease_id: str | None = None,
        operation: str | None = None,
    ):
        self.detail = detail
        self.lease_id = lease_id
        self.operation = operation
        prefix = f"{operation} failed" if operation else "Reconciliation failed"
        if lease_id:
            prefix = f"{prefix} for lease {lease_id}"
        super().__init__(f"{prefix}: {detail}")


class StoreError(ReconciliationError):
    """A store read or write failed (transport, query or constraint error)."""

    code: str = "STORE_ERROR"

    def __init__(
        self,
        operation: str,
        detail: str,
        attempts: int = 1,
        lease_id: str | None = None,
    ):
        self.attempts = attempts
        super().__init__(detail, lease_id=lease_id, operation=operation)


class StoreTimeoutError(StoreError):
    """Store call did not succeed before its deadline."""

    code: str = "STORE_TIMEOUT"

    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        attempts: int = 1,
        lease_id: str | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            operation,
            f"timed out after {timeout_seconds}s ({attempts} attempt(s))",
            attempts=attempts,
            lease_id=lease_id,
        )


# Lease exceptions


class LeaseError(RentalKernelError):
    """Base exception for lease-related errors."""

    code: str = "LEASE_ERROR"


class LeaseNotFoundError(LeaseError):
    """Lease with given ID was not found."""

    code: str = "LEASE_NOT_FOUND"

    def __init__(self, lease_id: str):
        self.lease_id = lease_id
        super().__init__(f"Lease not found: {lease_id}")


# Payment exceptions


class PaymentError(RentalKernelError):
    """Base exception for payment entry errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentAmountError(PaymentError):
    """Payment amount is not acceptable for the requested entry."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: str, reason: str = "must be positive"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid payment amount {amount}: {reason}")


class ObligationNotFoundError(PaymentError):
    """Obligation does not exist or belongs to another lease."""

    code: str = "OBLIGATION_NOT_FOUND"

    def __init__(self, obligation_id: str, lease_id: str | None = None):
        self.obligation_id = obligation_id
        self.lease_id = lease_id
        super().__init__(f"Payment obligation not found: {obligation_id}")


# Concurrency exceptions


class ConcurrencyError(RentalKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class LeaseLockTimeoutError(ConcurrencyError):
    """Could not acquire the per-lease reconciliation lock in time."""

    code: str = "LEASE_LOCK_TIMEOUT"

    def __init__(self, lease_id: str, timeout_seconds: float):
        self.lease_id = lease_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Lease {lease_id} is locked by another reconciliation "
            f"(waited {timeout_seconds}s)"
        )


# Configuration exceptions


class ConfigError(RentalKernelError):
    """Configuration failed validation."""

    code: str = "CONFIG_INVALID"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for '{field}': {reason}")
