"""Pure domain layer: clock, obligation vocabulary and DTOs."""

from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rental_kernel.domain.dtos import LeaseTerms, ObligationView, month_key
from rental_kernel.domain.obligation import (
    LeaseStatus,
    ObligationStatus,
    ObligationType,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "LeaseTerms",
    "ObligationView",
    "month_key",
    "LeaseStatus",
    "ObligationStatus",
    "ObligationType",
]
