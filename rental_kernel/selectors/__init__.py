"""Read-only selectors over leases and payment obligations."""

from rental_kernel.selectors.base import BaseSelector
from rental_kernel.selectors.obligation_selector import (
    LeaseSelector,
    ObligationSelector,
)

__all__ = [
    "BaseSelector",
    "LeaseSelector",
    "ObligationSelector",
]
