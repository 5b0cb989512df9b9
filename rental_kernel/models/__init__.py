"""ORM models for the rental kernel."""

from rental_kernel.models.lease import Lease
from rental_kernel.models.payment_obligation import PaymentObligation

__all__ = [
    "Lease",
    "PaymentObligation",
]
