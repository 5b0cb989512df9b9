"""
Rental Kernel - payment obligation persistence and infrastructure.

Provides the building blocks the reconciliation services run on:
- Lease and payment-obligation ORM models
- Decimal money types and rounding
- Injectable clock
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Retrying obligation store and per-lease locking
"""

__version__ = "0.1.0"
