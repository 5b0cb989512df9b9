"""
Module: rental_kernel.models.payment_obligation
Responsibility: ORM persistence for payment obligations -- the one mutable
    entity the reconciliation core owns.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - balance = max(0, amount - amount_paid), recomputed by
      recompute_balance() on every service write.
    - late_fine_amount is written together with days_overdue, never alone.

Not enforced here:
    - One rent obligation per (lease, month).  Legacy data contains
      duplicates, so there is no unique constraint; DuplicateResolver
      restores the invariant.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.domain.obligation import ObligationStatus, ObligationType


class PaymentObligation(TrackedBase):
    """
    One expected charge (rent, fee, overpayment...) tied to a lease.

    Contract:
        original_due_date is the first-of-month anchor that buckets the
        obligation into "its" month; due_date is the day rent is actually
        due within that month.
    """

    __tablename__ = "payment_obligations"

    __table_args__ = (
        Index("idx_obligation_lease_due", "lease_id", "original_due_date"),
        Index("idx_obligation_lease_status", "lease_id", "status"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leases.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    original_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    payment_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ObligationStatus.PENDING.value,
        nullable=False,
    )

    type: Mapped[str] = mapped_column(
        String(30),
        default=ObligationType.RENT.value,
        nullable=False,
    )

    days_overdue: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    late_fine_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    lease = relationship("Lease", back_populates="obligations", lazy="noload")

    def __repr__(self) -> str:
        return (
            f"<PaymentObligation {self.id} {self.type} "
            f"{self.original_due_date}: {self.status}>"
        )

    def recompute_balance(self) -> Decimal:
        """Set balance from amount and amount_paid, floored at zero."""
        owed = self.amount if self.amount is not None else Decimal("0")
        paid = self.amount_paid if self.amount_paid is not None else Decimal("0")
        remaining = owed - paid
        self.balance = remaining if remaining > 0 else Decimal("0")
        return self.balance
