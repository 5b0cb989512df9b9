"""
Module: rental_kernel.models.lease
Responsibility: ORM mapping of the lease (rental agreement) row.
Architecture position: Kernel > Models.  May import from db/ and domain/.

The lease table is owned by agreement management.  The reconciliation core
only reads it: start/end dates, rent amount, due day and late-fee policy
parameterize schedule generation.  Nothing in this package writes to it.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_kernel.db.base import TrackedBase
from rental_kernel.domain.obligation import LeaseStatus


class Lease(TrackedBase):
    """
    Rental agreement.

    Guarantees:
        - rent_due_day defaults to the 1st.
        - daily_late_fee / late_fee_cap may be NULL, in which case the
          configured defaults apply (see LeaseTerms.from_model).
    """

    __tablename__ = "leases"

    __table_args__ = (
        Index("idx_lease_status", "status"),
    )

    agreement_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=LeaseStatus.ACTIVE.value,
        nullable=False,
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    rent_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    rent_due_day: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    daily_late_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    late_fee_cap: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    obligations = relationship(
        "PaymentObligation",
        back_populates="lease",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Lease {self.agreement_number or self.id}: {self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == LeaseStatus.ACTIVE.value
