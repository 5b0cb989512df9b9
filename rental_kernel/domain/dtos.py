"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable views of the two entities the reconciliation core works on:
    ``LeaseTerms`` (the scheduling parameters of a lease) and
    ``ObligationView`` (one payment obligation at a point in time).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked from the
    selector/service layer only.  Engines accept and return DTOs, never ORM
    entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from rental_kernel.domain.obligation import (
    LeaseStatus,
    ObligationStatus,
    ObligationType,
)

if TYPE_CHECKING:
    from rental_kernel.models.lease import Lease as LeaseModel
    from rental_kernel.models.payment_obligation import (
        PaymentObligation as PaymentObligationModel,
    )


MonthKey = tuple[int, int]


def month_key(day: date | datetime | None) -> MonthKey | None:
    """(year, month) bucket of a date, or None."""
    if day is None:
        return None
    return (day.year, day.month)


@dataclass(frozen=True)
class LeaseTerms:
    """
    Scheduling parameters of one lease.

    Contract:
        Immutable snapshot read at the start of a reconciliation phase.
        Per-lease fee columns left empty fall back to configured defaults
        at construction time, so engines never see None for them.
    """

    lease_id: UUID
    start_date: date | None
    end_date: date | None
    rent_amount: Decimal | None
    rent_due_day: int
    daily_late_fee: Decimal
    late_fee_cap: Decimal
    status: LeaseStatus | None = None
    agreement_number: str | None = None

    @property
    def has_schedule_window(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @classmethod
    def from_model(
        cls,
        model: LeaseModel,
        *,
        default_due_day: int = 1,
        default_daily_rate: Decimal = Decimal("120"),
        default_cap: Decimal = Decimal("3000"),
    ) -> LeaseTerms:
        try:
            status = LeaseStatus(model.status) if model.status else None
        except ValueError:
            status = None
        return cls(
            lease_id=model.id,
            start_date=model.start_date,
            end_date=model.end_date,
            rent_amount=model.rent_amount,
            rent_due_day=model.rent_due_day or default_due_day,
            daily_late_fee=(
                model.daily_late_fee
                if model.daily_late_fee is not None
                else default_daily_rate
            ),
            late_fee_cap=(
                model.late_fee_cap
                if model.late_fee_cap is not None
                else default_cap
            ),
            status=status,
            agreement_number=model.agreement_number,
        )


@dataclass(frozen=True)
class ObligationView:
    """
    One payment obligation as read from the store.

    ``status`` is the parsed enum (None when the stored value is not
    recognised); ``raw_status`` keeps the stored spelling.
    """

    id: UUID
    lease_id: UUID
    amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: ObligationStatus | None
    raw_status: str | None
    obligation_type: ObligationType | None
    original_due_date: date | None = None
    due_date: date | None = None
    payment_date: datetime | None = None
    payment_method: str | None = None
    days_overdue: int = 0
    late_fine_amount: Decimal = Decimal("0")
    description: str | None = None
    reference_number: str | None = None
    transaction_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def month(self) -> MonthKey | None:
        """Month bucket by nominal due date."""
        return month_key(self.original_due_date)

    @property
    def has_payment(self) -> bool:
        return self.amount_paid > 0

    @property
    def is_rent(self) -> bool:
        return self.obligation_type is ObligationType.RENT

    @classmethod
    def from_model(cls, model: PaymentObligationModel) -> ObligationView:
        return cls(
            id=model.id,
            lease_id=model.lease_id,
            amount=model.amount if model.amount is not None else Decimal("0"),
            amount_paid=model.amount_paid if model.amount_paid is not None else Decimal("0"),
            balance=model.balance if model.balance is not None else Decimal("0"),
            status=ObligationStatus.parse(model.status),
            raw_status=model.status,
            obligation_type=ObligationType.parse(model.type),
            original_due_date=model.original_due_date,
            due_date=model.due_date,
            payment_date=model.payment_date,
            payment_method=model.payment_method,
            days_overdue=model.days_overdue or 0,
            late_fine_amount=(
                model.late_fine_amount
                if model.late_fine_amount is not None
                else Decimal("0")
            ),
            description=model.description,
            reference_number=model.reference_number,
            transaction_id=model.transaction_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
