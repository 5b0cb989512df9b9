"""
Module: rental_kernel.selectors.obligation_selector
Responsibility: Read paths over leases and payment obligations.
Architecture position: Kernel > Selectors.

Orderings:
    - list_for_lease: original_due_date ascending, NULLs last, then id.
    - list_outstanding: same ordering, restricted to pending / partially
      paid / overdue (legacy spellings included).
    - list_for_display: payment_date descending, NULLs last.

The *_rows variants return ORM rows for services that mutate them; the
plain variants return ObligationView DTOs.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.orm import Session

from rental_kernel.domain.dtos import LeaseTerms, ObligationView
from rental_kernel.domain.obligation import (
    LEGACY_STATUS_ALIASES,
    OUTSTANDING_STATUSES,
    LeaseStatus,
)
from rental_kernel.exceptions import LeaseNotFoundError
from rental_kernel.logging_config import get_logger
from rental_kernel.models.lease import Lease
from rental_kernel.models.payment_obligation import PaymentObligation
from rental_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.obligation")


def _outstanding_spellings() -> list[str]:
    spellings = {status.value for status in OUTSTANDING_STATUSES}
    spellings.update(
        alias for alias, status in LEGACY_STATUS_ALIASES.items()
        if status in OUTSTANDING_STATUSES
    )
    return sorted(spellings)


def _nulls_last(column):
    # Portable NULLS LAST (SQLite has no NULLS LAST before 3.30)
    return case((column.is_(None), 1), else_=0)


class LeaseSelector(BaseSelector):
    """Reads lease scheduling parameters."""

    def __init__(
        self,
        session: Session,
        default_due_day: int = 1,
        default_daily_rate=None,
        default_cap=None,
    ):
        super().__init__(session)
        self._defaults = {"default_due_day": default_due_day}
        if default_daily_rate is not None:
            self._defaults["default_daily_rate"] = default_daily_rate
        if default_cap is not None:
            self._defaults["default_cap"] = default_cap

    def get_row(self, lease_id: UUID) -> Lease | None:
        return self.session.get(Lease, lease_id)

    def get_terms(self, lease_id: UUID) -> LeaseTerms:
        """Load lease terms.

        Raises:
            LeaseNotFoundError: No lease with this id.
        """
        lease = self.get_row(lease_id)
        if lease is None:
            raise LeaseNotFoundError(str(lease_id))
        return LeaseTerms.from_model(lease, **self._defaults)

    def list_active_lease_ids(self) -> list[UUID]:
        """Ids of active leases that have both a start and an end date."""
        stmt = (
            select(Lease.id)
            .where(Lease.status == LeaseStatus.ACTIVE.value)
            .where(Lease.start_date.is_not(None))
            .where(Lease.end_date.is_not(None))
            .order_by(Lease.start_date, Lease.id)
        )
        return list(self.session.scalars(stmt))


class ObligationSelector(BaseSelector):
    """Reads payment obligations of one lease."""

    def _base(self, lease_id: UUID):
        return select(PaymentObligation).where(PaymentObligation.lease_id == lease_id)

    def list_rows(self, lease_id: UUID) -> list[PaymentObligation]:
        stmt = self._base(lease_id).order_by(
            _nulls_last(PaymentObligation.original_due_date),
            PaymentObligation.original_due_date.asc(),
            PaymentObligation.created_at.asc(),
            PaymentObligation.id.asc(),
        )
        return list(self.session.scalars(stmt))

    def list_outstanding_rows(self, lease_id: UUID) -> list[PaymentObligation]:
        stmt = (
            self._base(lease_id)
            .where(PaymentObligation.status.in_(_outstanding_spellings()))
            .order_by(
                _nulls_last(PaymentObligation.original_due_date),
                PaymentObligation.original_due_date.asc(),
                PaymentObligation.created_at.asc(),
                PaymentObligation.id.asc(),
            )
        )
        return list(self.session.scalars(stmt))

    def get_row(self, obligation_id: UUID) -> PaymentObligation | None:
        return self.session.get(PaymentObligation, obligation_id)

    def list_for_lease(self, lease_id: UUID) -> list[ObligationView]:
        return [ObligationView.from_model(row) for row in self.list_rows(lease_id)]

    def list_outstanding(self, lease_id: UUID) -> list[ObligationView]:
        return [
            ObligationView.from_model(row)
            for row in self.list_outstanding_rows(lease_id)
        ]

    def list_for_display(self, lease_id: UUID) -> list[ObligationView]:
        """All obligations, most recent payment first, unpaid last."""
        stmt = self._base(lease_id).order_by(
            _nulls_last(PaymentObligation.payment_date),
            PaymentObligation.payment_date.desc(),
            _nulls_last(PaymentObligation.original_due_date),
            PaymentObligation.original_due_date.desc(),
            PaymentObligation.id.asc(),
        )
        rows = list(self.session.scalars(stmt))
        logger.debug(
            "obligations_listed",
            extra={"lease_id": str(lease_id), "count": len(rows)},
        )
        return [ObligationView.from_model(row) for row in rows]
