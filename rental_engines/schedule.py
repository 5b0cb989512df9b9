"""
Module: rental_engines.schedule
Responsibility:
    Plan the monthly rent schedule of one lease: which months are missing a
    rent obligation, and which existing ones need their overdue state
    brought current.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The synchronizer service
    applies the returned plan through the obligation store.

Invariants enforced:
    - Months are materialized only inside
      [first_of_month(start), first_of_month(min(end, today))].
    - One planned entry per calendar month; months that already have a rent
      obligation are never planned again, so re-planning after applying a
      plan yields nothing to create.
    - late_fine_amount is always late_fee(days_overdue) for the lease's
      rate and cap.

Failure modes:
    - None raised.  A lease that cannot be scheduled (missing dates,
      missing or non-positive rent, start after end, negative late fee rate
      or cap) yields an empty plan with ``skipped_reason`` set.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from rental_engines.late_fee import days_overdue, is_past_due, late_fee
from rental_engines.tracer import traced_engine
from rental_kernel.domain.dtos import LeaseTerms, MonthKey, ObligationView
from rental_kernel.domain.obligation import ObligationStatus
from rental_kernel.logging_config import get_logger

logger = get_logger("engines.schedule")


def first_of_month(day: date) -> date:
    return date(day.year, day.month, 1)


def add_months(day: date, months: int) -> date:
    """First of the month ``months`` after the month of ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def iter_months(start: date, end: date) -> Iterator[date]:
    """First-of-month dates from start's month through end's month inclusive."""
    current = first_of_month(start)
    last = first_of_month(end)
    while current <= last:
        yield current
        current = add_months(current, 1)


def due_date_for_month(month_start: date, due_day: int) -> date:
    """The due day within a month, clamped to the month's length."""
    days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]
    day = min(max(int(due_day), 1), days_in_month)
    return date(month_start.year, month_start.month, day)


def rent_description(month_start: date) -> str:
    return f"Rent Payment - {month_start:%B %Y}"


@dataclass(frozen=True)
class ScheduleEntry:
    """A rent obligation to create."""

    original_due_date: date
    due_date: date
    amount: Decimal
    status: ObligationStatus
    days_overdue: int
    late_fine_amount: Decimal
    description: str


@dataclass(frozen=True)
class OverdueRefresh:
    """New overdue state for an existing obligation."""

    obligation_id: UUID
    status: ObligationStatus
    days_overdue: int
    late_fine_amount: Decimal


@dataclass(frozen=True)
class SchedulePlan:
    lease_id: UUID
    to_create: tuple[ScheduleEntry, ...] = ()
    to_refresh: tuple[OverdueRefresh, ...] = ()
    window_start: date | None = None
    window_end: date | None = None
    skipped_reason: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_refresh


def _unschedulable_reason(terms: LeaseTerms) -> str | None:
    if not terms.has_schedule_window:
        return "lease has no start or end date"
    if terms.rent_amount is None or terms.rent_amount <= 0:
        return "lease has no positive rent amount"
    if terms.start_date > terms.end_date:
        return "lease starts after it ends"
    if terms.daily_late_fee < 0 or terms.late_fee_cap < 0:
        return "lease has a negative late fee rate or cap"
    return None


def _index_rent_by_month(
    existing: Sequence[ObligationView],
) -> dict[MonthKey, ObligationView]:
    # First occurrence wins; the caller passes obligations in priority or
    # due-date order after duplicate resolution.
    index: dict[MonthKey, ObligationView] = {}
    for view in existing:
        if not view.is_rent or view.month is None:
            continue
        index.setdefault(view.month, view)
    return index


@traced_engine("schedule", "1.0", fingerprint_fields=("terms", "today"))
def plan_schedule(
    *,
    terms: LeaseTerms,
    existing: Sequence[ObligationView],
    today: date,
) -> SchedulePlan:
    """
    Plan rent obligations for every month of the lease up to today.

    Existing rent obligations that are pending or overdue and past their due
    date get a refresh when their status is stale or their day count moved.
    Partially paid and paid obligations are left alone.
    """
    reason = _unschedulable_reason(terms)
    if reason is not None:
        logger.info(
            "schedule_plan_skipped",
            extra={"lease_id": str(terms.lease_id), "reason": reason},
        )
        return SchedulePlan(lease_id=terms.lease_id, skipped_reason=reason)

    window_start = first_of_month(terms.start_date)
    window_end = first_of_month(min(terms.end_date, today))
    by_month = _index_rent_by_month(existing)

    to_create: list[ScheduleEntry] = []
    to_refresh: list[OverdueRefresh] = []

    if window_start <= window_end:
        for month_start in iter_months(window_start, window_end):
            due = due_date_for_month(month_start, terms.rent_due_day)
            current = by_month.get((month_start.year, month_start.month))

            if current is None:
                overdue = is_past_due(due, today)
                days = days_overdue(due, today) if overdue else 0
                to_create.append(
                    ScheduleEntry(
                        original_due_date=month_start,
                        due_date=due,
                        amount=terms.rent_amount,
                        status=(
                            ObligationStatus.OVERDUE if overdue
                            else ObligationStatus.PENDING
                        ),
                        days_overdue=days,
                        late_fine_amount=late_fee(
                            days, terms.daily_late_fee, terms.late_fee_cap,
                        ),
                        description=rent_description(month_start),
                    )
                )
                continue

            if current.status not in (
                ObligationStatus.PENDING, ObligationStatus.OVERDUE,
            ):
                continue

            effective_due = current.due_date or due
            if not is_past_due(effective_due, today):
                continue

            days = days_overdue(effective_due, today)
            stale = current.status is not ObligationStatus.OVERDUE
            if stale or days != current.days_overdue:
                to_refresh.append(
                    OverdueRefresh(
                        obligation_id=current.id,
                        status=ObligationStatus.OVERDUE,
                        days_overdue=days,
                        late_fine_amount=late_fee(
                            days, terms.daily_late_fee, terms.late_fee_cap,
                        ),
                    )
                )

    logger.info(
        "schedule_plan_built",
        extra={
            "lease_id": str(terms.lease_id),
            "window_start": window_start.isoformat(),
            "window_end": window_end.isoformat(),
            "to_create": len(to_create),
            "to_refresh": len(to_refresh),
        },
    )
    return SchedulePlan(
        lease_id=terms.lease_id,
        to_create=tuple(to_create),
        to_refresh=tuple(to_refresh),
        window_start=window_start,
        window_end=window_end,
    )
