"""
Tests for PaymentAllocator against the database.

Verifies:
- Waterfall ordering: oldest nominal due date paid first
- Overpayment and additional payment residual obligations
- Balance invariant on every touched obligation
- Status-only refresh when no positive amount is given
- Store failures propagate as ReconciliationError with an event
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.obligation import ObligationStatus, ObligationType
from rental_kernel.exceptions import LeaseNotFoundError, ReconciliationError, StoreError

PAID_AT = datetime(2024, 4, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def three_months(make_lease, make_obligation):
    lease = make_lease(start_date=date(2024, 1, 1), end_date=date(2024, 3, 31))
    rows = [
        make_obligation(lease, date(2024, month, 1), status=ObligationStatus.OVERDUE)
        for month in (3, 1, 2)
    ]
    return lease, sorted(rows, key=lambda r: r.original_due_date)


def _by_id(views):
    return {v.id: v for v in views}


class TestWaterfall:

    def test_partial_allocation_oldest_first(self, allocator, three_months):
        lease, (jan, feb, mar) = three_months

        views = _by_id(allocator.allocate(lease, Decimal("700"), payment_date=PAID_AT))

        assert views[jan.id].amount_paid == Decimal("500")
        assert views[jan.id].status is ObligationStatus.PAID
        assert views[feb.id].amount_paid == Decimal("200")
        assert views[feb.id].status is ObligationStatus.PARTIALLY_PAID
        assert views[feb.id].balance == Decimal("300")
        assert views[mar.id].amount_paid == Decimal("0")
        assert views[mar.id].status is ObligationStatus.OVERDUE
        assert len(views) == 3

    def test_overpayment_creates_residual(self, allocator, three_months):
        lease, rows = three_months

        views = allocator.allocate(lease, Decimal("1600"), payment_date=PAID_AT, method="bank_transfer")

        rent = [v for v in views if v.is_rent]
        extra = [v for v in views if not v.is_rent]
        assert all(v.status is ObligationStatus.PAID for v in rent)
        assert len(extra) == 1
        residual = extra[0]
        assert residual.obligation_type is ObligationType.OVERPAYMENT
        assert residual.amount == Decimal("100")
        assert residual.amount_paid == Decimal("100")
        assert residual.status is ObligationStatus.PAID
        assert residual.payment_method == "bank_transfer"
        assert residual.original_due_date == date(2024, 4, 1)
        assert residual.due_date == date(2024, 4, 10)
        assert residual.description == "Overpayment"

    def test_nothing_outstanding_creates_additional_payment(self, allocator, make_lease, make_obligation):
        lease = make_lease(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        make_obligation(lease, date(2024, 1, 1), status=ObligationStatus.PAID, amount_paid="500")

        views = allocator.allocate(lease, Decimal("300"), payment_date=PAID_AT, description="Deposit top-up")

        [extra] = [v for v in views if v.obligation_type is ObligationType.ADDITIONAL_PAYMENT]
        assert extra.amount == Decimal("300")
        assert extra.amount_paid == Decimal("300")
        assert extra.status is ObligationStatus.PAID
        assert extra.description == "Deposit top-up"
        assert allocator.last_result.residual_type is ObligationType.ADDITIONAL_PAYMENT

    def test_legacy_completed_rows_not_reallocated(self, allocator, make_lease, make_obligation):
        lease = make_lease(start_date=date(2024, 1, 1), end_date=date(2024, 2, 29))
        done = make_obligation(lease, date(2024, 1, 1), status="completed", amount_paid="500")
        feb = make_obligation(lease, date(2024, 2, 1), status=ObligationStatus.OVERDUE)

        views = _by_id(allocator.allocate(lease, Decimal("500"), payment_date=PAID_AT))

        assert views[done.id].amount_paid == Decimal("500")
        assert views[feb.id].status is ObligationStatus.PAID

    def test_balance_invariant_holds(self, allocator, three_months):
        lease, _ = three_months
        for amount in ("120.50", "333.33", "900"):
            views = allocator.allocate(lease, Decimal(amount), payment_date=PAID_AT)
            for view in views:
                assert view.balance == max(view.amount - view.amount_paid, Decimal("0"))
                assert view.balance >= 0

    def test_defaults_method_and_date(self, allocator, three_months, clock):
        lease, (jan, _, _) = three_months

        views = _by_id(allocator.allocate(lease, Decimal("500")))

        assert views[jan.id].payment_method == "cash"
        assert views[jan.id].payment_date.replace(tzinfo=None) == clock.now().replace(tzinfo=None)

    def test_accepts_lease_mapping_and_string_amount(self, allocator, three_months):
        lease, (jan, _, _) = three_months
        views = _by_id(allocator.allocate({"id": str(lease.id)}, "500.00", payment_date=date(2024, 4, 10)))
        assert views[jan.id].status is ObligationStatus.PAID

    def test_returns_newest_payment_first(self, allocator, three_months, clock):
        lease, (jan, feb, mar) = three_months
        allocator.allocate(lease, Decimal("500"), payment_date=datetime(2024, 4, 1, tzinfo=timezone.utc))

        views = allocator.allocate(lease, Decimal("500"), payment_date=datetime(2024, 4, 12, tzinfo=timezone.utc))

        assert [v.id for v in views] == [feb.id, jan.id, mar.id]

    def test_duplicates_resolved_before_allocation(self, allocator, store, make_lease, make_obligation):
        lease = make_lease(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        make_obligation(lease, date(2024, 1, 1), status=ObligationStatus.OVERDUE)
        make_obligation(lease, date(2024, 1, 1), status=ObligationStatus.OVERDUE)

        views = allocator.allocate(lease, Decimal("1000"), payment_date=PAID_AT)

        rent = [v for v in views if v.is_rent]
        assert len(rent) == 1
        assert rent[0].status is ObligationStatus.PAID
        assert [v.amount for v in views if v.obligation_type is ObligationType.OVERPAYMENT] == [Decimal("500")]

    def test_allocated_event(self, allocator, three_months, recording_sink):
        lease, _ = three_months
        allocator.allocate(lease, Decimal("700"), payment_date=PAID_AT)

        [event] = recording_sink.of("payment_allocated")
        assert event.fields["amount"] == "700.00"
        assert event.fields["obligations_touched"] == 2


class TestRefreshOnly:

    @pytest.mark.parametrize("amount", [None, 0, Decimal("-10")])
    def test_no_positive_amount_only_refreshes(self, allocator, make_lease, amount):
        lease = make_lease(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))

        views = allocator.allocate(lease, amount)

        assert len(views) == 4
        assert all(v.amount_paid == 0 for v in views)
        assert allocator.last_result is None


class TestFailures:

    def test_missing_lease(self, allocator):
        with pytest.raises(LeaseNotFoundError):
            allocator.allocate(uuid4(), Decimal("100"))

    def test_store_failure_propagates(self, allocator, store, three_months, recording_sink, monkeypatch):
        lease, _ = three_months
        original_update = store.update
        calls = []

        def failing_update(row, patch):
            calls.append(row.id)
            if len(calls) == 2:
                raise StoreError("update_obligation", "connection lost", attempts=3, lease_id=str(lease.id))
            return original_update(row, patch)

        monkeypatch.setattr(store, "update", failing_update)

        with pytest.raises(ReconciliationError):
            allocator.allocate(lease, Decimal("700"), payment_date=PAID_AT)

        [event] = recording_sink.of("reconciliation_failed")
        assert event.fields["error_code"] == "STORE_ERROR"
        assert recording_sink.of("payment_allocated") == []

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_amount_rejected(self, allocator, three_months, amount):
        lease, rows = three_months

        with pytest.raises(ValueError, match="finite"):
            allocator.allocate(lease, amount, payment_date=PAID_AT)

        assert all(row.amount_paid == 0 for row in rows)
        assert allocator.last_result is None
