"""Fixtures wiring the reconciliation services over one test session."""

import pytest

from rental_kernel.selectors.obligation_selector import LeaseSelector, ObligationSelector
from rental_services.duplicate_resolver import DuplicateResolver
from rental_services.manual_payment import ManualPaymentRecorder
from rental_services.payment_allocator import PaymentAllocator
from rental_services.reconciliation_service import PaymentReconciliationService
from rental_services.schedule_synchronizer import ScheduleSynchronizer


@pytest.fixture
def leases(session) -> LeaseSelector:
    return LeaseSelector(session)


@pytest.fixture
def obligations(session) -> ObligationSelector:
    return ObligationSelector(session)


@pytest.fixture
def resolver(store, clock, recording_sink) -> DuplicateResolver:
    return DuplicateResolver(store, clock, recording_sink)


@pytest.fixture
def synchronizer(store, leases, clock, recording_sink) -> ScheduleSynchronizer:
    return ScheduleSynchronizer(store, leases, clock, recording_sink)


@pytest.fixture
def allocator(store, resolver, synchronizer, leases, clock, recording_sink) -> PaymentAllocator:
    return PaymentAllocator(store, resolver, synchronizer, leases, clock=clock, events=recording_sink)


@pytest.fixture
def recorder(store, leases, clock, recording_sink) -> ManualPaymentRecorder:
    return ManualPaymentRecorder(store, leases, clock=clock, events=recording_sink)


@pytest.fixture
def service(session, clock, test_config, recording_sink, lock_manager) -> PaymentReconciliationService:
    return PaymentReconciliationService(
        session,
        clock=clock,
        config=test_config,
        events=recording_sink,
        lock_manager=lock_manager,
        sleep=lambda _: None,
    )
