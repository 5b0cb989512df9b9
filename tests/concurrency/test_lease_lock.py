"""
Tests for per-lease reconciliation locking.

Verifies:
- Same-lease holders are mutually exclusive
- Different leases do not block each other
- Timeout raises LeaseLockTimeoutError
- Locks are released on exceptions and entries do not leak
- Advisory lock is a no-op off PostgreSQL
"""

import threading
import time
from uuid import uuid4

import pytest

from rental_kernel.exceptions import LeaseLockTimeoutError
from rental_kernel.services.lease_lock import LeaseLockManager, lock_lease_for_transaction


class TestLeaseLockManager:

    def test_acquire_and_release(self):
        manager = LeaseLockManager(timeout_seconds=1.0)
        lease_id = uuid4()

        with manager.acquire(lease_id):
            assert manager.is_locked(lease_id)

        assert not manager.is_locked(lease_id)
        assert manager.tracked_count() == 0

    def test_timeout_when_held(self):
        manager = LeaseLockManager(timeout_seconds=0.05)
        lease_id = uuid4()
        held = threading.Event()
        release = threading.Event()

        def holder():
            with manager.acquire(lease_id):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            with pytest.raises(LeaseLockTimeoutError) as exc_info:
                with manager.acquire(lease_id):
                    pass
            assert exc_info.value.lease_id == str(lease_id)
        finally:
            release.set()
            t.join(5)

        assert manager.tracked_count() == 0

    def test_released_on_exception(self):
        manager = LeaseLockManager(timeout_seconds=0.1)
        lease_id = uuid4()

        with pytest.raises(RuntimeError):
            with manager.acquire(lease_id):
                raise RuntimeError("reconciliation failed")

        with manager.acquire(lease_id):
            pass
        assert manager.tracked_count() == 0

    def test_different_leases_do_not_block(self):
        manager = LeaseLockManager(timeout_seconds=0.1)
        with manager.acquire(uuid4()):
            with manager.acquire(uuid4()):
                assert manager.tracked_count() == 2

    def test_same_lease_serialized_across_threads(self):
        manager = LeaseLockManager(timeout_seconds=5.0)
        lease_id = uuid4()
        inside = 0
        max_inside = 0
        counter_lock = threading.Lock()

        def worker():
            nonlocal inside, max_inside
            with manager.acquire(lease_id):
                with counter_lock:
                    inside += 1
                    max_inside = max(max_inside, inside)
                time.sleep(0.005)
                with counter_lock:
                    inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert max_inside == 1
        assert manager.tracked_count() == 0

    def test_per_call_timeout_override(self):
        manager = LeaseLockManager(timeout_seconds=30.0)
        lease_id = uuid4()
        held = threading.Event()
        release = threading.Event()

        def holder():
            with manager.acquire(lease_id):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            started = time.monotonic()
            with pytest.raises(LeaseLockTimeoutError):
                with manager.acquire(lease_id, timeout_seconds=0.05):
                    pass
            assert time.monotonic() - started < 5
        finally:
            release.set()
            t.join(5)


class TestAdvisoryLock:

    def test_noop_on_sqlite(self, session):
        if session.get_bind().dialect.name == "postgresql":
            pytest.skip("SQLite-only behaviour")
        assert lock_lease_for_transaction(session, uuid4()) is False

    @pytest.mark.postgres
    def test_taken_on_postgres(self, session):
        assert lock_lease_for_transaction(session, uuid4()) is True
