"""
Tests for core.persistence.memory and core.concurrency — staged unit of
work and per-key serialization.
"""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from core.concurrency import KeyedLock
from core.errors import ConcurrencyConflict, EntityNotFound
from core.persistence import InMemoryEngineStore
from engines.clients.ledger import Client
from engines.payments.cash_ledger import CashPayment
from engines.payments.payment_engine import PaymentMethod


def _client(client_id="CLI-1", used=0):
    return Client(client_id=client_id, name="Batiplus", credit_ceiling=100000, credit_used=used)


class TestKeyedLock:
    def test_same_key_reentrant(self):
        locks = KeyedLock("Order")
        with locks.hold("BC-1"):
            with locks.hold("BC-1"):
                pass

    def test_idle_keys_evicted(self):
        locks = KeyedLock("Order")
        with locks.hold("BC-1"):
            with locks.hold("BC-2"):
                with locks.hold("BC-1"):
                    assert len(locks) == 2
        assert len(locks) == 0

    def test_timeout_raises_conflict(self):
        locks = KeyedLock("Order", timeout=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("BC-1"):
                held.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(2)
        try:
            with pytest.raises(ConcurrencyConflict):
                with locks.hold("BC-1"):
                    pass
            with locks.hold("BC-2"):
                pass
        finally:
            release.set()
            thread.join()
        assert len(locks) == 0


class TestUnitOfWork:
    def test_missing_entity(self):
        store = InMemoryEngineStore()
        with pytest.raises(EntityNotFound):
            store.get_client("nobody")

    def test_commit_on_clean_exit(self):
        store = InMemoryEngineStore()
        with store.client_transaction("CLI-1"):
            store.save_client(_client())
            assert store.get_client("CLI-1").credit_used == Decimal("0")
        assert store.get_client("CLI-1").name == "Batiplus"

    def test_exception_discards_staged_writes(self):
        store = InMemoryEngineStore()
        store.save_client(_client())
        with pytest.raises(RuntimeError):
            with store.client_transaction("CLI-1"):
                store.save_client(_client(used=5000))
                raise RuntimeError("boom")
        assert store.get_client("CLI-1").credit_used == Decimal("0")

    def test_nested_scopes_commit_together(self):
        store = InMemoryEngineStore()
        with pytest.raises(RuntimeError):
            with store.cash_transaction("CLI-1", "2026-03"):
                with store.client_transaction("CLI-1"):
                    store.save_client(_client())
                raise RuntimeError("outer failed")
        with pytest.raises(EntityNotFound):
            store.get_client("CLI-1")

    def test_nested_scope_keeps_lock_until_outer_commit(self):
        store = InMemoryEngineStore(lock_timeout=0.05)
        inner_done = threading.Event()
        release = threading.Event()

        def cash_then_client():
            with store.cash_transaction("CLI-1", "2026-03"):
                with store.client_transaction("CLI-1"):
                    store.save_client(_client(used=5000))
                inner_done.set()
                release.wait(2)

        thread = threading.Thread(target=cash_then_client)
        thread.start()
        inner_done.wait(2)
        try:
            with pytest.raises(ConcurrencyConflict):
                with store.client_transaction("CLI-1"):
                    pass
            with store.client_transaction("CLI-2"):
                pass
        finally:
            release.set()
            thread.join()
        with store.client_transaction("CLI-1"):
            assert store.get_client("CLI-1").credit_used == Decimal("5000")

    def test_nested_lock_released_when_outer_fails(self):
        store = InMemoryEngineStore(lock_timeout=0.05)
        with pytest.raises(RuntimeError):
            with store.cash_transaction("CLI-1", "2026-03"):
                with store.client_transaction("CLI-1"):
                    pass
                raise RuntimeError("outer failed")

        acquired = []

        def other_thread():
            with store.client_transaction("CLI-1"):
                acquired.append(True)

        thread = threading.Thread(target=other_thread)
        thread.start()
        thread.join()
        assert acquired == [True]

    def test_staged_writes_invisible_to_other_threads(self):
        store = InMemoryEngineStore()
        staged = threading.Event()
        release = threading.Event()
        seen = []

        def writer():
            with store.client_transaction("CLI-1"):
                store.save_client(_client())
                staged.set()
                release.wait(2)

        thread = threading.Thread(target=writer)
        thread.start()
        staged.wait(2)
        try:
            store.get_client("CLI-1")
        except EntityNotFound:
            seen.append("not yet")
        release.set()
        thread.join()
        assert seen == ["not yet"]
        assert store.get_client("CLI-1")


class TestCashTotals:
    def test_month_total_counts_cash_only(self):
        store = InMemoryEngineStore()
        store.append_cash_payment(CashPayment(
            counterparty_id="CLI-1", amount=20000,
            declared_source="site cashier", declared_on=date(2026, 3, 2),
        ))
        store.append_cash_payment(CashPayment(
            counterparty_id="CLI-1", amount=90000,
            declared_source="bank", declared_on=date(2026, 3, 3),
            method=PaymentMethod.TRANSFER,
        ))
        store.append_cash_payment(CashPayment(
            counterparty_id="CLI-1", amount=1000,
            declared_source="site cashier", declared_on=date(2026, 4, 1),
        ))
        assert store.cash_month_total("CLI-1", "2026-03") == Decimal("20000.00")
        assert len(store.list_cash_payments("CLI-1", "2026-03")) == 2
        assert store.cash_month_total("CLI-1", "2026-04") == Decimal("1000.00")

    def test_different_keys_run_in_parallel(self):
        store = InMemoryEngineStore(lock_timeout=1)
        inside = threading.Event()
        release = threading.Event()

        def holder():
            with store.order_transaction("BC-1"):
                inside.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        inside.wait(2)
        started = time.monotonic()
        with store.order_transaction("BC-2"):
            pass
        elapsed = time.monotonic() - started
        release.set()
        thread.join()
        assert elapsed < 0.5
