"""
RMX Persistence — In-Memory Engine Store
==========================================
Dict-backed store for tests, bootstrap and single-process use.

Writes made inside a transaction scope are staged per thread and
applied in one step when the outermost scope exits cleanly; an
exception discards them. Reads inside a scope see the staged writes.
Locks taken by nested scopes are released only after that commit.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple

from core.concurrency.keyed_lock import KeyedLock
from core.errors import EntityNotFound

logger = logging.getLogger("rmx.persistence")

_CASH = "cash"


class InMemoryEngineStore:

    _ID_FIELDS = {
        "Client": "client_id",
        "Quote": "quote_id",
        "Order": "order_id",
        "Delivery": "delivery_id",
        "Invoice": "invoice_id",
    }

    def __init__(self, lock_timeout: Optional[float] = None):
        self._tables: Dict[str, Dict[str, Any]] = {
            name: {} for name in self._ID_FIELDS
        }
        self._cash: Dict[Tuple[str, str], List[Any]] = {}
        self._write_lock = threading.Lock()
        self._local = threading.local()
        self._order_locks = KeyedLock("Order", lock_timeout)
        self._client_locks = KeyedLock("Client", lock_timeout)
        self._cash_locks = KeyedLock("CashLedger", lock_timeout)

    # ══════════════════════════════════════════════════════════
    # UNIT OF WORK
    # ══════════════════════════════════════════════════════════

    def _pending(self) -> Optional[list]:
        return getattr(self._local, "pending", None)

    @contextmanager
    def _scope(self, locks: KeyedLock, key: str) -> Iterator[None]:
        held = getattr(self._local, "held", None)
        if held is not None:
            # nested: the lock stays held until the outermost scope commits
            held.enter_context(locks.hold(key))
            yield
            return
        with ExitStack() as held:
            held.enter_context(locks.hold(key))
            self._local.held = held
            self._local.pending = []
            try:
                yield
                self._commit(self._local.pending)
            finally:
                self._local.pending = None
                self._local.held = None

    def _commit(self, staged: list) -> None:
        with self._write_lock:
            for table, key, value in staged:
                if table == _CASH:
                    self._cash.setdefault(key, []).append(value)
                else:
                    self._tables[table][key] = value
        if staged:
            logger.debug(f"Committed {len(staged)} staged write(s)")

    @contextmanager
    def order_transaction(self, order_id: str) -> Iterator[None]:
        with self._scope(self._order_locks, order_id):
            yield

    @contextmanager
    def client_transaction(self, client_id: str) -> Iterator[None]:
        with self._scope(self._client_locks, client_id):
            yield

    @contextmanager
    def cash_transaction(self, counterparty_id: str, month: str) -> Iterator[None]:
        with self._scope(self._cash_locks, f"{counterparty_id}:{month}"):
            yield

    # ══════════════════════════════════════════════════════════
    # GENERIC ACCESS
    # ══════════════════════════════════════════════════════════

    def _put(self, table: str, key, value) -> None:
        pending = self._pending()
        if pending is not None:
            pending.append((table, key, value))
            return
        with self._write_lock:
            if table == _CASH:
                self._cash.setdefault(key, []).append(value)
            else:
                self._tables[table][key] = value

    def _save(self, table: str, entity) -> None:
        self._put(table, getattr(entity, self._ID_FIELDS[table]), entity)

    def _get(self, table: str, key: str):
        for staged_table, staged_key, value in reversed(self._pending() or []):
            if staged_table == table and staged_key == key:
                return value
        with self._write_lock:
            value = self._tables[table].get(key)
        if value is None:
            raise EntityNotFound(table, key)
        return value

    def _all(self, table: str) -> List[Any]:
        with self._write_lock:
            merged = dict(self._tables[table])
        for staged_table, staged_key, value in self._pending() or []:
            if staged_table == table:
                merged[staged_key] = value
        return [merged[k] for k in sorted(merged)]

    # ══════════════════════════════════════════════════════════
    # ENTITIES
    # ══════════════════════════════════════════════════════════

    def get_client(self, client_id: str):
        return self._get("Client", client_id)

    def save_client(self, client) -> None:
        self._save("Client", client)

    def get_quote(self, quote_id: str):
        return self._get("Quote", quote_id)

    def save_quote(self, quote) -> None:
        self._save("Quote", quote)

    def get_order(self, order_id: str):
        return self._get("Order", order_id)

    def save_order(self, order) -> None:
        self._save("Order", order)

    def list_orders(
        self, *, client_id: Optional[str] = None, quote_id: Optional[str] = None
    ) -> List[Any]:
        return [
            o for o in self._all("Order")
            if (client_id is None or o.client_id == client_id)
            and (quote_id is None or o.quote_id == quote_id)
        ]

    def get_delivery(self, delivery_id: str):
        return self._get("Delivery", delivery_id)

    def save_delivery(self, delivery) -> None:
        self._save("Delivery", delivery)

    def list_deliveries(
        self,
        *,
        order_id: Optional[str] = None,
        client_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ) -> List[Any]:
        return [
            d for d in self._all("Delivery")
            if (order_id is None or d.order_id == order_id)
            and (client_id is None or d.client_id == client_id)
            and (invoice_id is None or d.invoice_id == invoice_id)
        ]

    def get_invoice(self, invoice_id: str):
        return self._get("Invoice", invoice_id)

    def save_invoice(self, invoice) -> None:
        self._save("Invoice", invoice)

    def list_invoices(self, *, client_id: Optional[str] = None) -> List[Any]:
        return [
            i for i in self._all("Invoice")
            if client_id is None or i.client_id == client_id
        ]

    # ══════════════════════════════════════════════════════════
    # CASH LEDGER
    # ══════════════════════════════════════════════════════════

    def list_cash_payments(self, counterparty_id: str, month: str) -> List[Any]:
        key = (counterparty_id, month)
        with self._write_lock:
            records = list(self._cash.get(key, []))
        records.extend(
            value for table, staged_key, value in self._pending() or []
            if table == _CASH and staged_key == key
        )
        return records

    def cash_month_total(self, counterparty_id: str, month: str) -> Decimal:
        return sum(
            (p.amount for p in self.list_cash_payments(counterparty_id, month)
             if p.is_cash),
            Decimal("0"),
        )

    def append_cash_payment(self, payment) -> None:
        self._put(_CASH, (payment.counterparty_id, payment.month), payment)
