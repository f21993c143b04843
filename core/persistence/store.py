"""
RMX Persistence — Engine Store Protocol
=========================================
What the engine services need from storage: load-by-id, save, a few
scoped listings, the monthly cash ledger, and three serialization scopes.

    order_transaction(order_id)    delivery recording: the Delivery and
                                   the updated Order commit together
    client_transaction(client_id)  credit gate, invoicing, payments
    cash_transaction(cp, month)    monthly cash check + append

Inside a scope, every save commits at the end of the block or not at
all. Scopes on different keys run in parallel. A scope opened inside
another keeps its key locked until the outermost scope commits.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, ContextManager, List, Optional, Protocol


class EngineStore(Protocol):

    # ── Entities ──────────────────────────────────────────────
    def get_client(self, client_id: str) -> Any: ...
    def save_client(self, client: Any) -> None: ...

    def get_quote(self, quote_id: str) -> Any: ...
    def save_quote(self, quote: Any) -> None: ...

    def get_order(self, order_id: str) -> Any: ...
    def save_order(self, order: Any) -> None: ...
    def list_orders(
        self, *, client_id: Optional[str] = None, quote_id: Optional[str] = None
    ) -> List[Any]: ...

    def get_delivery(self, delivery_id: str) -> Any: ...
    def save_delivery(self, delivery: Any) -> None: ...
    def list_deliveries(
        self,
        *,
        order_id: Optional[str] = None,
        client_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ) -> List[Any]: ...

    def get_invoice(self, invoice_id: str) -> Any: ...
    def save_invoice(self, invoice: Any) -> None: ...
    def list_invoices(self, *, client_id: Optional[str] = None) -> List[Any]: ...

    # ── Cash ledger ───────────────────────────────────────────
    def cash_month_total(self, counterparty_id: str, month: str) -> Decimal: ...
    def append_cash_payment(self, payment: Any) -> None: ...
    def list_cash_payments(self, counterparty_id: str, month: str) -> List[Any]: ...

    # ── Serialization scopes ──────────────────────────────────
    def order_transaction(self, order_id: str) -> ContextManager[None]: ...
    def client_transaction(self, client_id: str) -> ContextManager[None]: ...
    def cash_transaction(
        self, counterparty_id: str, month: str
    ) -> ContextManager[None]: ...
