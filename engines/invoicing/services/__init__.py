"""
RMX Invoicing Engine — Application Service
============================================
Invoices are generated under the client scope: the deliveries are
re-read under the lock, the invoice and the billed deliveries are saved
together, so two concurrent requests cannot bill one delivery twice.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from core.config.rules import EngineConfig
from core.errors import InvalidInput, MixedClientDeliveries
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from engines.invoicing import invoice_engine
from engines.invoicing.events import (
    INVOICE_ISSUED,
    INVOICE_OVERDUE,
    build_invoice_issued_payload,
    build_invoice_overdue_payload,
)
from engines.invoicing.invoice_engine import Invoice

logger = logging.getLogger("rmx.invoicing")


class InvoiceService:

    def __init__(
        self,
        store,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        subscribers: Optional[SubscriberRegistry] = None,
    ):
        self._store = store
        self._config = config or EngineConfig()
        self._clock = clock or get_default_clock()
        self._subscribers = subscribers

    def generate_invoice(
        self,
        delivery_ids: Sequence[str],
        *,
        payment_term_days: Optional[int] = None,
        tax_rate_pct=None,
        issued_on: Optional[date] = None,
        invoice_id: Optional[str] = None,
    ) -> Invoice:
        if not delivery_ids:
            raise InvalidInput("delivery_ids", [], "At least one delivery is required.")

        client_ids = {self._store.get_delivery(d).client_id for d in delivery_ids}
        if len(client_ids) > 1:
            raise MixedClientDeliveries(client_ids)
        client_id = client_ids.pop()

        with self._store.client_transaction(client_id):
            client = self._store.get_client(client_id)
            deliveries = [self._store.get_delivery(d) for d in delivery_ids]
            invoice = invoice_engine.generate_invoice(
                deliveries,
                issued_on or self._clock.today(),
                client.payment_term_days if payment_term_days is None else payment_term_days,
                self._config.default_tax_rate_pct if tax_rate_pct is None else tax_rate_pct,
                invoice_id=invoice_id,
                require_technical_validation=(
                    self._config.invoice_requires_technical_validation
                ),
            )
            self._store.save_invoice(invoice)
            for delivery in deliveries:
                self._store.save_delivery(
                    invoice_engine.mark_billed(delivery, invoice.invoice_id)
                )

        logger.info(
            f"Invoice {invoice.invoice_id} issued to {client_id}: "
            f"{len(deliveries)} deliveries, total {invoice.total_amount}, "
            f"due {invoice.due_on.isoformat()}"
        )
        publish(
            self._subscribers, self._clock, INVOICE_ISSUED,
            invoice.invoice_id, build_invoice_issued_payload(invoice),
        )
        return invoice

    def refresh_overdue(
        self,
        as_of: Optional[date] = None,
        *,
        client_id: Optional[str] = None,
    ) -> List[Invoice]:
        """
        Recompute overdue counters; return invoices that newly fell overdue.

        Intended for a daily batch. Each client is updated under its scope.
        """
        today = as_of or self._clock.today()
        if client_id is not None:
            client_ids = [client_id]
        else:
            client_ids = sorted({i.client_id for i in self._store.list_invoices()})

        newly_overdue = []
        for cid in client_ids:
            with self._store.client_transaction(cid):
                for invoice in self._store.list_invoices(client_id=cid):
                    refreshed = invoice_engine.refresh_overdue(invoice, today)
                    if refreshed is invoice:
                        continue
                    self._store.save_invoice(refreshed)
                    if refreshed.is_overdue and not invoice.is_overdue:
                        newly_overdue.append(refreshed)

        for invoice in newly_overdue:
            logger.warning(
                f"Invoice {invoice.invoice_id} overdue by "
                f"{invoice.days_overdue} days ({invoice.client_id})"
            )
            publish(
                self._subscribers, self._clock, INVOICE_OVERDUE,
                invoice.invoice_id, build_invoice_overdue_payload(invoice),
            )
        return newly_overdue

    def get_invoice(self, invoice_id: str) -> Invoice:
        return self._store.get_invoice(invoice_id)
