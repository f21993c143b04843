"""
RMX Client Ledger — Application Service
=========================================
Client registration and the credit-gate hook callers run before
committing an order.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.config.rules import EngineConfig
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from engines.clients.events import (
    CLIENT_CREDIT_DENIED,
    CLIENT_REGISTERED,
    build_client_registered_payload,
    build_credit_denied_payload,
)
from engines.clients.ledger import Client
from engines.clients.policies import CreditGateResult, credit_gate

logger = logging.getLogger("rmx.clients")


class ClientService:

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

    def register_client(self, client: Client) -> Client:
        with self._store.client_transaction(client.client_id):
            self._store.save_client(client)
        logger.info(
            f"Client registered: {client.client_id} "
            f"(ceiling {client.credit_ceiling})"
        )
        publish(
            self._subscribers, self._clock, CLIENT_REGISTERED,
            client.client_id, build_client_registered_payload(client),
        )
        return client

    def get_client(self, client_id: str) -> Client:
        return self._store.get_client(client_id)

    def overdue_invoice_count(self, client_id: str) -> int:
        return sum(
            1 for invoice in self._store.list_invoices(client_id=client_id)
            if invoice.is_overdue and not invoice.is_paid
        )

    def check_credit(
        self,
        client_id: str,
        projected_amount,
        *,
        context: str = "order",
    ) -> CreditGateResult:
        """Run the credit gate against the client's current ledger."""
        client = self._store.get_client(client_id)
        result = credit_gate(
            client,
            projected_amount,
            overdue_invoices=self.overdue_invoice_count(client_id),
            max_overdue_invoices=self._config.max_overdue_invoices,
        )
        if not result.allowed:
            logger.warning(f"Credit gate denied {client_id}: {result.reason}")
            publish(
                self._subscribers, self._clock, CLIENT_CREDIT_DENIED,
                client_id, build_credit_denied_payload(result, context),
            )
        return result
