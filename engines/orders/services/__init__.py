"""
RMX Order Engine — Application Service
========================================
Turns approved quotes into orders.

Credit gate modes:
    advisory  the gate is exposed (check_credit) but create_order does
              not consult it; callers decide
    enforced  create_order runs the gate under the client scope with
              the quote's tax-inclusive total and raises
              CreditLimitExceeded on denial
"""

from __future__ import annotations

import logging
from typing import Optional

from core.config.rules import EngineConfig
from core.errors import CreditLimitExceeded, SequenceViolation
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from engines.clients.policies import CreditGateResult
from engines.clients.services import ClientService
from engines.orders import order_engine
from engines.orders.events import ORDER_CREATED, build_order_payload
from engines.orders.order_engine import Order

logger = logging.getLogger("rmx.orders")


class OrderService:

    def __init__(
        self,
        store,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        subscribers: Optional[SubscriberRegistry] = None,
        clients: Optional[ClientService] = None,
    ):
        self._store = store
        self._config = config or EngineConfig()
        self._clock = clock or get_default_clock()
        self._subscribers = subscribers
        self._clients = clients or ClientService(
            store, self._config, self._clock, subscribers
        )

    def check_credit(self, client_id: str, projected_amount) -> CreditGateResult:
        """Precondition hook: run before create_order in advisory mode."""
        return self._clients.check_credit(client_id, projected_amount)

    def create_order(self, quote_id: str, *, order_id: Optional[str] = None) -> Order:
        client_id = self._store.get_quote(quote_id).client_id
        with self._store.client_transaction(client_id):
            quote = self._store.get_quote(quote_id)
            existing = self._store.list_orders(quote_id=quote_id)
            if existing:
                raise SequenceViolation(
                    f"Quote '{quote_id}'", quote.status.value, "ordered",
                    f"Quote '{quote_id}' already produced order "
                    f"'{existing[0].order_id}'.",
                )
            order = order_engine.create_order(quote, order_id=order_id)

            if self._config.credit_gate_enforced:
                gate = self._clients.check_credit(client_id, quote.total_amount)
                if not gate.allowed:
                    raise CreditLimitExceeded(
                        client_id, gate.projected_usage,
                        gate.credit_ceiling, gate.overage,
                    )
            self._store.save_order(order)

        logger.info(
            f"Order created: {order.order_id} from quote {quote_id} "
            f"({order.ordered} m3 at {order.unit_price})"
        )
        publish(
            self._subscribers, self._clock, ORDER_CREATED,
            order.order_id, build_order_payload(order),
        )
        return order

    def get_order(self, order_id: str) -> Order:
        return self._store.get_order(order_id)
