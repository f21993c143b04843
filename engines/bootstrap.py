"""
RMX Bootstrap — Engine Wiring
===============================
Builds the order-to-cash services around one store, one formula
catalog, one configuration, one clock and one subscriber registry.

The formula registry is locked here: after bootstrap the catalog is
read-only. Without an explicit config, RMX_ENGINE from Django settings
applies (defaults when Django is not configured).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.config.loader import default_engine_config
from core.config.rules import EngineConfig
from core.events import SubscriberRegistry
from core.persistence.memory import InMemoryEngineStore
from core.persistence.store import EngineStore
from core.time.clock import Clock, get_default_clock
from engines.clients.services import ClientService
from engines.deliveries.services import DeliveryService
from engines.formulas.catalog import FormulaRegistry, build_standard_registry
from engines.invoicing.services import InvoiceService
from engines.orders.services import OrderService
from engines.payments.services import PaymentService
from engines.quotes.services import QuoteService

logger = logging.getLogger("rmx.bootstrap")


@dataclass(frozen=True)
class Engine:
    store: EngineStore
    formulas: FormulaRegistry
    config: EngineConfig
    clock: Clock
    subscribers: SubscriberRegistry
    clients: ClientService
    quotes: QuoteService
    orders: OrderService
    deliveries: DeliveryService
    invoicing: InvoiceService
    payments: PaymentService


def build_engine(
    store: Optional[EngineStore] = None,
    *,
    formulas: Optional[FormulaRegistry] = None,
    config: Optional[EngineConfig] = None,
    clock: Optional[Clock] = None,
    subscribers: Optional[SubscriberRegistry] = None,
) -> Engine:
    store = store if store is not None else InMemoryEngineStore()
    formulas = formulas if formulas is not None else build_standard_registry()
    formulas.lock()
    config = config if config is not None else default_engine_config()
    clock = clock or get_default_clock()
    subscribers = subscribers if subscribers is not None else SubscriberRegistry()

    clients = ClientService(store, config, clock, subscribers)
    engine = Engine(
        store=store,
        formulas=formulas,
        config=config,
        clock=clock,
        subscribers=subscribers,
        clients=clients,
        quotes=QuoteService(store, formulas, config, clock, subscribers),
        orders=OrderService(store, config, clock, subscribers, clients),
        deliveries=DeliveryService(store, formulas, config, clock, subscribers),
        invoicing=InvoiceService(store, config, clock, subscribers),
        payments=PaymentService(store, config, clock, subscribers),
    )
    logger.info(
        f"Engine built: {type(store).__name__}, {len(formulas)} formulas, "
        f"credit gate {config.credit_gate_mode.value}"
    )
    return engine
