"""
RMX Delivery Engine — Application Service
===========================================
Records deliveries inside the store's per-order transaction: the order
is re-read under the lock, the Delivery and the updated Order are
saved together, and only then are subscribers notified.

Deliveries against one order are serialized; different orders proceed
in parallel.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Tuple

from core.config.rules import EngineConfig
from core.events import SubscriberRegistry, publish
from core.time.clock import Clock, get_default_clock
from engines.deliveries import delivery_engine
from engines.deliveries.delivery_engine import Delivery
from engines.deliveries.events import (
    DELIVERY_RECORDED,
    DELIVERY_VARIANCE_FLAGGED,
    build_delivery_recorded_payload,
    build_variance_flagged_payload,
)
from engines.formulas.catalog import FormulaRegistry
from engines.orders.events import ORDER_COMPLETED, build_order_payload
from engines.orders.order_engine import Order

logger = logging.getLogger("rmx.deliveries")


class DeliveryService:

    def __init__(
        self,
        store,
        formulas: FormulaRegistry,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        subscribers: Optional[SubscriberRegistry] = None,
    ):
        self._store = store
        self._formulas = formulas
        self._config = config or EngineConfig()
        self._clock = clock or get_default_clock()
        self._subscribers = subscribers

    def record_delivery(
        self,
        order_id: str,
        volume,
        actual_cement_kg,
        *,
        delivered_on: Optional[date] = None,
        actual_admixture_l=None,
        delivery_id: Optional[str] = None,
    ) -> Tuple[Delivery, Order]:
        with self._store.order_transaction(order_id):
            order = self._store.get_order(order_id)
            formula = self._formulas.get(order.formula_id)
            delivery, updated = delivery_engine.record_delivery(
                order,
                volume,
                actual_cement_kg,
                formula,
                self._config,
                delivered_on=delivered_on or self._clock.today(),
                actual_admixture_l=actual_admixture_l,
                delivery_id=delivery_id,
            )
            self._store.save_delivery(delivery)
            self._store.save_order(updated)

        logger.info(
            f"Delivery {delivery.delivery_id} recorded on {order_id}: "
            f"{delivery.volume_m3} m3, remaining {updated.remaining} m3"
        )
        publish(
            self._subscribers, self._clock, DELIVERY_RECORDED,
            delivery.delivery_id, build_delivery_recorded_payload(delivery, updated),
        )

        if not delivery.technical_validated:
            logger.warning(
                f"Delivery {delivery.delivery_id} cement variance "
                f"{delivery.variance_pct}% exceeds "
                f"{self._config.delivery_variance_tolerance_pct}%"
            )
            publish(
                self._subscribers, self._clock, DELIVERY_VARIANCE_FLAGGED,
                delivery.delivery_id,
                build_variance_flagged_payload(delivery, self._config),
            )

        if updated.is_closed:
            logger.info(f"Order {order_id} completed ({updated.ordered} m3 delivered)")
            publish(
                self._subscribers, self._clock, ORDER_COMPLETED,
                order_id, build_order_payload(updated),
            )

        return delivery, updated

    def deliveries_for_order(self, order_id: str) -> List[Delivery]:
        return self._store.list_deliveries(order_id=order_id)
