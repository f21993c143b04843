"""
RMX Delivery Engine — Event Types and Payload Builders
========================================================
"""

from __future__ import annotations

from core.config.rules import EngineConfig
from engines.deliveries.delivery_engine import Delivery
from engines.orders.order_engine import Order

DELIVERY_RECORDED = "deliveries.delivery.recorded"
DELIVERY_VARIANCE_FLAGGED = "deliveries.delivery.variance_flagged"

DELIVERY_EVENT_TYPES = (
    DELIVERY_RECORDED,
    DELIVERY_VARIANCE_FLAGGED,
)


def build_delivery_recorded_payload(delivery: Delivery, order: Order) -> dict:
    payload = delivery.to_dict()
    payload.update({
        "order_delivered": str(order.delivered),
        "order_remaining": str(order.remaining),
        "order_status": order.status.value,
    })
    return payload


def build_variance_flagged_payload(delivery: Delivery, config: EngineConfig) -> dict:
    return {
        "delivery_id": delivery.delivery_id,
        "order_id": delivery.order_id,
        "formula_id": delivery.formula_id,
        "actual_cement_kg": str(delivery.actual_cement_kg),
        "theoretical_cement_kg": str(delivery.theoretical_cement_kg),
        "variance_pct": str(delivery.variance_pct),
        "tolerance_pct": str(config.delivery_variance_tolerance_pct),
    }
