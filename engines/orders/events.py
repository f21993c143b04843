"""
RMX Order Engine — Event Types and Payload Builders
=====================================================
"""

from __future__ import annotations

from engines.orders.order_engine import Order

ORDER_CREATED = "orders.order.created"
ORDER_COMPLETED = "orders.order.completed"

ORDER_EVENT_TYPES = (
    ORDER_CREATED,
    ORDER_COMPLETED,
)


def build_order_payload(order: Order) -> dict:
    return order.to_dict()
