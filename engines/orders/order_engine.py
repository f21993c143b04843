"""
RMX Order Engine — Purchase Orders and the Volume Ledger
==========================================================
An Order (bon de commande) materializes an approved Quote. Its unit
price is frozen from the quote; its volume ledger tracks what has been
delivered and what remains.

RULES (NON-NEGOTIABLE):
- Only approved quotes become orders (QuoteNotApproved otherwise)
- delivered + remaining == ordered, remaining >= 0, at all times
- VolumeLedger.apply_delivery is the ONLY way the ledger changes
- An order is completed exactly when remaining reaches zero;
  a completed order accepts no deliveries
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional

from core.errors import (
    InvalidInput,
    OrderClosed,
    QuoteNotApproved,
    VolumeExceedsRemaining,
)
from core.primitives.money import ZERO, require_positive, to_decimal
from core.primitives.workflow import ORDER_WORKFLOW
from engines.quotes.quote_engine import Quote, QuoteStatus


class OrderStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


# ══════════════════════════════════════════════════════════════
# VOLUME LEDGER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VolumeLedger:
    ordered: Decimal
    delivered: Decimal = Decimal("0")
    remaining: Optional[Decimal] = None

    def __post_init__(self):
        ordered = require_positive(self.ordered, "ordered")
        delivered = to_decimal(self.delivered, "delivered")
        remaining = (
            ordered - delivered if self.remaining is None
            else to_decimal(self.remaining, "remaining")
        )
        if delivered < ZERO:
            raise InvalidInput("delivered", delivered, "delivered cannot be negative.")
        if remaining < ZERO:
            raise InvalidInput("remaining", remaining, "remaining cannot be negative.")
        if delivered + remaining != ordered:
            raise InvalidInput(
                "remaining", remaining,
                f"Ledger out of balance: delivered {delivered} + remaining "
                f"{remaining} != ordered {ordered}.",
            )
        object.__setattr__(self, "ordered", ordered)
        object.__setattr__(self, "delivered", delivered)
        object.__setattr__(self, "remaining", remaining)

    @property
    def is_exhausted(self) -> bool:
        return self.remaining == ZERO

    def apply_delivery(self, volume, *, order_id: str = "") -> "VolumeLedger":
        amount = require_positive(volume, "volume")
        if amount > self.remaining:
            raise VolumeExceedsRemaining(order_id, amount, self.remaining)
        return VolumeLedger(
            ordered=self.ordered,
            delivered=self.delivered + amount,
            remaining=self.remaining - amount,
        )

    def to_dict(self) -> dict:
        return {
            "ordered": str(self.ordered),
            "delivered": str(self.delivered),
            "remaining": str(self.remaining),
        }


# ══════════════════════════════════════════════════════════════
# ORDER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    order_id: str
    client_id: str
    formula_id: str
    quote_id: str
    unit_price: Decimal
    ledger: VolumeLedger
    status: OrderStatus = OrderStatus.ACTIVE

    def __post_init__(self):
        object.__setattr__(
            self, "unit_price", require_positive(self.unit_price, "unit_price")
        )
        if not isinstance(self.ledger, VolumeLedger):
            raise InvalidInput("ledger", self.ledger, "ledger must be VolumeLedger.")
        if not isinstance(self.status, OrderStatus):
            raise InvalidInput("status", self.status, "status must be OrderStatus.")
        if (self.status == OrderStatus.COMPLETED) != self.ledger.is_exhausted:
            raise InvalidInput(
                "status", self.status.value,
                f"Order '{self.order_id}' is '{self.status.value}' but has "
                f"{self.ledger.remaining} m3 remaining.",
            )

    @property
    def ordered(self) -> Decimal:
        return self.ledger.ordered

    @property
    def delivered(self) -> Decimal:
        return self.ledger.delivered

    @property
    def remaining(self) -> Decimal:
        return self.ledger.remaining

    @property
    def is_closed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "client_id": self.client_id,
            "formula_id": self.formula_id,
            "quote_id": self.quote_id,
            "unit_price": str(self.unit_price),
            "status": self.status.value,
            **self.ledger.to_dict(),
        }


def create_order(quote: Quote, *, order_id: Optional[str] = None) -> Order:
    if quote.status != QuoteStatus.APPROVED:
        raise QuoteNotApproved(quote.quote_id, quote.status.value)
    return Order(
        order_id=order_id or f"BC-{uuid.uuid4().hex[:12].upper()}",
        client_id=quote.client_id,
        formula_id=quote.formula_id,
        quote_id=quote.quote_id,
        unit_price=quote.unit_price,
        ledger=VolumeLedger(ordered=quote.volume_m3),
    )


def apply_delivery(order: Order, volume) -> Order:
    """Return the order with `volume` drawn from its ledger."""
    if order.is_closed:
        raise OrderClosed(order.order_id)
    ledger = order.ledger.apply_delivery(volume, order_id=order.order_id)
    status = OrderStatus.COMPLETED if ledger.is_exhausted else OrderStatus.ACTIVE
    ORDER_WORKFLOW.require_transition(order.status.value, status.value, order.order_id)
    return replace(order, ledger=ledger, status=status)
