"""
RMX Delivery Engine — Rotations and Material Variance
=======================================================
Records one vehicle's drop-off (bon de livraison) against an order,
draws the volume from the order's ledger and grades the batch by
comparing actual cement consumption against the formula.

    theoretical = formula cement per m³ × volume
    variance %  = (actual − theoretical) / theoretical × 100  (2 dp)
    technical   = |variance| <= tolerance (default 5.0)

Checks, in order:
    1. OrderClosed             order already completed
    2. VolumeOutOfRange        volume <= 0 or above vehicle capacity
    3. VolumeExceedsRemaining  volume above the order's remaining

RULES (NON-NEGOTIABLE):
- Returns (Delivery, Order) together; callers persist both in ONE
  per-order transaction or neither
- A delivery's lines are immutable; only payment status and the
  billing reference change afterwards
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from core.config.rules import EngineConfig
from core.errors import InvalidInput, OrderClosed, VolumeOutOfRange
from core.primitives.money import (
    HUNDRED,
    ZERO,
    quantize_money,
    quantize_pct,
    require_non_negative,
    require_volume,
    to_decimal,
)
from engines.formulas.catalog import Formula
from engines.orders.order_engine import Order, apply_delivery


class PaymentStatus(Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


# ══════════════════════════════════════════════════════════════
# DELIVERY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Delivery:
    delivery_id: str
    order_id: str
    client_id: str
    formula_id: str
    volume_m3: Decimal
    unit_price: Decimal
    actual_cement_kg: Decimal
    theoretical_cement_kg: Decimal
    variance_pct: Decimal
    technical_validated: bool
    delivered_on: Optional[date] = None
    actual_admixture_l: Optional[Decimal] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    invoice_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.payment_status, PaymentStatus):
            raise InvalidInput(
                "payment_status", self.payment_status,
                "payment_status must be PaymentStatus.",
            )

    @property
    def is_billed(self) -> bool:
        return self.invoice_id is not None

    @property
    def line_amount(self) -> Decimal:
        return quantize_money(self.volume_m3 * self.unit_price)

    def to_dict(self) -> dict:
        return {
            "delivery_id": self.delivery_id,
            "order_id": self.order_id,
            "client_id": self.client_id,
            "formula_id": self.formula_id,
            "volume_m3": str(self.volume_m3),
            "unit_price": str(self.unit_price),
            "actual_cement_kg": str(self.actual_cement_kg),
            "theoretical_cement_kg": str(self.theoretical_cement_kg),
            "variance_pct": str(self.variance_pct),
            "technical_validated": self.technical_validated,
            "delivered_on": self.delivered_on.isoformat() if self.delivered_on else None,
            "actual_admixture_l": (
                str(self.actual_admixture_l)
                if self.actual_admixture_l is not None else None
            ),
            "payment_status": self.payment_status.value,
            "invoice_id": self.invoice_id,
        }


# ══════════════════════════════════════════════════════════════
# VARIANCE
# ══════════════════════════════════════════════════════════════

def compute_variance_pct(actual, theoretical) -> Decimal:
    actual = require_non_negative(actual, "actual")
    theoretical = to_decimal(theoretical, "theoretical")
    if theoretical <= ZERO:
        raise InvalidInput(
            "theoretical", theoretical, "theoretical mass must be > 0."
        )
    return quantize_pct((actual - theoretical) / theoretical * HUNDRED)


def within_tolerance(variance_pct, tolerance_pct) -> bool:
    return abs(to_decimal(variance_pct)) <= to_decimal(tolerance_pct)


# ══════════════════════════════════════════════════════════════
# RECORD DELIVERY
# ══════════════════════════════════════════════════════════════

def record_delivery(
    order: Order,
    volume,
    actual_cement_kg,
    formula: Formula,
    config: Optional[EngineConfig] = None,
    *,
    delivered_on: Optional[date] = None,
    actual_admixture_l=None,
    delivery_id: Optional[str] = None,
) -> Tuple[Delivery, Order]:
    config = config or EngineConfig()

    if order.is_closed:
        raise OrderClosed(order.order_id)

    requested = to_decimal(volume, "volume")
    if requested <= ZERO or requested > config.max_vehicle_volume_m3:
        raise VolumeOutOfRange(requested, config.max_vehicle_volume_m3)
    amount = require_volume(requested, "volume")

    if formula.formula_id != order.formula_id:
        raise InvalidInput(
            "formula_id", formula.formula_id,
            f"Order '{order.order_id}' is for formula '{order.formula_id}'.",
        )
    actual = require_non_negative(actual_cement_kg, "actual_cement_kg")
    admixture = (
        None if actual_admixture_l is None
        else require_non_negative(actual_admixture_l, "actual_admixture_l")
    )

    updated_order = apply_delivery(order, amount)

    theoretical = formula.theoretical_cement_kg(amount)
    variance = compute_variance_pct(actual, theoretical)

    delivery = Delivery(
        delivery_id=delivery_id or f"BL-{uuid.uuid4().hex[:12].upper()}",
        order_id=order.order_id,
        client_id=order.client_id,
        formula_id=order.formula_id,
        volume_m3=amount,
        unit_price=order.unit_price,
        actual_cement_kg=actual,
        theoretical_cement_kg=theoretical,
        variance_pct=variance,
        technical_validated=within_tolerance(
            variance, config.delivery_variance_tolerance_pct
        ),
        delivered_on=delivered_on,
        actual_admixture_l=admixture,
    )
    return delivery, updated_order


def with_payment_status(delivery: Delivery, status: PaymentStatus) -> Delivery:
    return replace(delivery, payment_status=status)
