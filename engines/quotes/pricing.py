"""
RMX Quote Engine — Pricing Calculator
=======================================
Theoretical unit cost of a formula (CUT) and the minimum selling price
breakdown used to prepare quotes.

Unit cost per m³:
    cement     kg / 1000 × price per tonne
    sand       kg / 1600 (density) × price per m³
    gravel     kg / 1500 (density) × price per m³
    water      L / 1000 × price per m³
    admixture  L × price per litre

Selling price per m³:
    total cost = unit cost + fixed cost (150) + transport surcharge
    transport  = 5 per km beyond 20 km
    minimum price = total cost / (1 − margin), margin 25%
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from core.errors import InvalidInput
from core.primitives.money import (
    HUNDRED,
    ZERO,
    quantize_money,
    quantize_pct,
    require_non_negative,
    require_positive,
)
from engines.formulas.catalog import Formula

SAND_DENSITY_KG_M3 = Decimal("1600")
GRAVEL_DENSITY_KG_M3 = Decimal("1500")
FIXED_COST_PER_M3 = Decimal("150")
INCLUDED_DISTANCE_KM = Decimal("20")
TRANSPORT_RATE_PER_KM = Decimal("5")
DEFAULT_MARGIN_PCT = Decimal("25")
LEAKAGE_THRESHOLD_PCT = Decimal("5")


@dataclass(frozen=True)
class MaterialPrices:
    cement_per_tonne: Decimal
    sand_per_m3: Decimal
    gravel_per_m3: Decimal
    water_per_m3: Decimal
    admixture_per_litre: Decimal

    def __post_init__(self):
        for name in (
            "cement_per_tonne",
            "sand_per_m3",
            "gravel_per_m3",
            "water_per_m3",
            "admixture_per_litre",
        ):
            object.__setattr__(
                self, name, require_non_negative(getattr(self, name), name)
            )


@dataclass(frozen=True)
class PriceBreakdown:
    unit_cost: Decimal
    fixed_cost_per_m3: Decimal
    transport_cost_per_m3: Decimal
    total_cost_per_m3: Decimal
    margin_pct: Decimal
    minimum_unit_price: Decimal
    volume_m3: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {k: str(v) for k, v in self.__dict__.items()}


def theoretical_unit_cost(formula: Formula, prices: MaterialPrices) -> Decimal:
    cost = (
        formula.cement_kg_per_m3 / 1000 * prices.cement_per_tonne
        + formula.sand_kg_per_m3 / SAND_DENSITY_KG_M3 * prices.sand_per_m3
        + formula.gravel_kg_per_m3 / GRAVEL_DENSITY_KG_M3 * prices.gravel_per_m3
        + formula.water_l_per_m3 / 1000 * prices.water_per_m3
        + formula.admixture_l_per_m3 * prices.admixture_per_litre
    )
    return quantize_money(cost)


def price_breakdown(
    unit_cost,
    volume,
    distance_km=INCLUDED_DISTANCE_KM,
    *,
    margin_pct=DEFAULT_MARGIN_PCT,
    fixed_cost_per_m3=FIXED_COST_PER_M3,
) -> PriceBreakdown:
    cost = require_non_negative(unit_cost, "unit_cost")
    volume_m3 = require_positive(volume, "volume")
    distance = require_non_negative(distance_km, "distance_km")
    margin = require_non_negative(margin_pct, "margin_pct")
    fixed = require_non_negative(fixed_cost_per_m3, "fixed_cost_per_m3")
    if margin >= HUNDRED:
        raise InvalidInput("margin_pct", margin, "margin_pct must be < 100.")

    transport = ZERO
    if distance > INCLUDED_DISTANCE_KM:
        transport = (distance - INCLUDED_DISTANCE_KM) * TRANSPORT_RATE_PER_KM

    total_cost = cost + fixed + transport
    price = total_cost / (1 - margin / HUNDRED)

    return PriceBreakdown(
        unit_cost=cost,
        fixed_cost_per_m3=fixed,
        transport_cost_per_m3=quantize_money(transport),
        total_cost_per_m3=quantize_money(total_cost),
        margin_pct=margin,
        minimum_unit_price=quantize_money(price),
        volume_m3=volume_m3,
        total_amount=quantize_money(price * volume_m3),
    )


def cost_leakage_pct(actual_unit_cost, theoretical_cost) -> Decimal:
    """Percent by which the actual cost exceeds the theoretical one."""
    theoretical = require_non_negative(theoretical_cost, "theoretical_cost")
    actual = require_non_negative(actual_unit_cost, "actual_unit_cost")
    if theoretical == ZERO or actual == ZERO:
        return ZERO
    return quantize_pct((actual - theoretical) / theoretical * HUNDRED)


def is_cost_leaking(
    actual_unit_cost,
    theoretical_cost,
    threshold_pct=LEAKAGE_THRESHOLD_PCT,
) -> bool:
    return cost_leakage_pct(actual_unit_cost, theoretical_cost) > threshold_pct
