"""
RMX Core Config — Engine Rules
================================
Doctrine: No business threshold is hardcoded in engine logic.
Cement bands, tolerances, vehicle capacity, tax rate, credit terms
and cash-control ceilings are admin-configurable data, injected into
engines as an EngineConfig.

RULES (NON-NEGOTIABLE):
- EngineConfig is frozen and validated at construction
- Unknown option names are rejected, never ignored
- Bands are closed intervals (min <= max)
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from core.errors import InvalidInput
from core.primitives.money import to_decimal


class CreditGateMode(Enum):
    """Whether order creation consults the client credit gate."""

    ADVISORY = "advisory"
    ENFORCED = "enforced"


Band = Tuple[Decimal, Decimal]


def _band(value: Any, name: str) -> Band:
    try:
        low, high = value
    except (TypeError, ValueError):
        raise InvalidInput(name, value, f"{name} must be a (min, max) pair.")
    low = to_decimal(low, name)
    high = to_decimal(high, name)
    if low > high:
        raise InvalidInput(
            name, value, f"{name} min ({low}) must be <= max ({high})."
        )
    return (low, high)


# ══════════════════════════════════════════════════════════════
# ENGINE CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EngineConfig:
    """
    Tunable thresholds for the order-to-cash engine.

    Numeric fields accept int/float/str and are normalized to Decimal.
    """

    cement_band_kg: Band = (Decimal("200"), Decimal("500"))
    water_cement_ratio_band: Band = (Decimal("0.35"), Decimal("0.65"))
    delivery_variance_tolerance_pct: Decimal = Decimal("5.0")
    max_vehicle_volume_m3: Decimal = Decimal("12")
    default_tax_rate_pct: Decimal = Decimal("20")
    default_payment_term_days: int = 30
    cash_monthly_ceiling: Decimal = Decimal("50000")
    cash_penalty_rate_pct: Decimal = Decimal("6")
    stamp_duty_rate_pct: Decimal = Decimal("0.25")
    cash_single_payment_ceiling: Decimal = Decimal("50000")
    cash_warning_amount: Decimal = Decimal("10000")
    cash_warning_ratio: Decimal = Decimal("0.8")
    credit_gate_mode: CreditGateMode = CreditGateMode.ADVISORY
    invoice_requires_technical_validation: bool = False
    max_overdue_invoices: Optional[int] = None

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "cement_band_kg", _band(self.cement_band_kg, "cement_band_kg"))
        set_(self, "water_cement_ratio_band", _band(
            self.water_cement_ratio_band, "water_cement_ratio_band"
        ))

        for name in (
            "delivery_variance_tolerance_pct",
            "default_tax_rate_pct",
            "cash_penalty_rate_pct",
            "stamp_duty_rate_pct",
            "cash_warning_amount",
        ):
            value = to_decimal(getattr(self, name), name)
            if value < 0:
                raise InvalidInput(name, value, f"{name} cannot be negative.")
            set_(self, name, value)

        for name in (
            "max_vehicle_volume_m3",
            "cash_monthly_ceiling",
            "cash_single_payment_ceiling",
        ):
            value = to_decimal(getattr(self, name), name)
            if value <= 0:
                raise InvalidInput(name, value, f"{name} must be > 0.")
            set_(self, name, value)

        ratio = to_decimal(self.cash_warning_ratio, "cash_warning_ratio")
        if not 0 < ratio <= 1:
            raise InvalidInput(
                "cash_warning_ratio", ratio,
                "cash_warning_ratio must be in (0, 1].",
            )
        set_(self, "cash_warning_ratio", ratio)

        if (
            isinstance(self.default_payment_term_days, bool)
            or not isinstance(self.default_payment_term_days, int)
            or self.default_payment_term_days < 0
        ):
            raise InvalidInput(
                "default_payment_term_days", self.default_payment_term_days,
                "default_payment_term_days must be a non-negative int.",
            )

        if not isinstance(self.invoice_requires_technical_validation, bool):
            raise InvalidInput(
                "invoice_requires_technical_validation",
                self.invoice_requires_technical_validation,
                "invoice_requires_technical_validation must be a bool.",
            )

        if self.max_overdue_invoices is not None and (
            isinstance(self.max_overdue_invoices, bool)
            or not isinstance(self.max_overdue_invoices, int)
            or self.max_overdue_invoices < 1
        ):
            raise InvalidInput(
                "max_overdue_invoices", self.max_overdue_invoices,
                "max_overdue_invoices must be a positive int or None.",
            )

        if not isinstance(self.credit_gate_mode, CreditGateMode):
            try:
                mode = CreditGateMode(self.credit_gate_mode)
            except ValueError:
                raise InvalidInput(
                    "credit_gate_mode", self.credit_gate_mode,
                    f"credit_gate_mode must be one of "
                    f"{sorted(m.value for m in CreditGateMode)}.",
                )
            set_(self, "credit_gate_mode", mode)

    @property
    def credit_gate_enforced(self) -> bool:
        return self.credit_gate_mode == CreditGateMode.ENFORCED

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "EngineConfig":
        """
        Build from recognised option names (camelCase or field names).

        Raises InvalidInput for any unknown key.
        """
        kwargs = {}
        for key, value in options.items():
            name = OPTION_NAMES.get(key)
            if name is None:
                raise InvalidInput(
                    key, value, f"Unknown engine option '{key}'."
                )
            kwargs[name] = value
        return cls(**kwargs)

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        return replace(self, **changes)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


_FIELD_NAMES = tuple(f.name for f in fields(EngineConfig))

# cementBandKg, maxVehicleVolumeM3, ... and the snake_case field names
OPTION_NAMES = {
    **{_camel(name): name for name in _FIELD_NAMES},
    **{name: name for name in _FIELD_NAMES},
}
