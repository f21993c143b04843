"""
RMX Quote Engine — Two-Step Validation Handshake
==================================================
A quote is a priced proposal. It becomes actionable only after a
technical sign-off (formula within bands) FOLLOWED BY an administrative
sign-off.

    draft ──validate_technical──▶ technically_approved
      │                                │
      │                      validate_administrative
      │                                ▼
      └──────── reject ────────▶ rejected      approved

RULES (NON-NEGOTIABLE):
- Every transition takes the current Quote and returns the next one
  or raises; the input snapshot is never modified
- administrative_validated implies technical_validated (checked at
  construction, so no snapshot can violate it)
- approved and rejected are terminal
- net = volume × unit_price; total = net × (1 + tax/100), both rounded
  to cents
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from core.config.rules import EngineConfig
from core.errors import FormulaOutOfSpec, InvalidInput, SequenceViolation
from core.primitives.money import (
    HUNDRED,
    quantize_money,
    require_non_negative,
    require_positive,
    require_volume,
)
from core.primitives.workflow import QUOTE_WORKFLOW, StateTransition
from engines.clients.ledger import Client
from engines.formulas.catalog import Formula


class QuoteStatus(Enum):
    DRAFT = "draft"
    TECHNICALLY_APPROVED = "technically_approved"
    APPROVED = "approved"
    REJECTED = "rejected"


# ══════════════════════════════════════════════════════════════
# QUOTE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Quote:
    quote_id: str
    client_id: str
    formula_id: str
    volume_m3: Decimal
    unit_price: Decimal
    tax_rate_pct: Decimal
    net_amount: Decimal
    total_amount: Decimal
    status: QuoteStatus = QuoteStatus.DRAFT
    technical_validated: bool = False
    administrative_validated: bool = False
    rejection_reason: str = ""
    history: Tuple[StateTransition, ...] = ()

    def __post_init__(self):
        if not isinstance(self.status, QuoteStatus):
            raise InvalidInput(
                "status", self.status, "status must be QuoteStatus."
            )
        if self.administrative_validated and not self.technical_validated:
            raise SequenceViolation(
                f"Quote '{self.quote_id}'",
                self.status.value,
                QuoteStatus.APPROVED.value,
                "Administrative validation requires prior technical validation.",
            )
        if self.status == QuoteStatus.DRAFT and self.technical_validated:
            raise InvalidInput(
                "status", self.status.value,
                "A draft quote cannot carry a technical validation.",
            )
        if self.status == QuoteStatus.TECHNICALLY_APPROVED and not self.technical_validated:
            raise InvalidInput(
                "technical_validated", False,
                "technically_approved requires technical_validated.",
            )
        if (self.status == QuoteStatus.APPROVED) != self.administrative_validated:
            raise InvalidInput(
                "administrative_validated", self.administrative_validated,
                "Only approved quotes carry the administrative validation.",
            )

    @property
    def is_terminal(self) -> bool:
        return QUOTE_WORKFLOW.is_terminal(self.status.value)

    @property
    def tax_amount(self) -> Decimal:
        return self.total_amount - self.net_amount

    def to_dict(self) -> dict:
        return {
            "quote_id": self.quote_id,
            "client_id": self.client_id,
            "formula_id": self.formula_id,
            "volume_m3": str(self.volume_m3),
            "unit_price": str(self.unit_price),
            "tax_rate_pct": str(self.tax_rate_pct),
            "net_amount": str(self.net_amount),
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "technical_validated": self.technical_validated,
            "administrative_validated": self.administrative_validated,
            "rejection_reason": self.rejection_reason,
            "history": [t.to_dict() for t in self.history],
        }


# ══════════════════════════════════════════════════════════════
# TRANSITIONS
# ══════════════════════════════════════════════════════════════

def create_quote(
    client: Client,
    formula: Formula,
    volume,
    unit_price,
    tax_rate_pct=Decimal("20"),
    *,
    quote_id: Optional[str] = None,
) -> Quote:
    volume_m3 = require_volume(volume, "volume")
    price = require_positive(unit_price, "unit_price")
    tax = require_non_negative(tax_rate_pct, "tax_rate_pct")

    net = quantize_money(volume_m3 * price)
    total = quantize_money(net * (1 + tax / HUNDRED))

    return Quote(
        quote_id=quote_id or f"DEV-{uuid.uuid4().hex[:12].upper()}",
        client_id=client.client_id,
        formula_id=formula.formula_id,
        volume_m3=volume_m3,
        unit_price=price,
        tax_rate_pct=tax,
        net_amount=net,
        total_amount=total,
    )


def check_formula_bands(formula: Formula, config: EngineConfig) -> None:
    """Raise FormulaOutOfSpec on the first band the formula violates."""
    low, high = config.cement_band_kg
    if not low <= formula.cement_kg_per_m3 <= high:
        raise FormulaOutOfSpec(
            formula.formula_id, "cement_kg_per_m3",
            formula.cement_kg_per_m3, low, high,
        )
    low, high = config.water_cement_ratio_band
    ratio = formula.water_cement_ratio
    if not low <= ratio <= high:
        raise FormulaOutOfSpec(
            formula.formula_id, "water_cement_ratio", ratio, low, high,
        )


def validate_technical(
    quote: Quote,
    formula: Formula,
    config: Optional[EngineConfig] = None,
    *,
    actor_id: str = "system",
    at: Optional[datetime] = None,
) -> Quote:
    config = config or EngineConfig()
    target = QuoteStatus.TECHNICALLY_APPROVED
    QUOTE_WORKFLOW.require_transition(quote.status.value, target.value, quote.quote_id)

    if formula.formula_id != quote.formula_id:
        raise InvalidInput(
            "formula_id", formula.formula_id,
            f"Quote '{quote.quote_id}' was priced for formula "
            f"'{quote.formula_id}', not '{formula.formula_id}'.",
        )
    check_formula_bands(formula, config)

    record = QUOTE_WORKFLOW.record(
        quote.status.value, target.value, quote.quote_id, actor_id, at,
    )
    return replace(
        quote,
        status=target,
        technical_validated=True,
        history=quote.history + (record,),
    )


def validate_administrative(
    quote: Quote,
    *,
    actor_id: str = "system",
    at: Optional[datetime] = None,
) -> Quote:
    target = QuoteStatus.APPROVED
    if not quote.technical_validated:
        raise SequenceViolation(
            f"Quote '{quote.quote_id}'",
            quote.status.value,
            target.value,
            f"Quote '{quote.quote_id}' needs technical validation "
            f"before administrative validation.",
        )
    record = QUOTE_WORKFLOW.record(
        quote.status.value, target.value, quote.quote_id, actor_id, at,
    )
    return replace(
        quote,
        status=target,
        administrative_validated=True,
        history=quote.history + (record,),
    )


def reject(
    quote: Quote,
    reason: str,
    *,
    actor_id: str = "system",
    at: Optional[datetime] = None,
) -> Quote:
    if not reason or not reason.strip():
        raise InvalidInput("reason", reason, "A rejection reason is required.")
    target = QuoteStatus.REJECTED
    record = QUOTE_WORKFLOW.record(
        quote.status.value, target.value, quote.quote_id, actor_id, at, reason,
    )
    return replace(
        quote,
        status=target,
        rejection_reason=reason.strip(),
        history=quote.history + (record,),
    )
