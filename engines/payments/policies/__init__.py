"""
RMX Payment Engine — Cash Compliance Policy
=============================================
Statutory control of cash payments to a counterparty within one
calendar month.

    new total = prior month total + new amount
    within ceiling  → allowed, no penalty
    above ceiling   → excess      = new total − ceiling
                      penalty     = excess × penalty rate (6%)
                      stamp duty  = new amount × stamp duty rate (0.25%)
                      total cost  = penalty + stamp duty
                      flagged: a human with elevated authority may
                      override and proceed with the cost acknowledged

A single cash payment above the single-payment ceiling must go by bank
transfer. Transfers and checks are never subject to this policy.
A prior month total already at warning ratio × ceiling (40,000 by
default) or more carries an "approaching the ceiling" warning.

cash_compliance_check is a pure function: same inputs, same result,
usable by interactive posting and end-of-day reconciliation alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from core.errors import OverrideNotAuthorized
from core.primitives.money import (
    percent_of,
    quantize_money,
    require_money,
    require_non_negative,
    require_positive,
    to_decimal,
)

DEFAULT_PENALTY_RATE_PCT = Decimal("6")
DEFAULT_STAMP_DUTY_RATE_PCT = Decimal("0.25")

ELEVATED_AUTHORITIES = frozenset({"ceo", "supervisor"})
MIN_OVERRIDE_REASON_LENGTH = 10


# ══════════════════════════════════════════════════════════════
# COMPLIANCE RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CashComplianceResult:
    prior_total: Decimal
    new_amount: Decimal
    new_monthly_total: Decimal
    monthly_ceiling: Decimal
    excess: Decimal = Decimal("0")
    penalty: Decimal = Decimal("0")
    stamp_duty: Decimal = Decimal("0")
    total_penalty_cost: Decimal = Decimal("0")
    penalty_applicable: bool = False
    requires_transfer: bool = False
    warnings: Tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        """True when the payment may proceed without an override."""
        return not self.penalty_applicable and not self.requires_transfer

    @property
    def flagged(self) -> bool:
        return self.penalty_applicable

    @property
    def requires_override(self) -> bool:
        return self.penalty_applicable

    def to_dict(self) -> dict:
        return {
            "prior_total": str(self.prior_total),
            "new_amount": str(self.new_amount),
            "new_monthly_total": str(self.new_monthly_total),
            "monthly_ceiling": str(self.monthly_ceiling),
            "excess": str(self.excess),
            "penalty": str(self.penalty),
            "stamp_duty": str(self.stamp_duty),
            "total_penalty_cost": str(self.total_penalty_cost),
            "penalty_applicable": self.penalty_applicable,
            "requires_override": self.requires_override,
            "requires_transfer": self.requires_transfer,
            "allowed": self.allowed,
            "warnings": list(self.warnings),
        }


def cash_compliance_check(
    prior_total,
    new_amount,
    monthly_ceiling,
    penalty_rate_pct=DEFAULT_PENALTY_RATE_PCT,
    stamp_duty_rate_pct=DEFAULT_STAMP_DUTY_RATE_PCT,
    *,
    single_payment_ceiling=None,
    warning_amount=None,
    warning_ratio=None,
) -> CashComplianceResult:
    prior = quantize_money(require_non_negative(prior_total, "prior_total"))
    amount = require_money(new_amount, "new_amount")
    ceiling = quantize_money(require_positive(monthly_ceiling, "monthly_ceiling"))
    new_total = prior + amount

    warnings = []
    requires_transfer = False
    if single_payment_ceiling is not None and amount > to_decimal(single_payment_ceiling):
        requires_transfer = True
        warnings.append(
            f"Cash payment of {amount} exceeds {to_decimal(single_payment_ceiling)}: "
            f"bank transfer required."
        )
    elif warning_amount is not None and amount >= to_decimal(warning_amount):
        warnings.append(
            f"Large cash payment of {amount}: consider a bank transfer."
        )

    if warning_ratio is not None and ceiling * to_decimal(warning_ratio) <= prior < ceiling:
        warnings.append(
            f"Monthly cash total {prior} is already approaching the "
            f"{ceiling} ceiling."
        )

    if new_total <= ceiling:
        return CashComplianceResult(
            prior_total=prior,
            new_amount=amount,
            new_monthly_total=new_total,
            monthly_ceiling=ceiling,
            requires_transfer=requires_transfer,
            warnings=tuple(warnings),
        )

    excess = new_total - ceiling
    penalty = percent_of(excess, penalty_rate_pct)
    stamp_duty = percent_of(amount, stamp_duty_rate_pct)
    warnings.append(
        f"Monthly cash ceiling {ceiling} exceeded by {excess}: "
        f"penalty {penalty} + stamp duty {stamp_duty}."
    )
    return CashComplianceResult(
        prior_total=prior,
        new_amount=amount,
        new_monthly_total=new_total,
        monthly_ceiling=ceiling,
        excess=excess,
        penalty=penalty,
        stamp_duty=stamp_duty,
        total_penalty_cost=penalty + stamp_duty,
        penalty_applicable=True,
        requires_transfer=requires_transfer,
        warnings=tuple(warnings),
    )


# ══════════════════════════════════════════════════════════════
# OVERRIDE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ComplianceOverride:
    """An explicit, attributable decision to pay despite the flag."""

    actor_id: str
    authority: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "actor_id": self.actor_id,
            "authority": self.authority,
            "reason": self.reason,
        }


def authorize_override(override: Optional[ComplianceOverride]) -> ComplianceOverride:
    if override is None:
        raise OverrideNotAuthorized("", "", "no override supplied.")
    if not override.actor_id:
        raise OverrideNotAuthorized(
            override.actor_id, override.authority, "actor_id is required."
        )
    if (override.authority or "").lower() not in ELEVATED_AUTHORITIES:
        raise OverrideNotAuthorized(
            override.actor_id, override.authority,
            f"authority must be one of {sorted(ELEVATED_AUTHORITIES)}.",
        )
    reason = (override.reason or "").strip()
    if len(reason) < MIN_OVERRIDE_REASON_LENGTH:
        raise OverrideNotAuthorized(
            override.actor_id, override.authority,
            f"a justification of at least {MIN_OVERRIDE_REASON_LENGTH} "
            f"characters is required.",
        )
    return override
