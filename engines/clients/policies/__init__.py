"""
RMX Client Ledger — Credit Gate Policy
========================================
Precondition hook callers run before committing an Order.

A client is denied when its projected usage (credit used plus the new
amount) exceeds its ceiling. When a maximum number of overdue invoices
is configured, a client at or above it is denied as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.primitives.money import ZERO, quantize_money, require_non_negative
from engines.clients.ledger import Client


@dataclass(frozen=True)
class CreditGateResult:
    allowed: bool
    client_id: str
    projected_usage: Decimal
    credit_ceiling: Decimal
    overage: Decimal
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "client_id": self.client_id,
            "projected_usage": str(self.projected_usage),
            "credit_ceiling": str(self.credit_ceiling),
            "overage": str(self.overage),
            "reason": self.reason,
        }


def credit_gate(
    client: Client,
    projected_amount,
    *,
    overdue_invoices: int = 0,
    max_overdue_invoices: Optional[int] = None,
) -> CreditGateResult:
    amount = require_non_negative(projected_amount, "projected_amount")
    projected = quantize_money(client.credit_used + amount)
    overage = projected - client.credit_ceiling
    if overage < ZERO:
        overage = ZERO

    reason = None
    if overage > ZERO:
        reason = (
            f"Credit exceeded: projected {projected} > ceiling "
            f"{client.credit_ceiling} (overage {overage})."
        )
    elif (
        max_overdue_invoices is not None
        and overdue_invoices >= max_overdue_invoices
    ):
        reason = (
            f"Client has {overdue_invoices} overdue invoices "
            f"(limit {max_overdue_invoices})."
        )

    return CreditGateResult(
        allowed=reason is None,
        client_id=client.client_id,
        projected_usage=projected,
        credit_ceiling=client.credit_ceiling,
        overage=overage,
        reason=reason,
    )
