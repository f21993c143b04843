"""
RMX Client Ledger — Credit Accounts
=====================================
Each client's credit ceiling and outstanding balance (credit used).

RULES (NON-NEGOTIABLE):
- Client snapshots are immutable; adjust_credit returns a new one
- credit_used never drops below zero
- Only the Payment Engine writes credit_used; the credit gate reads it
- Writes happen under the store's per-client serialization
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from core.errors import InvalidInput
from core.primitives.money import (
    ZERO,
    quantize_money,
    require_non_negative,
    to_decimal,
)


@dataclass(frozen=True)
class Client:
    client_id: str
    name: str
    credit_ceiling: Decimal
    credit_used: Decimal = Decimal("0")
    payment_term_days: int = 30

    def __post_init__(self):
        if not self.client_id or not isinstance(self.client_id, str):
            raise InvalidInput(
                "client_id", self.client_id, "client_id must be non-empty string."
            )
        object.__setattr__(self, "credit_ceiling", quantize_money(
            require_non_negative(self.credit_ceiling, "credit_ceiling")
        ))
        object.__setattr__(self, "credit_used", quantize_money(
            require_non_negative(self.credit_used, "credit_used")
        ))
        if (
            isinstance(self.payment_term_days, bool)
            or not isinstance(self.payment_term_days, int)
            or self.payment_term_days < 0
        ):
            raise InvalidInput(
                "payment_term_days", self.payment_term_days,
                "payment_term_days must be a non-negative int.",
            )

    @property
    def available_credit(self) -> Decimal:
        remaining = self.credit_ceiling - self.credit_used
        return remaining if remaining > ZERO else ZERO

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "name": self.name,
            "credit_ceiling": str(self.credit_ceiling),
            "credit_used": str(self.credit_used),
            "payment_term_days": self.payment_term_days,
        }


def adjust_credit(client: Client, delta) -> Client:
    """Return a new Client with credit_used moved by delta (floored at 0)."""
    new_used = client.credit_used + to_decimal(delta, "delta")
    if new_used < ZERO:
        new_used = ZERO
    return replace(client, credit_used=new_used)
