"""
RMX Payment Engine — Monthly Cash Ledger
==========================================
Cash payment records and their accumulation per counterparty per
calendar month (key 'YYYY-MM').

CashLedger is the in-memory accumulator; reconcile_month replays a
month's records in declaration order through the compliance policy,
for end-of-day or month-end review.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from core.config.rules import EngineConfig
from core.errors import InvalidInput
from core.primitives.money import ZERO, require_money
from core.time.temporal import as_date, month_key
from engines.payments.payment_engine import PaymentMethod
from engines.payments.policies import CashComplianceResult, cash_compliance_check


@dataclass(frozen=True)
class CashPayment:
    counterparty_id: str
    amount: Decimal
    declared_source: str
    declared_on: date
    method: PaymentMethod = PaymentMethod.CASH
    invoice_id: Optional[str] = None
    payment_id: str = field(default_factory=lambda: f"CSH-{uuid.uuid4().hex[:12].upper()}")
    penalty_cost: Decimal = Decimal("0")
    override_actor_id: Optional[str] = None
    override_reason: str = ""

    def __post_init__(self):
        if not self.counterparty_id:
            raise InvalidInput(
                "counterparty_id", self.counterparty_id,
                "counterparty_id must be non-empty.",
            )
        if not self.declared_source or not self.declared_source.strip():
            raise InvalidInput(
                "declared_source", self.declared_source,
                "The source of cash must be declared.",
            )
        if not isinstance(self.method, PaymentMethod):
            raise InvalidInput("method", self.method, "method must be PaymentMethod.")
        object.__setattr__(
            self, "amount", require_money(self.amount, "amount")
        )
        object.__setattr__(self, "declared_on", as_date(self.declared_on))

    @property
    def month(self) -> str:
        return month_key(self.declared_on)

    @property
    def is_cash(self) -> bool:
        return self.method == PaymentMethod.CASH

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "counterparty_id": self.counterparty_id,
            "amount": str(self.amount),
            "declared_source": self.declared_source,
            "declared_on": self.declared_on.isoformat(),
            "method": self.method.value,
            "invoice_id": self.invoice_id,
            "penalty_cost": str(self.penalty_cost),
            "override_actor_id": self.override_actor_id,
            "override_reason": self.override_reason,
        }


class CashLedger:
    """Running cash totals keyed by (counterparty_id, 'YYYY-MM')."""

    def __init__(self, payments: Iterable[CashPayment] = ()):
        self._totals: Dict[Tuple[str, str], Decimal] = {}
        self._payments: List[CashPayment] = []
        for payment in payments:
            self.record(payment)

    def record(self, payment: CashPayment) -> None:
        self._payments.append(payment)
        if payment.is_cash:
            key = (payment.counterparty_id, payment.month)
            self._totals[key] = self._totals.get(key, ZERO) + payment.amount

    def month_total(self, counterparty_id: str, month: str) -> Decimal:
        return self._totals.get((counterparty_id, month), ZERO)

    def payments_for(self, counterparty_id: str, month: str) -> List[CashPayment]:
        return [
            p for p in self._payments
            if p.counterparty_id == counterparty_id and p.month == month
        ]


def reconcile_month(
    payments: Iterable[CashPayment],
    config: Optional[EngineConfig] = None,
) -> List[Tuple[CashPayment, CashComplianceResult]]:
    """Replay cash payments in declaration order; one result per payment."""
    config = config or EngineConfig()
    ledger = CashLedger()
    results = []
    ordered = sorted(
        (p for p in payments if p.is_cash), key=lambda p: p.declared_on
    )
    for payment in ordered:
        result = cash_compliance_check(
            ledger.month_total(payment.counterparty_id, payment.month),
            payment.amount,
            config.cash_monthly_ceiling,
            config.cash_penalty_rate_pct,
            config.stamp_duty_rate_pct,
        )
        results.append((payment, result))
        ledger.record(payment)
    return results
