"""
RMX Invoicing Engine — Delivery Aggregation and Ageing
========================================================
Rolls one or more deliveries of a single client into an invoice.

    net   = Σ volume × unit price (price frozen on each delivery)
    tax   = net × tax rate / 100
    total = net + tax
    due   = issue date + payment term days

RULES (NON-NEGOTIABLE):
- All deliveries belong to the same client (MixedClientDeliveries)
- A delivery is billed at most once (AlreadyBilled), including a
  delivery listed twice in the same request
- Line items are immutable once issued; only the payment fields and
  the overdue counter change afterwards
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from core.errors import (
    AlreadyBilled,
    InvalidInput,
    MixedClientDeliveries,
    SequenceViolation,
)
from core.primitives.money import (
    ZERO,
    percent_of,
    quantize_money,
    require_non_negative,
)
from core.time.temporal import add_days, as_date, days_overdue
from engines.deliveries.delivery_engine import Delivery, PaymentStatus


# ══════════════════════════════════════════════════════════════
# INVOICE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Invoice:
    invoice_id: str
    client_id: str
    delivery_ids: Tuple[str, ...]
    net_amount: Decimal
    tax_rate_pct: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    issued_on: date
    due_on: date
    status: PaymentStatus = PaymentStatus.PENDING
    amount_paid: Decimal = Decimal("0")
    credit_accrued: Decimal = Decimal("0")
    days_overdue: int = 0

    def __post_init__(self):
        if not self.delivery_ids:
            raise InvalidInput(
                "delivery_ids", self.delivery_ids,
                "An invoice aggregates at least one delivery.",
            )
        object.__setattr__(self, "delivery_ids", tuple(self.delivery_ids))
        if not isinstance(self.status, PaymentStatus):
            raise InvalidInput("status", self.status, "status must be PaymentStatus.")
        if self.net_amount + self.tax_amount != self.total_amount:
            raise InvalidInput(
                "total_amount", self.total_amount,
                f"total {self.total_amount} != net {self.net_amount} "
                f"+ tax {self.tax_amount}.",
            )
        if self.due_on < self.issued_on:
            raise InvalidInput("due_on", self.due_on, "due_on precedes issued_on.")

    @property
    def balance_due(self) -> Decimal:
        balance = self.total_amount - self.amount_paid
        return balance if balance > ZERO else ZERO

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "client_id": self.client_id,
            "delivery_ids": list(self.delivery_ids),
            "net_amount": str(self.net_amount),
            "tax_rate_pct": str(self.tax_rate_pct),
            "tax_amount": str(self.tax_amount),
            "total_amount": str(self.total_amount),
            "issued_on": self.issued_on.isoformat(),
            "due_on": self.due_on.isoformat(),
            "status": self.status.value,
            "amount_paid": str(self.amount_paid),
            "credit_accrued": str(self.credit_accrued),
            "days_overdue": self.days_overdue,
        }


# ══════════════════════════════════════════════════════════════
# GENERATION
# ══════════════════════════════════════════════════════════════

def generate_invoice(
    deliveries: Sequence[Delivery],
    issued_on: date,
    payment_term_days: int,
    tax_rate_pct=Decimal("20"),
    *,
    invoice_id: Optional[str] = None,
    require_technical_validation: bool = False,
) -> Invoice:
    if not deliveries:
        raise InvalidInput("deliveries", [], "At least one delivery is required.")
    if isinstance(payment_term_days, bool) or not isinstance(payment_term_days, int):
        raise InvalidInput(
            "payment_term_days", payment_term_days,
            "payment_term_days must be an int.",
        )

    client_ids = {d.client_id for d in deliveries}
    if len(client_ids) > 1:
        raise MixedClientDeliveries(client_ids)

    seen = set()
    for delivery in deliveries:
        if delivery.is_billed:
            raise AlreadyBilled(delivery.delivery_id, delivery.invoice_id)
        if delivery.delivery_id in seen:
            raise AlreadyBilled(delivery.delivery_id, None)
        seen.add(delivery.delivery_id)
        if require_technical_validation and not delivery.technical_validated:
            raise SequenceViolation(
                f"Delivery '{delivery.delivery_id}'",
                "technical_rejected",
                "billed",
                f"Delivery '{delivery.delivery_id}' failed technical "
                f"validation (variance {delivery.variance_pct}%) and "
                f"cannot be invoiced.",
            )

    tax_rate = require_non_negative(tax_rate_pct, "tax_rate_pct")
    issued = as_date(issued_on)
    net = quantize_money(sum((d.volume_m3 * d.unit_price for d in deliveries), ZERO))
    tax = percent_of(net, tax_rate)

    return Invoice(
        invoice_id=invoice_id or f"FAC-{uuid.uuid4().hex[:12].upper()}",
        client_id=client_ids.pop(),
        delivery_ids=tuple(d.delivery_id for d in deliveries),
        net_amount=net,
        tax_rate_pct=tax_rate,
        tax_amount=tax,
        total_amount=net + tax,
        issued_on=issued,
        due_on=add_days(issued, payment_term_days),
    )


def mark_billed(delivery: Delivery, invoice_id: str) -> Delivery:
    if delivery.is_billed:
        raise AlreadyBilled(delivery.delivery_id, delivery.invoice_id)
    return replace(delivery, invoice_id=invoice_id)


def refresh_overdue(invoice: Invoice, today: date) -> Invoice:
    """Recompute days_overdue as of `today`; paid invoices are never overdue."""
    overdue = 0 if invoice.is_paid else days_overdue(invoice.due_on, today)
    if overdue == invoice.days_overdue:
        return invoice
    return replace(invoice, days_overdue=overdue)
