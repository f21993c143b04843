"""
RMX Payment Engine — Applying Payments to Invoices
====================================================
Payments are cumulative against an invoice. The unpaid remainder is
the invoice's credit accrual on the client ledger:

    paid so far < total  → partial, accrual = total − paid so far
    paid so far >= total → paid,    accrual = 0

credit_used moves by the CHANGE in accrual, so a later full payment
reverses whatever an earlier partial payment added.

RULES (NON-NEGOTIABLE):
- Amounts must be > 0
- A paid invoice accepts nothing further (SequenceViolation)
- Overpayment is reported, never silently absorbed
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from core.errors import InvalidInput
from core.primitives.money import ZERO, require_money
from core.primitives.workflow import INVOICE_WORKFLOW
from engines.clients.ledger import Client, adjust_credit
from engines.deliveries.delivery_engine import PaymentStatus
from engines.invoicing.invoice_engine import Invoice


class PaymentMethod(Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"


@dataclass(frozen=True)
class PaymentOutcome:
    invoice: Invoice
    client: Client
    amount_applied: Decimal
    credit_delta: Decimal
    overpaid_amount: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "invoice": self.invoice.to_dict(),
            "client": self.client.to_dict(),
            "amount_applied": str(self.amount_applied),
            "credit_delta": str(self.credit_delta),
            "overpaid_amount": str(self.overpaid_amount),
        }


def apply_payment(invoice: Invoice, client: Client, amount_paid) -> PaymentOutcome:
    amount = require_money(amount_paid, "amount_paid")
    if client.client_id != invoice.client_id:
        raise InvalidInput(
            "client_id", client.client_id,
            f"Invoice '{invoice.invoice_id}' belongs to client "
            f"'{invoice.client_id}'.",
        )

    paid_so_far = invoice.amount_paid + amount
    if paid_so_far < invoice.total_amount:
        status = PaymentStatus.PARTIAL
        accrual = invoice.total_amount - paid_so_far
        overpaid = ZERO
    else:
        status = PaymentStatus.PAID
        accrual = ZERO
        overpaid = paid_so_far - invoice.total_amount
        paid_so_far = invoice.total_amount

    INVOICE_WORKFLOW.require_transition(
        invoice.status.value, status.value, invoice.invoice_id
    )

    delta = accrual - invoice.credit_accrued
    updated_invoice = replace(
        invoice,
        status=status,
        amount_paid=paid_so_far,
        credit_accrued=accrual,
        days_overdue=0 if status == PaymentStatus.PAID else invoice.days_overdue,
    )
    return PaymentOutcome(
        invoice=updated_invoice,
        client=adjust_credit(client, delta),
        amount_applied=amount - overpaid,
        credit_delta=delta,
        overpaid_amount=overpaid,
    )
