"""
RMX Payment Engine — Event Types and Payload Builders
=======================================================
"""

from __future__ import annotations

from typing import Optional

from engines.payments.cash_ledger import CashPayment
from engines.payments.payment_engine import PaymentMethod, PaymentOutcome
from engines.payments.policies import CashComplianceResult

PAYMENT_APPLIED = "payments.payment.applied"
CASH_PAYMENT_RECORDED = "payments.cash_payment.recorded"
CASH_PAYMENT_FLAGGED = "payments.cash_payment.flagged"
CASH_PAYMENT_OVERRIDDEN = "payments.cash_payment.overridden"

PAYMENT_EVENT_TYPES = (
    PAYMENT_APPLIED,
    CASH_PAYMENT_RECORDED,
    CASH_PAYMENT_FLAGGED,
    CASH_PAYMENT_OVERRIDDEN,
)


def build_payment_applied_payload(outcome: PaymentOutcome, method: PaymentMethod) -> dict:
    return {
        "invoice_id": outcome.invoice.invoice_id,
        "client_id": outcome.client.client_id,
        "method": method.value,
        "amount_applied": str(outcome.amount_applied),
        "overpaid_amount": str(outcome.overpaid_amount),
        "status": outcome.invoice.status.value,
        "credit_delta": str(outcome.credit_delta),
        "credit_used": str(outcome.client.credit_used),
    }


def build_cash_payment_payload(
    payment: CashPayment,
    result: Optional[CashComplianceResult] = None,
) -> dict:
    payload = payment.to_dict()
    if result is not None:
        payload["compliance"] = result.to_dict()
    return payload
