"""
RMX Invoicing Engine — Event Types and Payload Builders
=========================================================
"""

from __future__ import annotations

from engines.invoicing.invoice_engine import Invoice

INVOICE_ISSUED = "invoicing.invoice.issued"
INVOICE_OVERDUE = "invoicing.invoice.overdue"

INVOICE_EVENT_TYPES = (
    INVOICE_ISSUED,
    INVOICE_OVERDUE,
)


def build_invoice_issued_payload(invoice: Invoice) -> dict:
    return invoice.to_dict()


def build_invoice_overdue_payload(invoice: Invoice) -> dict:
    return {
        "invoice_id": invoice.invoice_id,
        "client_id": invoice.client_id,
        "due_on": invoice.due_on.isoformat(),
        "days_overdue": invoice.days_overdue,
        "balance_due": str(invoice.balance_due),
    }
