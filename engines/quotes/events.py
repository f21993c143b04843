"""
RMX Quote Engine — Event Types and Payload Builders
=====================================================
"""

from __future__ import annotations

from engines.quotes.quote_engine import Quote

QUOTE_CREATED = "quotes.quote.created"
QUOTE_TECHNICALLY_APPROVED = "quotes.quote.technically_approved"
QUOTE_APPROVED = "quotes.quote.approved"
QUOTE_REJECTED = "quotes.quote.rejected"

QUOTE_EVENT_TYPES = (
    QUOTE_CREATED,
    QUOTE_TECHNICALLY_APPROVED,
    QUOTE_APPROVED,
    QUOTE_REJECTED,
)


def build_quote_payload(quote: Quote, actor_id: str = "system") -> dict:
    return {
        "quote_id": quote.quote_id,
        "client_id": quote.client_id,
        "formula_id": quote.formula_id,
        "status": quote.status.value,
        "volume_m3": str(quote.volume_m3),
        "total_amount": str(quote.total_amount),
        "actor_id": actor_id,
    }


def build_quote_rejected_payload(quote: Quote, actor_id: str = "system") -> dict:
    payload = build_quote_payload(quote, actor_id)
    payload["reason"] = quote.rejection_reason
    return payload
