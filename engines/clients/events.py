"""
RMX Client Ledger — Event Types and Payload Builders
======================================================
"""

from __future__ import annotations

from engines.clients.ledger import Client
from engines.clients.policies import CreditGateResult

CLIENT_REGISTERED = "clients.client.registered"
CLIENT_CREDIT_ADJUSTED = "clients.credit.adjusted"
CLIENT_CREDIT_DENIED = "clients.credit.denied"

CLIENT_EVENT_TYPES = (
    CLIENT_REGISTERED,
    CLIENT_CREDIT_ADJUSTED,
    CLIENT_CREDIT_DENIED,
)


def build_client_registered_payload(client: Client) -> dict:
    return client.to_dict()


def build_credit_adjusted_payload(before: Client, after: Client, cause: str) -> dict:
    return {
        "client_id": after.client_id,
        "credit_used_before": str(before.credit_used),
        "credit_used_after": str(after.credit_used),
        "delta": str(after.credit_used - before.credit_used),
        "cause": cause,
    }


def build_credit_denied_payload(result: CreditGateResult, context: str) -> dict:
    payload = result.to_dict()
    payload["context"] = context
    return payload
