"""
RMX Core — Domain Errors
==========================
Every rejected transition in the order-to-cash engine raises one of
these. They are domain-typed, carry the offending value and the bound
that was violated, and are never retried or swallowed by the engine.

A rejected transition leaves the entity in its prior state: engines
build new frozen snapshots and only hand them back on success.

CashComplianceFlagged is the one non-fatal member: it carries the
penalty breakdown so the caller can render it and, with elevated
authority, override.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base error for all order-to-cash engine rejections."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = context
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for API responses and audit logs."""
        return {
            "code": self.code,
            "message": self.message,
            "context": {k: _plain(v) for k, v in self.context.items()},
        }


def _plain(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


# ══════════════════════════════════════════════════════════════
# INPUT / LOOKUP
# ══════════════════════════════════════════════════════════════

class InvalidInput(EngineError, ValueError):
    """A field value is outside its accepted domain."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(message, field=field, value=value)


class EntityNotFound(EngineError):
    code = "ENTITY_NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} '{entity_id}' not found.",
            entity=entity,
            entity_id=entity_id,
        )


class RegistryLocked(EngineError):
    code = "REGISTRY_LOCKED"

    def __init__(self, registry: str):
        super().__init__(
            f"{registry} is locked after bootstrap. "
            f"No further registration allowed.",
            registry=registry,
        )


# ══════════════════════════════════════════════════════════════
# WORKFLOW
# ══════════════════════════════════════════════════════════════

class SequenceViolation(EngineError):
    """A transition was attempted out of its required order."""

    code = "SEQUENCE_VIOLATION"

    def __init__(
        self,
        entity: str,
        current_state: str,
        attempted: str,
        message: Optional[str] = None,
    ):
        self.entity = entity
        self.current_state = current_state
        self.attempted = attempted
        super().__init__(
            message or (
                f"{entity} cannot go from '{current_state}' "
                f"to '{attempted}'."
            ),
            entity=entity,
            current_state=current_state,
            attempted=attempted,
        )


class FormulaOutOfSpec(EngineError):
    code = "FORMULA_OUT_OF_SPEC"

    def __init__(self, formula_id: str, parameter: str, value, minimum, maximum):
        self.formula_id = formula_id
        self.parameter = parameter
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        bound = "minimum" if value < minimum else "maximum"
        self.violated_bound = bound
        super().__init__(
            f"Formula '{formula_id}': {parameter} {value} outside "
            f"[{minimum}, {maximum}] ({bound} violated).",
            formula_id=formula_id,
            parameter=parameter,
            value=value,
            minimum=minimum,
            maximum=maximum,
            violated_bound=bound,
        )


class QuoteNotApproved(EngineError):
    code = "QUOTE_NOT_APPROVED"

    def __init__(self, quote_id: str, status: str):
        self.quote_id = quote_id
        self.status = status
        super().__init__(
            f"Quote '{quote_id}' is '{status}'. "
            f"Only approved quotes become orders.",
            quote_id=quote_id,
            status=status,
        )


class CreditLimitExceeded(EngineError):
    code = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, client_id: str, projected_usage, ceiling, overage):
        self.client_id = client_id
        self.projected_usage = projected_usage
        self.ceiling = ceiling
        self.overage = overage
        super().__init__(
            f"Client '{client_id}' credit exceeded: projected "
            f"{projected_usage} > ceiling {ceiling} (overage {overage}).",
            client_id=client_id,
            projected_usage=projected_usage,
            ceiling=ceiling,
            overage=overage,
        )


# ══════════════════════════════════════════════════════════════
# DELIVERY
# ══════════════════════════════════════════════════════════════

class OrderClosed(EngineError):
    code = "ORDER_CLOSED"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Order '{order_id}' is completed and accepts no deliveries.",
            order_id=order_id,
        )


class VolumeExceedsRemaining(EngineError):
    code = "VOLUME_EXCEEDS_REMAINING"

    def __init__(self, order_id: str, requested, remaining):
        self.order_id = order_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Order '{order_id}': requested {requested} m3 exceeds "
            f"remaining {remaining} m3.",
            order_id=order_id,
            requested=requested,
            remaining=remaining,
        )


class VolumeOutOfRange(EngineError):
    code = "VOLUME_OUT_OF_RANGE"

    def __init__(self, volume, maximum):
        self.volume = volume
        self.maximum = maximum
        super().__init__(
            f"Delivery volume {volume} m3 must be > 0 and <= {maximum} m3.",
            volume=volume,
            maximum=maximum,
        )


# ══════════════════════════════════════════════════════════════
# INVOICING
# ══════════════════════════════════════════════════════════════

class MixedClientDeliveries(EngineError):
    code = "MIXED_CLIENT_DELIVERIES"

    def __init__(self, client_ids):
        self.client_ids = tuple(sorted(client_ids))
        super().__init__(
            f"Deliveries belong to several clients: {list(self.client_ids)}.",
            client_ids=self.client_ids,
        )


class AlreadyBilled(EngineError):
    code = "ALREADY_BILLED"

    def __init__(self, delivery_id: str, invoice_id: Optional[str]):
        self.delivery_id = delivery_id
        self.invoice_id = invoice_id
        super().__init__(
            f"Delivery '{delivery_id}' is already billed"
            f"{' on invoice ' + repr(invoice_id) if invoice_id else ''}.",
            delivery_id=delivery_id,
            invoice_id=invoice_id,
        )


# ══════════════════════════════════════════════════════════════
# PAYMENT / COMPLIANCE
# ══════════════════════════════════════════════════════════════

class CashComplianceFlagged(EngineError):
    """
    Non-fatal: the monthly cash ceiling would be exceeded.

    `result` is the full CashComplianceResult breakdown. The payment
    may still proceed with an explicit ComplianceOverride.
    """

    code = "CASH_COMPLIANCE_FLAGGED"

    def __init__(self, counterparty_id: str, result):
        self.counterparty_id = counterparty_id
        self.result = result
        super().__init__(
            f"Cash payments to '{counterparty_id}' reach "
            f"{result.new_monthly_total} this month, above the "
            f"{result.monthly_ceiling} ceiling. Penalty cost "
            f"{result.total_penalty_cost} requires an override.",
            counterparty_id=counterparty_id,
            breakdown=result,
        )


class CashPaymentRequiresTransfer(EngineError):
    code = "CASH_PAYMENT_REQUIRES_TRANSFER"

    def __init__(self, amount, ceiling):
        self.amount = amount
        self.ceiling = ceiling
        super().__init__(
            f"Cash payment of {amount} exceeds the single-payment "
            f"ceiling {ceiling}; pay by bank transfer.",
            amount=amount,
            ceiling=ceiling,
        )


class OverrideNotAuthorized(EngineError):
    code = "OVERRIDE_NOT_AUTHORIZED"

    def __init__(self, actor_id: str, authority: str, reason: str):
        super().__init__(
            f"Actor '{actor_id}' ({authority}) cannot override: {reason}",
            actor_id=actor_id,
            authority=authority,
        )


# ══════════════════════════════════════════════════════════════
# PERSISTENCE
# ══════════════════════════════════════════════════════════════

class ConcurrencyConflict(EngineError):
    """Lock could not be taken; caller may re-fetch and retry."""

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, entity: str, entity_id: str, detail: str = ""):
        super().__init__(
            f"{entity} '{entity_id}' is locked by a concurrent operation"
            f"{': ' + detail if detail else ''}.",
            entity=entity,
            entity_id=entity_id,
        )
