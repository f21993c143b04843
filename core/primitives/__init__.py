"""
RMX Core Primitives — Shared Building Blocks
==============================================
Engine-agnostic pieces every order-to-cash engine consumes:

    money     — Decimal amounts, volumes, percentages, rounding
    workflow  — transition tables for quotes, orders and invoices

- Pure Python (no Django dependency)
- Immutable (frozen dataclasses)
- Deterministic (same input → same output)
"""

from core.primitives.money import (
    CENT,
    ZERO,
    percent_of,
    quantize_money,
    quantize_pct,
    quantize_volume,
    require_money,
    require_volume,
    to_decimal,
)
from core.primitives.workflow import (
    INVOICE_WORKFLOW,
    ORDER_WORKFLOW,
    QUOTE_WORKFLOW,
    StateTransition,
    WorkflowDefinition,
)

__all__ = [
    "CENT",
    "ZERO",
    "percent_of",
    "quantize_money",
    "quantize_pct",
    "quantize_volume",
    "require_money",
    "require_volume",
    "to_decimal",
    "INVOICE_WORKFLOW",
    "ORDER_WORKFLOW",
    "QUOTE_WORKFLOW",
    "StateTransition",
    "WorkflowDefinition",
]
