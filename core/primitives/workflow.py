"""
RMX Workflow Primitive — Transition Tables
============================================
Generic, deterministic state machine shared by the lifecycle
entities of the order-to-cash chain.

Used by:
    Quote Engine     — DRAFT → TECHNICALLY_APPROVED → APPROVED | REJECTED
    Order Engine     — ACTIVE → COMPLETED
    Invoicing Engine — PENDING → PARTIAL → PAID

RULES (NON-NEGOTIABLE):
- Invalid transitions REJECTED with SequenceViolation, no silent skips
- Terminal states accept nothing
- Every transition is recorded (actor, timestamp, reason)
- Definitions are immutable

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from core.errors import SequenceViolation


# ══════════════════════════════════════════════════════════════
# TRANSITION RECORD
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StateTransition:
    """An immutable record of a single state transition."""

    from_state: str
    to_state: str
    actor_id: str = "system"
    transitioned_at: Optional[datetime] = None
    reason: str = ""

    def __post_init__(self):
        if not self.from_state or not isinstance(self.from_state, str):
            raise ValueError("from_state must be non-empty string.")
        if not self.to_state or not isinstance(self.to_state, str):
            raise ValueError("to_state must be non-empty string.")
        if not self.actor_id:
            raise ValueError("actor_id must be non-empty.")

    def to_dict(self) -> dict:
        return {
            "from_state": self.from_state,
            "to_state": self.to_state,
            "actor_id": self.actor_id,
            "transitioned_at": (
                self.transitioned_at.isoformat() if self.transitioned_at else None
            ),
            "reason": self.reason,
        }


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITION (state machine schema)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Valid states and transitions for one entity type.

    Fields:
        name:            Entity type (e.g. "Quote")
        initial_state:   Starting state for all new instances
        terminal_states: States from which no further transitions are allowed
        transitions:     {from_state → frozenset(allowed_to_states)}
    """

    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in self.transitions.get(from_state, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return self.transitions.get(from_state, frozenset())

    def require_transition(
        self,
        from_state: str,
        to_state: str,
        subject_id: str = "",
    ) -> None:
        """Raise SequenceViolation unless from_state → to_state is allowed."""
        entity = f"{self.name} '{subject_id}'" if subject_id else self.name
        if self.is_terminal(from_state):
            raise SequenceViolation(
                entity, from_state, to_state,
                f"{entity} is in terminal state '{from_state}'; "
                f"cannot move to '{to_state}'.",
            )
        if not self.is_valid_transition(from_state, to_state):
            allowed = sorted(self.allowed_next_states(from_state))
            raise SequenceViolation(
                entity, from_state, to_state,
                f"Invalid transition for {entity}: {from_state} → {to_state}. "
                f"Allowed: {allowed}.",
            )

    def record(
        self,
        from_state: str,
        to_state: str,
        subject_id: str = "",
        actor_id: str = "system",
        at: Optional[datetime] = None,
        reason: str = "",
    ) -> StateTransition:
        """Validate a transition and return its record."""
        self.require_transition(from_state, to_state, subject_id)
        return StateTransition(
            from_state=from_state,
            to_state=to_state,
            actor_id=actor_id,
            transitioned_at=at,
            reason=reason,
        )


# ══════════════════════════════════════════════════════════════
# CANONICAL TABLES
# ══════════════════════════════════════════════════════════════

QUOTE_WORKFLOW = WorkflowDefinition(
    name="Quote",
    initial_state="draft",
    terminal_states=frozenset({"approved", "rejected"}),
    transitions={
        "draft": frozenset({"technically_approved", "rejected"}),
        "technically_approved": frozenset({"approved", "rejected"}),
        "approved": frozenset(),
        "rejected": frozenset(),
    },
)

ORDER_WORKFLOW = WorkflowDefinition(
    name="Order",
    initial_state="active",
    terminal_states=frozenset({"completed"}),
    transitions={
        "active": frozenset({"active", "completed"}),
        "completed": frozenset(),
    },
)

INVOICE_WORKFLOW = WorkflowDefinition(
    name="Invoice",
    initial_state="pending",
    terminal_states=frozenset({"paid"}),
    transitions={
        "pending": frozenset({"partial", "paid"}),
        "partial": frozenset({"partial", "paid"}),
        "paid": frozenset(),
    },
)
