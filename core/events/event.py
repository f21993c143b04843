"""
RMX Event Bus — Domain Event
==============================
Immutable notification of a committed transition.

event_type follows engine.entity.action, e.g.
'deliveries.delivery.variance_flagged'.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    subject_id: str
    occurred_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if not self.event_type:
            raise ValueError("event_type must be non-empty.")
        if not self.subject_id:
            raise ValueError("subject_id must be non-empty.")
        if self.occurred_at.tzinfo is None:
            raise ValueError("occurred_at must be timezone-aware.")

    @property
    def engine(self) -> str:
        return self.event_type.split(".")[0]

    def to_dict(self) -> dict:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "subject_id": self.subject_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }
