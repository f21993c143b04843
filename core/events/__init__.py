"""
RMX Event Bus — Public API
============================
State is saved first; notification follows and never fails the caller.
"""

from core.events.dispatcher import dispatch, publish
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
)
from core.events.event import DomainEvent
from core.events.registry import WILDCARD, SubscriberRegistry

__all__ = [
    "dispatch",
    "publish",
    "DomainEvent",
    "SubscriberRegistry",
    "WILDCARD",
    "EventBusError",
    "InvalidEventTypeFormat",
    "DuplicateSubscriberError",
]
