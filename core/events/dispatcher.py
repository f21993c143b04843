"""
RMX Event Bus — Dispatcher
============================
Routes committed domain events to registered subscribers.

Dispatch behavior:
1. Look up subscribers by event_type (plus wildcard subscribers)
2. Execute handlers sequentially
3. Catch subscriber exceptions per handler, log, continue
4. NEVER undo the committed state change

Services dispatch only after the store has saved the new state.
"""

import logging
from typing import Optional

from core.events.event import DomainEvent
from core.events.registry import SubscriberRegistry

logger = logging.getLogger("rmx.events")


def dispatch(event: DomainEvent, registry: Optional[SubscriberRegistry]) -> dict:
    """
    Dispatch a committed event to all registered subscribers.

    Returns:
        {
            'event_type': str,
            'event_id': str,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    This function NEVER raises. Handler failures are logged and reported.
    """
    event_type = event.event_type
    event_id = str(event.event_id)

    result = {
        "event_type": event_type,
        "event_id": event_id,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    subscribers = registry.get_subscribers(event_type) if registry else []
    if not subscribers:
        logger.debug(f"No subscribers for '{event_type}' ({event.subject_id})")
        return result

    for handler, subscriber_name in subscribers:
        handler_name = getattr(handler, "__qualname__", str(handler))
        try:
            handler(event)
            result["subscribers_notified"] += 1
        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append({
                "handler": handler_name,
                "subscriber": subscriber_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })
            logger.error(
                f"Subscriber failed: {handler_name} for "
                f"{event_type} ({event.subject_id}): {exc}",
                exc_info=True,
            )

    logger.debug(
        f"Dispatch complete: {event_type} ({event.subject_id}) — "
        f"{result['subscribers_notified']} notified, "
        f"{result['subscribers_failed']} failed"
    )
    return result


def publish(
    registry: Optional[SubscriberRegistry],
    clock,
    event_type: str,
    subject_id: str,
    payload: dict,
) -> dict:
    """Build a DomainEvent stamped by `clock` and dispatch it."""
    event = DomainEvent(
        event_type=event_type,
        subject_id=subject_id,
        occurred_at=clock.now_utc(),
        payload=payload,
    )
    return dispatch(event, registry)
