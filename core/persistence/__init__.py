"""
RMX Persistence — Public API
==============================
EngineStore protocol and the in-memory implementation. The Django
implementation lives in core.persistence.django_store and is imported
only once Django apps are ready.
"""

from core.persistence.memory import InMemoryEngineStore
from core.persistence.store import EngineStore

__all__ = [
    "EngineStore",
    "InMemoryEngineStore",
]
