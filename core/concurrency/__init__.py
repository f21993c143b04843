"""
RMX Core Concurrency — Public API
===================================
Per-key serialization for shared mutable state (orders, clients).
"""

from core.concurrency.keyed_lock import KeyedLock

__all__ = ["KeyedLock"]
