"""
RMX Core Concurrency — Keyed Lock
===================================
One re-entrant mutex per key. Holders of different keys never block
each other; holders of the same key run one at a time.

Used by the in-memory store for per-order and per-client
serialization. The Django store gets the same guarantee from
select_for_update() row locks.

A key's mutex exists only while some thread holds or waits for it,
so the map stays the size of the keys in use.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator, Optional

from core.errors import ConcurrencyConflict

logger = logging.getLogger("rmx.persistence")


class KeyedLock:

    def __init__(self, entity: str, timeout: Optional[float] = None):
        self._entity = entity
        self._timeout = timeout
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold the lock for `key` for the duration of the block.

        Raises ConcurrencyConflict if the timeout elapses first.
        """
        lock = self._checkout(key)
        timeout = -1 if self._timeout is None else self._timeout
        if not lock.acquire(timeout=timeout):
            self._checkin(key)
            raise ConcurrencyConflict(
                self._entity, key, f"lock not acquired within {self._timeout}s"
            )
        logger.debug(f"{self._entity} lock acquired: {key}")
        try:
            yield
        finally:
            lock.release()
            self._checkin(key)
            logger.debug(f"{self._entity} lock released: {key}")
