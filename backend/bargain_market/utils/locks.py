"""
Per-key lock registry.

WHAT: One mutex per negotiation key (buyer, product)
WHY: Transitions on the same negotiation must be applied one at a time
HOW: Reference-counted threading.Lock objects, acquired with a timeout
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from .exceptions import ConcurrentModificationException
from .logger import get_logger

logger = get_logger(__name__)


class KeyedLockRegistry:
    """Hands out a lock per key and forgets it once nobody holds or waits on it."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._registry_lock:
            remaining = self._users.get(key, 1) - 1
            if remaining <= 0:
                self._users.pop(key, None)
                self._locks.pop(key, None)
            else:
                self._users[key] = remaining

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``key``.

        Raises:
            ConcurrentModificationException: lock not obtained within the timeout
        """
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning(f"Lock wait timed out for {key} after {wait}s")
                raise ConcurrentModificationException(key)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
