"""
Keyed in-process locks for the posting critical section.

ProductLockRegistry hands out one mutex per product id so that two
confirmations of the same product run their posting transactions one
after the other.  The coordinator also keeps a second registry keyed by
command id so that concurrent confirms of ONE command serialize; a
command's lock is discarded once the command is terminal.

Locks are held for the posting transaction only, never across the wait
for the employee's confirmation.  They are process-local; the conditional
stock UPDATE protects against oversell across processes.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

from showroom_kernel.logging_config import get_logger

logger = get_logger("services.locks")


class LockRegistry:
    """One lazily created ``threading.Lock`` per key."""

    def __init__(self, name: str = "lock"):
        self._name = name
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._lock_for(key)
        if not lock.acquire(blocking=False):
            logger.debug("lock_contended", extra={"registry": self._name, "key": str(key)})
            lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def discard(self, key: Hashable) -> None:
        """Forget the lock for ``key``; a holder keeps its own reference."""
        with self._guard:
            self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ProductLockRegistry(LockRegistry):
    """Per-product mutual exclusion for stock decrements."""

    def __init__(self) -> None:
        super().__init__("product")
