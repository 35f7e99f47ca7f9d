"""
Per-key mutual exclusion.

The linkage engine must never run two read-then-write cycles for the same
quote at once, and the backing store offers no check-and-set across a read
and a write.  ``KeyedLock`` hands out one ``threading.Lock`` per key and
drops it again once nobody holds or waits for it, so the registry does not
grow with every quote ever touched.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator


class KeyedLock:
    """Registry of locks keyed by an arbitrary hashable identifier."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until ``key`` is free, hold it for the ``with`` body."""
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def is_held(self, key: Hashable) -> bool:
        """True if some thread currently holds or waits for ``key``."""
        with self._guard:
            return key in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
