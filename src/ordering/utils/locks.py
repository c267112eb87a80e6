"""Per-key mutual exclusion.

State transitions on one order (or one guest grant, or one cart) must be
serialized, while unrelated keys never wait on each other. Locks are created
on demand and discarded once nobody holds or waits on them.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [RLock, holders]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        key = str(key)
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


cart_locks = KeyedLocks()
order_locks = KeyedLocks()
submission_locks = KeyedLocks()
grant_locks = KeyedLocks()
