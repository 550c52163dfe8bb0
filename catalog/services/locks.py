# catalog/services/locks.py
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional
from catalog.core.exceptions import ServerError


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        # Threads holding or waiting on the lock
        self.users = 0


class SubtreeLockRegistry:
    """In-process locks keyed by category id.

    Mutations lock the root ids of every tree they touch, so two writers
    cascading over the same tree run one after the other. Locks are taken in
    sorted order to avoid deadlock between overlapping scopes. An entry is
    dropped as soon as no thread holds or waits on it.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[str, _LockEntry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _LockEntry()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable) -> Iterator[List[str]]:
        """
        Hold the locks for every non-None key until the block exits.

        Raises:
            ServerError: if a lock is not acquired within the timeout
        """
        ordered = sorted({str(key) for key in keys if key is not None})
        timeout = self.timeout_seconds if self.timeout_seconds else -1
        acquired = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                if not entry.lock.acquire(timeout=timeout):
                    self._checkin(key, entry)
                    raise ServerError(f"Timed out waiting for lock on category {key}")
                acquired.append((key, entry))
            yield ordered
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)
