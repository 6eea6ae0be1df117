"""Per-key asyncio locks."""
import asyncio
from typing import Dict


class KeyedLocks:
    """One ``asyncio.Lock`` per key, created on first use.

    Used to serialize read-modify-write sequences on a single record, since
    the persistence gateway itself is last-write-wins.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def __call__(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def discard(self, key: str):
        """Forget the lock for a deleted record."""
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
