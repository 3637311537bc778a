"""
Keyed asyncio locks.

One lock per key, created on demand and dropped once nobody holds or waits
for it, so the registry does not grow with the number of contests/users.
Locks are process-local: cross-process safety comes from the unique indexes
in MongoDB.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Hashable, Optional

from scoring_service.core.exceptions import ConflictError


class KeyedLocks:
    def __init__(self, name: str):
        self.name = name
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def _acquire_slot(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _release_slot(self, key: Hashable) -> None:
        self._users[key] -= 1
        if self._users[key] == 0:
            del self._users[key]
            del self._locks[key]

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: Hashable, wait: bool = True, timeout: Optional[float] = None):
        """
        Hold the lock for ``key``.

        With ``wait=False`` a held lock raises ConflictError instead of queueing.
        With a ``timeout`` the wait is bounded and raises asyncio.TimeoutError.
        """
        if not wait and self.locked(key):
            raise ConflictError(f"{self.name} already in progress for {key}")

        lock = self._acquire_slot(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_slot(key)

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registries. Services are built per request, locks are not.
submission_locks = KeyedLocks("score submission")
leaderboard_write_locks = KeyedLocks("leaderboard write")
rank_pass_locks = KeyedLocks("rank pass")
