"""
Per-key asyncio locks.

Serializes read-modify-append sequences on one key (a chat channel, a DM
thread, a vote target) while leaving other keys free to proceed.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """
    Lazily created ``asyncio.Lock`` per key.

    Entries are dropped once no task holds or waits on them, so the map only
    grows with the number of keys under contention.

    Usage:
        locks = KeyedLock()
        async with locks.hold("dm:alice:bob"):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
