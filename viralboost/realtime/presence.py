"""
Presence registry: which connections belong to which user, and the profile
shown for every user holding at least one open connection.

Pure process memory; presence is rebuilt from scratch after a restart.
"""

import asyncio

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.connection import Connection
from viralboost.realtime.events import PresenceProfile

logger = get_logger(__name__)


class PresenceRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, set[Connection]] = {}
        self._owners: dict[Connection, str] = {}
        self._profiles: dict[str, PresenceProfile] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, connection: Connection) -> bool:
        """
        Add ``connection`` to the user's connection set.

        Idempotent for a connection already registered to this user. Returns
        True when this is the user's first connection.
        """
        async with self._lock:
            owner = self._owners.get(connection)
            if owner is not None and owner != user_id:
                raise ValueError(
                    f"Connection {connection.id} already belongs to another user; unregister first"
                )
            sockets = self._connections.setdefault(user_id, set())
            first = not sockets
            sockets.add(connection)
            self._owners[connection] = user_id
            return first

    async def unregister(self, connection: Connection) -> str | None:
        """
        Remove ``connection`` from whichever user owns it.

        Returns the owner's id when that was their last connection (the user
        left and their presence entry is gone), else None.
        """
        async with self._lock:
            user_id = self._owners.pop(connection, None)
            if user_id is None:
                return None
            sockets = self._connections.get(user_id)
            if sockets is not None:
                sockets.discard(connection)
                if sockets:
                    return None
            self._connections.pop(user_id, None)
            self._profiles.pop(user_id, None)
            logger.debug("User left", user_id=user_id)
            return user_id

    async def set_profile(self, user_id: str, profile: PresenceProfile) -> bool:
        """
        Overwrite the roster profile; the last join wins.

        Skipped (returns False) when the user has no live connection left.
        """
        async with self._lock:
            if not self._connections.get(user_id):
                return False
            self._profiles[user_id] = profile
            return True

    def snapshot(self) -> list[PresenceProfile]:
        return [p for uid, p in self._profiles.items() if self._connections.get(uid)]

    def profile(self, user_id: str) -> PresenceProfile | None:
        return self._profiles.get(user_id)

    def is_online(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    def owner_of(self, connection: Connection) -> str | None:
        return self._owners.get(connection)

    def connections_for(self, user_id: str) -> list[Connection]:
        return list(self._connections.get(user_id, ()))

    def all_connections(self) -> list[Connection]:
        return list(self._owners)

    def __len__(self) -> int:
        return len(self._connections)
