"""
One client connection and its lifecycle state.

    ANONYMOUS --join--> JOINED --close--> CLOSED
                          ^  |
                          +--+ join again re-binds the identity
"""

import uuid
from enum import Enum
from typing import Protocol

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import WireModel

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    ANONYMOUS = "anonymous"
    JOINED = "joined"
    CLOSED = "closed"


class Transport(Protocol):
    """What the hub needs from a socket (satisfied by ``fastapi.WebSocket``)."""

    async def send_text(self, data: str) -> None: ...


class Connection:
    def __init__(self, transport: Transport, connection_id: str | None = None):
        self.id = connection_id or uuid.uuid4().hex[:12]
        self.transport = transport
        self.state = ConnectionState.ANONYMOUS
        self.user_id: str | None = None

    @property
    def joined(self) -> bool:
        return self.state is ConnectionState.JOINED

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def bind(self, user_id: str) -> str | None:
        """Attach the identity named by a join. Returns the previous identity, if any."""
        if self.closed:
            raise RuntimeError("Cannot bind a closed connection")
        previous = self.user_id
        self.user_id = user_id
        self.state = ConnectionState.JOINED
        return previous

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    async def send(self, event: WireModel) -> bool:
        return await self.send_raw(event.model_dump_json(by_alias=True))

    async def send_raw(self, payload: str) -> bool:
        """Write one frame. A failed write marks the connection closed."""
        if self.closed:
            return False
        try:
            await self.transport.send_text(payload)
            return True
        except Exception as e:
            logger.info(
                "Connection write failed, treating as closed",
                connection_id=self.id,
                user_id=self.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.mark_closed()
            return False

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!r}, state={self.state.value})"
