"""
State-change broadcaster: the bridge from HTTP mutations to live sockets.

Stateless and at-most-once. Callers publish only after the mutation was
recorded; a connection that misses an event catches up from the next
welcome snapshot or listing call.
"""

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import StateChangeEvent
from viralboost.realtime.hub import MessagingHub

logger = get_logger(__name__)


class Broadcaster:
    def __init__(self, hub: MessagingHub):
        self.hub = hub

    async def publish(self, event: StateChangeEvent) -> int:
        """Send ``event`` to every connected user."""
        delivered = await self.hub.broadcast(event)
        logger.debug("State change published", event_type=event.type, delivered=delivered)
        return delivered

    async def publish_to(self, user_id: str, event: StateChangeEvent) -> int:
        """Send ``event`` to the connections of one user; zero when they are offline."""
        delivered = await self.hub.send_to_user(user_id, event)
        logger.debug(
            "State change sent to user",
            event_type=event.type,
            user_id=user_id,
            delivered=delivered,
        )
        return delivered
