"""
Messaging hub: the public chat channel, direct-message threads, typing
indicators and presence fan-out.

Every channel (the public feed, one DM thread) is mutated under its own
lock, and append-then-fan-out happens inside that lock, so the persisted
order of a channel is the order every listener receives it in.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Iterable

from pydantic import ValidationError

from viralboost.errors import StoreError
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.connection import Connection, Transport
from viralboost.realtime.events import (
    DirectHistoryCommand,
    DirectHistoryEvent,
    DirectMessage,
    DirectMessageCommand,
    DirectMessageEvent,
    DirectMessageSentEvent,
    DirectTypingCommand,
    DirectTypingEvent,
    HistoryEvent,
    InboundCommand,
    JoinCommand,
    MessageCommand,
    MessageEvent,
    OnlineUsersEvent,
    PresenceProfile,
    PublicMessage,
    TypingCommand,
    TypingEvent,
    UserJoinedEvent,
    UserLeftEvent,
    WireModel,
    parse_command,
)
from viralboost.realtime.presence import PresenceRegistry
from viralboost.store.base import PUBLIC_CHANNEL, Collection, DocumentStore
from viralboost.utils.ids import new_id, utc_now_iso
from viralboost.utils.locks import KeyedLock

logger = get_logger(__name__)

DEFAULT_NAME = "Anonyme"
DEFAULT_PLAN = "free"
DEFAULT_AVATAR = "👤"

WelcomeProvider = Callable[[], Awaitable[list[WireModel]]]


def dm_thread_key(user_a: str, user_b: str) -> str:
    """Canonical key of the thread between two users, whoever started it."""
    return ":".join(sorted((user_a, user_b)))


class MessagingHub:
    def __init__(
        self,
        store: DocumentStore,
        presence: PresenceRegistry | None = None,
        *,
        history_capacity: int = 200,
        replay_window: int = 50,
        max_text_length: int = 500,
        strict_persistence: bool = False,
        welcome: WelcomeProvider | None = None,
    ):
        self.store = store
        self.presence = presence or PresenceRegistry()
        self.replay_window = replay_window
        self.max_text_length = max_text_length
        self.strict_persistence = strict_persistence
        self.welcome = welcome

        self._public: deque[PublicMessage] = deque(maxlen=history_capacity)
        self._threads: dict[str, list[DirectMessage]] = {}
        self._locks = KeyedLock()
        self._handlers: dict[str, Callable[[Connection, InboundCommand], Awaitable[None]]] = {
            "join": self._on_join,
            "message": self._on_message,
            "dm": self._on_direct_message,
            "get_dm_history": self._on_direct_history,
            "typing": self._on_typing,
            "dm_typing": self._on_direct_typing,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Reload the public buffer from the durable log."""
        try:
            stored = await self.store.chat_messages.items(PUBLIC_CHANNEL, limit=self._public.maxlen)
        except StoreError as e:
            logger.error("Could not load chat history", error=str(e))
            return

        for raw in stored:
            try:
                self._public.append(PublicMessage.model_validate(raw))
            except ValidationError:
                logger.debug("Skipping unreadable stored chat message")
        logger.info("Chat history loaded", messages=len(self._public))

    async def stop(self) -> None:
        for connection in self.presence.all_connections():
            connection.mark_closed()
        logger.info("Messaging hub stopped")

    def recent_messages(self) -> list[PublicMessage]:
        """The replay window sent to a joining connection."""
        if self.replay_window <= 0:
            return []
        return list(self._public)[-self.replay_window :]

    @property
    def public_buffer_size(self) -> int:
        return len(self._public)

    # ------------------------------------------------------------------
    # Connection entry points
    # ------------------------------------------------------------------

    def connect(self, transport: Transport) -> Connection:
        connection = Connection(transport)
        logger.debug("Connection opened", connection_id=connection.id)
        return connection

    async def handle_frame(self, connection: Connection, raw: str | bytes) -> None:
        """Parse and dispatch one inbound frame. Malformed frames are dropped."""
        command = parse_command(raw)
        if command is None:
            return
        await self.dispatch(connection, command)

    async def dispatch(self, connection: Connection, command: InboundCommand) -> None:
        handler = self._handlers.get(command.type)
        if handler is None:
            logger.warning("No handler for realtime command", command=command.type)
            return

        if connection.closed:
            return

        if command.type != "join" and not connection.joined:
            logger.debug(
                "Dropping command from anonymous connection",
                connection_id=connection.id,
                command=command.type,
            )
            return

        try:
            await handler(connection, command)
        except Exception:
            # One bad event must not take the connection down
            logger.exception(
                "Realtime handler failed",
                connection_id=connection.id,
                user_id=connection.user_id,
                command=command.type,
            )

    async def disconnect(self, connection: Connection) -> None:
        connection.mark_closed()
        departed = await self.presence.unregister(connection)
        logger.debug("Connection closed", connection_id=connection.id, user_id=connection.user_id)
        if departed is not None:
            await self._announce_departure(departed)

    # ------------------------------------------------------------------
    # Fan-out primitives
    # ------------------------------------------------------------------

    async def broadcast(self, event: WireModel) -> int:
        """Deliver to every present connection. Returns the number of successful writes."""
        return await self._deliver(self.presence.all_connections(), event)

    async def send_to_user(self, user_id: str, event: WireModel) -> int:
        """Deliver to every connection of one user."""
        return await self._deliver(self.presence.connections_for(user_id), event)

    async def _deliver(self, connections: Iterable[Connection], event: WireModel) -> int:
        targets = list(connections)
        if not targets:
            return 0
        payload = event.model_dump_json(by_alias=True)
        results = await asyncio.gather(*(c.send_raw(payload) for c in targets))
        dead = [c for c, ok in zip(targets, results, strict=True) if not ok]
        for connection in dead:
            await self.disconnect(connection)
        return len(targets) - len(dead)

    async def _announce_departure(self, user_id: str) -> None:
        await self.broadcast(UserLeftEvent(user_id=user_id))
        await self.broadcast(OnlineUsersEvent(users=self.presence.snapshot()))

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def _on_join(self, connection: Connection, command: JoinCommand) -> None:
        user_id = command.user_id
        previous = connection.bind(user_id)
        if previous is not None and previous != user_id:
            departed = await self.presence.unregister(connection)
            if departed is not None:
                await self._announce_departure(departed)

        await self.presence.register(user_id, connection)
        profile = PresenceProfile(
            id=user_id,
            name=command.name or DEFAULT_NAME,
            plan=command.plan or DEFAULT_PLAN,
            avatar=command.avatar or DEFAULT_AVATAR,
        )
        await self.presence.set_profile(user_id, profile)

        await connection.send(HistoryEvent(messages=self.recent_messages()))
        for snapshot in await self._welcome_snapshots():
            await connection.send(snapshot)

        logger.info("User joined chat", user_id=user_id, connection_id=connection.id)
        await self.broadcast(OnlineUsersEvent(users=self.presence.snapshot()))
        await self.broadcast(UserJoinedEvent(user=profile))

    async def _welcome_snapshots(self) -> list[WireModel]:
        if self.welcome is None:
            return []
        try:
            return await self.welcome()
        except StoreError as e:
            logger.warning("Welcome snapshots unavailable", error=str(e))
            return []

    async def _on_message(self, connection: Connection, command: MessageCommand) -> None:
        text = command.text[: self.max_text_length]
        if not text.strip():
            return

        user_id = connection.user_id
        profile = self.presence.profile(user_id)
        message = PublicMessage(
            id=new_id("msg"),
            sender_id=user_id,
            sender_name=command.name or (profile.name if profile else DEFAULT_NAME),
            sender_plan=command.plan or (profile.plan if profile else DEFAULT_PLAN),
            text=text,
            timestamp=utc_now_iso(),
            avatar=command.avatar or (profile.avatar if profile else DEFAULT_AVATAR),
        )

        async with self._locks.hold(("public", PUBLIC_CHANNEL)):
            if not await self._persist(self.store.chat_messages, PUBLIC_CHANNEL, message):
                return
            self._public.append(message)
            await self.broadcast(MessageEvent(message=message))

    async def _on_direct_message(self, connection: Connection, command: DirectMessageCommand) -> None:
        sender_id = connection.user_id
        to_id = command.to_id
        if not to_id or to_id == sender_id:
            logger.debug("Dropping direct message without a valid recipient", user_id=sender_id)
            return

        text = command.text[: self.max_text_length]
        if not text.strip():
            return

        profile = self.presence.profile(sender_id)
        message = DirectMessage(
            id=new_id("dm"),
            from_id=sender_id,
            from_name=command.from_name or (profile.name if profile else DEFAULT_NAME),
            from_plan=command.from_plan or (profile.plan if profile else DEFAULT_PLAN),
            to_id=to_id,
            text=text,
            timestamp=utc_now_iso(),
            read=False,
        )

        key = dm_thread_key(sender_id, to_id)
        async with self._locks.hold(("dm", key)):
            thread = await self._thread(key)
            if not await self._persist(self.store.dm_threads, key, message):
                return
            thread.append(message)
            # Offline recipients get it from get_dm_history later
            await self.send_to_user(to_id, DirectMessageEvent(message=message))
            await self.send_to_user(sender_id, DirectMessageSentEvent(message=message))

    async def _on_direct_history(self, connection: Connection, command: DirectHistoryCommand) -> None:
        key = dm_thread_key(connection.user_id, command.with_id)
        async with self._locks.hold(("dm", key)):
            messages = list(await self._thread(key))
        await connection.send(DirectHistoryEvent(with_id=command.with_id, messages=messages))

    async def _on_typing(self, connection: Connection, command: TypingCommand) -> None:
        profile = self.presence.profile(connection.user_id)
        await self.broadcast(
            TypingEvent(
                user_id=connection.user_id,
                name=command.name or (profile.name if profile else None),
                is_typing=command.is_typing,
            )
        )

    async def _on_direct_typing(self, connection: Connection, command: DirectTypingCommand) -> None:
        if command.to_id == connection.user_id:
            return
        await self.send_to_user(
            command.to_id,
            DirectTypingEvent(
                user_id=connection.user_id, name=command.name, is_typing=command.is_typing
            ),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _thread(self, key: str) -> list[DirectMessage]:
        """In-memory mirror of one DM thread, loaded from the store on first use."""
        thread = self._threads.get(key)
        if thread is not None:
            return thread

        try:
            stored = await self.store.dm_threads.items(key)
        except StoreError as e:
            # Not cached: the next access retries the load
            logger.warning("Could not load DM thread", thread=key, error=str(e))
            return []

        thread = []
        for raw in stored:
            try:
                thread.append(DirectMessage.model_validate(raw))
            except ValidationError:
                logger.debug("Skipping unreadable stored direct message", thread=key)
        self._threads[key] = thread
        return thread

    async def _persist(self, collection: Collection, key: str, message: WireModel) -> bool:
        """
        Append a chat item to the durable log.

        Returns False only in strict mode when the write failed; otherwise a
        failure is logged and live chat carries on.
        """
        try:
            await collection.append(key, message.to_wire())
            return True
        except StoreError as e:
            if self.strict_persistence:
                logger.error(
                    "Chat persistence failed, message dropped",
                    collection=collection.name,
                    error=str(e),
                )
                return False
            logger.warning(
                "Chat persistence failed, delivering anyway",
                collection=collection.name,
                error=str(e),
            )
            return True
