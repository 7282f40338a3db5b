"""
Realtime wire protocol.

Inbound frames are parsed into a closed set of commands discriminated by
``type``; anything else is rejected by ``parse_command``. Outbound events
are a closed set of models serialized with camelCase keys.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from viralboost.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Domain payloads carried by events
# ---------------------------------------------------------------------------


class PresenceProfile(WireModel):
    """Lightweight profile shown in the online roster."""

    id: str
    name: str
    plan: str
    avatar: str


class PublicMessage(WireModel):
    id: str
    sender_id: str
    sender_name: str
    sender_plan: str
    text: str
    timestamp: str
    avatar: str


class DirectMessage(WireModel):
    id: str
    from_id: str
    from_name: str
    from_plan: str
    to_id: str
    text: str
    timestamp: str
    read: bool = False


# ---------------------------------------------------------------------------
# Inbound commands
# ---------------------------------------------------------------------------


class JoinCommand(WireModel):
    type: Literal["join"]
    user_id: str = Field(min_length=1)
    name: str | None = None
    plan: str | None = None
    avatar: str | None = None


class MessageCommand(WireModel):
    type: Literal["message"]
    text: str = ""
    name: str | None = None
    plan: str | None = None
    avatar: str | None = None


class DirectMessageCommand(WireModel):
    type: Literal["dm"]
    to_id: str | None = None
    text: str = ""
    from_name: str | None = None
    from_plan: str | None = None


class DirectHistoryCommand(WireModel):
    type: Literal["get_dm_history"]
    with_id: str = Field(min_length=1)


class TypingCommand(WireModel):
    type: Literal["typing"]
    name: str | None = None
    is_typing: bool = False


class DirectTypingCommand(WireModel):
    type: Literal["dm_typing"]
    to_id: str = Field(min_length=1)
    name: str | None = None
    is_typing: bool = False


InboundCommand = Annotated[
    JoinCommand
    | MessageCommand
    | DirectMessageCommand
    | DirectHistoryCommand
    | TypingCommand
    | DirectTypingCommand,
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundCommand] = TypeAdapter(InboundCommand)


def parse_command(raw: str | bytes) -> InboundCommand | None:
    """Parse one inbound frame; None for invalid JSON, unknown type or bad fields."""
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as e:
        logger.debug(
            "Dropping malformed realtime frame",
            errors=[err.get("type") for err in e.errors(include_url=False)],
        )
        return None


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


class HistoryEvent(WireModel):
    type: Literal["history"] = "history"
    messages: list[PublicMessage]


class ProjectsHistoryEvent(WireModel):
    type: Literal["projects_history"] = "projects_history"
    projects: list[dict[str, Any]]


class PostsHistoryEvent(WireModel):
    type: Literal["posts_history"] = "posts_history"
    posts: list[dict[str, Any]]


class OnlineUsersEvent(WireModel):
    type: Literal["online_users"] = "online_users"
    users: list[PresenceProfile]


class UserJoinedEvent(WireModel):
    type: Literal["user_joined"] = "user_joined"
    user: PresenceProfile


class UserLeftEvent(WireModel):
    type: Literal["user_left"] = "user_left"
    user_id: str


class MessageEvent(WireModel):
    type: Literal["message"] = "message"
    message: PublicMessage


class DirectMessageEvent(WireModel):
    type: Literal["dm"] = "dm"
    message: DirectMessage


class DirectMessageSentEvent(WireModel):
    type: Literal["dm_sent"] = "dm_sent"
    message: DirectMessage


class DirectHistoryEvent(WireModel):
    type: Literal["dm_history"] = "dm_history"
    with_id: str
    messages: list[DirectMessage]


class TypingEvent(WireModel):
    type: Literal["typing"] = "typing"
    user_id: str
    name: str | None = None
    is_typing: bool


class DirectTypingEvent(WireModel):
    type: Literal["dm_typing"] = "dm_typing"
    user_id: str
    name: str | None = None
    is_typing: bool


# State changes published by the HTTP layer


class VoteUpdateEvent(WireModel):
    type: Literal["vote_update"] = "vote_update"
    project_id: str
    votes: int


class NewProjectEvent(WireModel):
    type: Literal["new_project"] = "new_project"
    project: dict[str, Any]


class NewPostEvent(WireModel):
    type: Literal["new_post"] = "new_post"
    post: dict[str, Any]


class NewGroupEvent(WireModel):
    type: Literal["new_group"] = "new_group"
    group: dict[str, Any]


class GroupMessageEvent(WireModel):
    type: Literal["group_message"] = "group_message"
    group_id: str
    message: dict[str, Any]


class LikeUpdateEvent(WireModel):
    type: Literal["like_update"] = "like_update"
    post_id: str
    likes: int


class ProjectDeletedEvent(WireModel):
    type: Literal["project_deleted"] = "project_deleted"
    project_id: str


class BannedEvent(WireModel):
    type: Literal["banned"] = "banned"
    message: str


StateChangeEvent = (
    VoteUpdateEvent
    | NewProjectEvent
    | NewPostEvent
    | NewGroupEvent
    | GroupMessageEvent
    | LikeUpdateEvent
    | ProjectDeletedEvent
    | BannedEvent
)
