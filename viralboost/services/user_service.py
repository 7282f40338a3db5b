"""
User accounts keyed by email.

Registration is an idempotent upsert: mutable profile fields are
last-write-wins while ``createdAt`` keeps the value of the first insert.
Users are never hard-deleted; a ban only flags the record.
"""

from typing import Any

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.models.api.requests import RegisterUserRequest
from viralboost.realtime.events import BannedEvent
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.ids import utc_now_iso

logger = get_logger(__name__)

BAN_MESSAGE = "Ton compte a été suspendu."


async def register_user(store: DocumentStore, request: RegisterUserRequest) -> Document:
    now = utc_now_iso()
    fields: dict[str, Any] = {
        "email": request.email,
        "name": request.name,
        "username": request.username,
        "plan": request.plan or "free",
        "avatar": request.avatar,
        "updatedAt": now,
    }
    if request.projects_count is not None:
        fields["projectsCount"] = request.projects_count

    user = await store.users.merge(
        request.email,
        fields,
        on_insert={"createdAt": request.created_at or now, "projectsCount": 0},
    )
    logger.info("User registered", email=request.email, plan=fields["plan"])
    return user


async def get_user(store: DocumentStore, email: str) -> Document | None:
    return await store.users.get(email)


async def list_users(store: DocumentStore) -> list[Document]:
    """All users, newest registration first."""
    return await store.users.list(order_by="createdAt", descending=True)


async def ban_user(store: DocumentStore, broadcaster: Broadcaster, email: str) -> bool:
    """
    Flag ``email`` as banned and notify their open connections.

    The notification goes out even for an unknown email so a session joined
    under that id is still told. Returns whether a stored user was flagged.
    """
    user = await store.users.get(email)
    if user is not None:
        await store.users.merge(email, {"banned": True, "bannedAt": utc_now_iso()})

    await broadcaster.publish_to(email, BannedEvent(message=BAN_MESSAGE))
    logger.warning("User banned", email=email, known_user=user is not None)
    return user is not None
