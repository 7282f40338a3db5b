"""
Groups and their message boards.
"""

from typing import Any

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import GroupMessageEvent, NewGroupEvent
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.ids import new_id, utc_now_iso

logger = get_logger(__name__)

LISTING_LIMIT = 50
MESSAGES_LIMIT = 100


async def list_groups(store: DocumentStore, limit: int = LISTING_LIMIT) -> list[Document]:
    return await store.groups.list(order_by="createdAt", descending=True, limit=limit)


async def create_group(store: DocumentStore, broadcaster: Broadcaster, fields: Document) -> Document:
    group = {
        **fields,
        "id": fields.get("id") or new_id("grp"),
        "createdAt": utc_now_iso(),
        "membersCount": 1,
    }
    await store.groups.upsert(group["id"], group)
    logger.info("Group created", group_id=group["id"], creator_id=group.get("creatorId"))
    await broadcaster.publish(NewGroupEvent(group=group))
    return group


async def list_messages(
    store: DocumentStore, group_id: str, limit: int = MESSAGES_LIMIT
) -> list[Document]:
    return await store.group_messages.items(group_id, limit=limit)


async def post_message(
    store: DocumentStore, broadcaster: Broadcaster, group_id: str, fields: Document
) -> Document:
    message = {**fields, "groupId": group_id, "timestamp": utc_now_iso()}
    await store.group_messages.append(group_id, message)
    await broadcaster.publish(GroupMessageEvent(group_id=group_id, message=message))
    return message


async def update_settings(
    store: DocumentStore, group_id: str, settings: dict[str, Any], requester_id: str | None
) -> bool:
    """
    Merge ``settings`` into the group when the requester created it.

    Any other requester is a silent no-op. Returns whether the group changed.
    """
    group = await store.groups.get(group_id)
    if group is None or requester_id is None or group.get("creatorId") != requester_id:
        logger.info("Group settings update ignored", group_id=group_id, requester_id=requester_id)
        return False

    # id and creator are not editable
    changes = {k: v for k, v in settings.items() if k not in ("id", "creatorId")}
    await store.groups.merge(group_id, changes)
    logger.info("Group settings updated", group_id=group_id, fields=sorted(changes))
    return True
