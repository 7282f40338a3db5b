"""
Public feed of posts: newest first, capped retention, like/share counters.
"""

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import LikeUpdateEvent, NewPostEvent
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.ids import new_id, utc_now_iso

logger = get_logger(__name__)

LISTING_LIMIT = 100


async def list_posts(store: DocumentStore, limit: int = LISTING_LIMIT) -> list[Document]:
    return await store.posts.list(order_by="createdAt", descending=True, limit=limit)


async def create_post(
    store: DocumentStore,
    broadcaster: Broadcaster,
    fields: Document,
    max_posts: int = 500,
) -> Document:
    post = {
        **fields,
        "likes": fields.get("likes") or 0,
        "shares": fields.get("shares") or 0,
        "createdAt": utc_now_iso(),
        "id": fields.get("id") or new_id("post"),
    }
    await store.posts.upsert(post["id"], post)
    evicted = await store.posts.trim(max_posts)
    if evicted:
        logger.info("Old posts evicted", count=evicted)

    logger.info("Post created", post_id=post["id"])
    await broadcaster.publish(NewPostEvent(post=post))
    return post


async def like_post(store: DocumentStore, broadcaster: Broadcaster, post_id: str) -> int:
    """Bump the like counter. Unknown posts report 0 likes and broadcast nothing."""
    post = await store.posts.increment(post_id, "likes")
    if post is None:
        return 0
    likes = int(post["likes"])
    await broadcaster.publish(LikeUpdateEvent(post_id=post_id, likes=likes))
    return likes


async def share_post(store: DocumentStore, post_id: str) -> int:
    post = await store.posts.increment(post_id, "shares")
    return int(post["shares"]) if post else 0


async def delete_post(store: DocumentStore, post_id: str) -> bool:
    removed = await store.posts.remove(post_id)
    if removed:
        logger.info("Post deleted", post_id=post_id)
    return removed
