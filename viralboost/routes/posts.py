from fastapi import APIRouter, Depends

from viralboost.config import settings
from viralboost.models.api.requests import ContentRequest
from viralboost.routes.deps import get_broadcaster, get_store
from viralboost.services import feed_service
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import DocumentStore

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("")
async def list_posts(store: DocumentStore = Depends(get_store)):
    return await feed_service.list_posts(store)


@router.post("")
async def create_post(
    body: ContentRequest,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    post = await feed_service.create_post(
        store, broadcaster, body.client_fields(), max_posts=settings.MAX_POSTS
    )
    return {"ok": True, "post": post}


@router.post("/{post_id}/like")
async def like_post(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    likes = await feed_service.like_post(store, broadcaster, post_id)
    return {"ok": True, "likes": likes}


@router.post("/{post_id}/share")
async def share_post(post_id: str, store: DocumentStore = Depends(get_store)):
    shares = await feed_service.share_post(store, post_id)
    return {"ok": True, "shares": shares}


@router.delete("/{post_id}")
async def delete_post(post_id: str, store: DocumentStore = Depends(get_store)):
    await feed_service.delete_post(store, post_id)
    return {"ok": True}
