from fastapi import APIRouter, Depends

from viralboost.models.api.requests import ContentRequest, GroupSettingsRequest
from viralboost.routes.deps import get_broadcaster, get_store
from viralboost.services import group_service
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import DocumentStore

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.get("")
async def list_groups(store: DocumentStore = Depends(get_store)):
    return await group_service.list_groups(store)


@router.post("")
async def create_group(
    body: ContentRequest,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    group = await group_service.create_group(store, broadcaster, body.client_fields())
    return {"ok": True, "group": group}


@router.get("/{group_id}/messages")
async def list_messages(group_id: str, store: DocumentStore = Depends(get_store)):
    return await group_service.list_messages(store, group_id)


@router.post("/{group_id}/messages")
async def post_message(
    group_id: str,
    body: ContentRequest,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    await group_service.post_message(store, broadcaster, group_id, body.client_fields())
    return {"ok": True}


@router.put("/{group_id}/settings")
async def update_settings(
    group_id: str, body: GroupSettingsRequest, store: DocumentStore = Depends(get_store)
):
    await group_service.update_settings(store, group_id, body.settings, body.requester_id)
    return {"ok": True}
