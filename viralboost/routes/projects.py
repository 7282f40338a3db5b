from fastapi import APIRouter, Body, Depends

from viralboost.config import settings
from viralboost.models.api.requests import AdminKeyRequest, ContentRequest, VoteRequest
from viralboost.routes.deps import get_broadcaster, get_store, get_vote_guard, require_admin_key
from viralboost.services import showcase_service
from viralboost.services.broadcaster import Broadcaster
from viralboost.services.vote_service import VoteGuard
from viralboost.store.base import DocumentStore

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("")
async def list_projects(store: DocumentStore = Depends(get_store)):
    return await showcase_service.list_projects(store)


@router.post("")
async def create_project(
    body: ContentRequest,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    guard: VoteGuard = Depends(get_vote_guard),
):
    project = await showcase_service.create_project(
        store, broadcaster, guard, body.client_fields(), max_projects=settings.MAX_PROJECTS
    )
    return {"ok": True, "project": project}


@router.post("/{project_id}/vote")
async def vote(
    project_id: str,
    body: VoteRequest,
    guard: VoteGuard = Depends(get_vote_guard),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    result = await showcase_service.vote(guard, broadcaster, project_id, body.user_id)
    if not result.accepted:
        return {"ok": False, "reason": result.reason}
    return {"ok": True, "votes": result.votes}


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    body: AdminKeyRequest | None = Body(default=None),
    guard: VoteGuard = Depends(get_vote_guard),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    require_admin_key(body.key if body else None)
    await showcase_service.delete_project(guard, broadcaster, project_id)
    return {"ok": True}
