from fastapi import APIRouter, Depends

from viralboost.errors import ValidationFailed
from viralboost.models.api.requests import BanRequest, ContentRequest
from viralboost.routes.deps import admin_query_key, get_broadcaster, get_store, require_admin_key
from viralboost.services import moderation_service, user_service
from viralboost.services.broadcaster import Broadcaster
from viralboost.store.base import DocumentStore

router = APIRouter(prefix="/api", tags=["moderation"])


@router.post("/report")
async def submit_report(body: ContentRequest, store: DocumentStore = Depends(get_store)):
    await moderation_service.submit_report(store, body.client_fields())
    return {"ok": True}


@router.post("/admin-dm")
async def submit_admin_dm(body: ContentRequest, store: DocumentStore = Depends(get_store)):
    await moderation_service.submit_admin_dm(store, body.client_fields())
    return {"ok": True}


@router.post("/contact-admin")
async def contact_admin(body: ContentRequest, store: DocumentStore = Depends(get_store)):
    await moderation_service.submit_admin_dm(store, body.client_fields())
    return {"ok": True}


# Admin endpoints: ?key= on GET, "key" in the body on POST


@router.get("/admin/all-users", dependencies=[Depends(admin_query_key)])
async def all_users(store: DocumentStore = Depends(get_store)):
    return await user_service.list_users(store)


@router.get("/admin/reports", dependencies=[Depends(admin_query_key)])
async def reports(store: DocumentStore = Depends(get_store)):
    return await moderation_service.list_reports(store)


@router.get("/admin/dms", dependencies=[Depends(admin_query_key)])
async def admin_dms(store: DocumentStore = Depends(get_store)):
    return await moderation_service.list_admin_dms(store)


@router.get("/admin/stats", dependencies=[Depends(admin_query_key)])
async def stats(store: DocumentStore = Depends(get_store)):
    return await moderation_service.admin_stats(store)


@router.post("/admin/ban")
async def ban(
    body: BanRequest,
    store: DocumentStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    require_admin_key(body.key)
    if not body.email:
        raise ValidationFailed("email requis")
    await user_service.ban_user(store, broadcaster, body.email)
    return {"ok": True}
