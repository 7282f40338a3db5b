from fastapi import APIRouter, Depends

from viralboost.errors import NotFound
from viralboost.models.api.requests import RegisterUserRequest
from viralboost.routes.deps import get_store
from viralboost.services import user_service
from viralboost.store.base import DocumentStore

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/register-user")
async def register_user(body: RegisterUserRequest, store: DocumentStore = Depends(get_store)):
    await user_service.register_user(store, body)
    return {"ok": True}


@router.get("/user/{email}")
async def get_user(email: str, store: DocumentStore = Depends(get_store)):
    user = await user_service.get_user(store, email)
    if user is None:
        raise NotFound("Utilisateur non trouvé")
    return user
