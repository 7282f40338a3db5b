"""
Request-scoped access to the objects built in the application lifespan.
"""

from fastapi import Request

from viralboost.config import settings
from viralboost.errors import AccessDenied
from viralboost.services.ai_service import AIService
from viralboost.services.broadcaster import Broadcaster
from viralboost.services.payment_service import PaymentService
from viralboost.services.vote_service import VoteGuard
from viralboost.store.base import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_vote_guard(request: Request) -> VoteGuard:
    return request.app.state.vote_guard


def get_payments(request: Request) -> PaymentService:
    return request.app.state.payments


def get_ai(request: Request) -> AIService:
    return request.app.state.ai


def require_admin_key(key: str | None) -> None:
    if not key or key != settings.ADMIN_KEY:
        raise AccessDenied()


async def admin_query_key(key: str | None = None) -> None:
    """Admin check for GET endpoints: ``?key=...``."""
    require_admin_key(key)
