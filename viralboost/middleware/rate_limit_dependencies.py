"""
Rate Limit Dependencies - per-IP budgets for the AI and payment endpoints.

Usage:
    @router.post("/create-payment-intent", dependencies=[Depends(rate_limit_payment)])
    async def create_payment_intent(...):
        ...
"""

from fastapi import HTTPException, Request, status

from viralboost.config import settings
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.middleware.rate_limiter import rate_limiter

logger = get_logger(__name__)


async def _enforce(request: Request, scope: str, limit: int) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return

    # Set by RequestContextMiddleware
    ip_address = getattr(request.state, "ip_address", None)
    if not ip_address:
        logger.warning("Rate limit check skipped - no IP address", path=request.url.path)
        return

    decision = await rate_limiter.check(scope, ip_address, limit)
    if decision.allowed:
        return

    logger.warning(
        "IP rate limit exceeded",
        scope=scope,
        ip_address=ip_address,
        limit=decision.limit,
        retry_after=decision.retry_after,
        path=request.url.path,
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Trop de requêtes. Réessaie dans {decision.retry_after} secondes.",
        headers={"Retry-After": str(decision.retry_after)},
    )


async def rate_limit_ai(request: Request) -> None:
    await _enforce(request, "ai", settings.get_rate_limits()["ai_per_minute"])


async def rate_limit_payment(request: Request) -> None:
    await _enforce(request, "payment", settings.get_rate_limits()["payment_per_minute"])
