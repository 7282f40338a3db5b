from fastapi import APIRouter, Depends, Request

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.middleware.rate_limit_dependencies import rate_limit_payment
from viralboost.models.api.requests import PaymentIntentRequest
from viralboost.routes.deps import get_payments
from viralboost.services.payment_service import PaymentService

router = APIRouter(prefix="/api", tags=["payments"])
logger = get_logger(__name__)


@router.post("/create-payment-intent", dependencies=[Depends(rate_limit_payment)])
async def create_payment_intent(
    body: PaymentIntentRequest, payments: PaymentService = Depends(get_payments)
):
    client_secret = await payments.create_payment_intent(body.plan)
    return {"clientSecret": client_secret}


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, payments: PaymentService = Depends(get_payments)):
    """Stripe signs the raw body, so it is read before any JSON parsing."""
    payload = await request.body()
    event = payments.verify_webhook(payload, request.headers.get("stripe-signature"))
    payments.handle_event(event)
    return {"received": True}
