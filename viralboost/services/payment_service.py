"""
Payment collaborator: Stripe payment intents over the REST API and webhook
signature verification.

The Stripe signature header looks like ``t=1700000000,v1=<hex>,v1=<hex>``;
the signed payload is ``"{t}.{raw body}"`` under HMAC-SHA256 with the
webhook secret.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any

import httpx

from viralboost.config import Settings
from viralboost.errors import UpstreamError, ValidationFailed
from viralboost.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


@dataclass(frozen=True)
class Plan:
    name: str
    price_cents: int


PLANS = {
    "free": Plan("free", 0),
    "starter": Plan("starter", 300),
    "pro": Plan("pro", 1499),
    "elite": Plan("elite", 3999),
}


class WebhookSignatureError(ValidationFailed):
    """The Stripe-Signature header is missing, stale or does not match."""


def _parse_signature_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise WebhookSignatureError("Invalid signature timestamp") from e
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed signature header")
    return timestamp, signatures


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


class PaymentService:
    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.secret_key = config.STRIPE_SECRET_KEY
        self.webhook_secret = config.STRIPE_WEBHOOK_SECRET
        self.api_base = config.STRIPE_API_BASE.rstrip("/")
        self.currency = config.STRIPE_CURRENCY
        self.timeout = config.PAYMENT_TIMEOUT_SECONDS
        self._transport = transport

    async def create_payment_intent(self, plan_name: str | None) -> str:
        """
        Create a payment intent for a paid plan and return its client secret.

        Raises:
            ValidationFailed: unknown or free plan
            UpstreamError: Stripe unreachable, timed out or refused the request
        """
        plan = PLANS.get(plan_name or "")
        if plan is None or plan.price_cents == 0:
            raise ValidationFailed("Plan invalide ou gratuit")

        if not self.secret_key:
            raise UpstreamError("Payment provider not configured", service="stripe", recoverable=False)

        form = {
            "amount": str(plan.price_cents),
            "currency": self.currency,
            "automatic_payment_methods[enabled]": "true",
            "metadata[service]": "viralboost",
            "metadata[plan]": plan.name,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.api_base,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/payment_intents",
                    data=form,
                    auth=(self.secret_key, ""),
                )
        except httpx.TimeoutException as e:
            logger.error("Stripe request timed out", plan=plan.name, timeout=self.timeout)
            raise UpstreamError("Payment provider timed out", service="stripe") from e
        except httpx.RequestError as e:
            logger.error("Stripe request failed", plan=plan.name, error=str(e), error_type=type(e).__name__)
            raise UpstreamError(f"Payment provider unreachable: {e}", service="stripe") from e

        body = self._json(response)
        if response.status_code >= 400:
            message = (body.get("error") or {}).get("message") or f"Stripe error {response.status_code}"
            logger.error("Stripe rejected payment intent", plan=plan.name, status_code=response.status_code)
            raise UpstreamError(message, service="stripe", recoverable=response.status_code >= 500)

        client_secret = body.get("client_secret")
        if not client_secret:
            raise UpstreamError("Payment provider returned no client secret", service="stripe")

        logger.info("Payment intent created", plan=plan.name, amount=plan.price_cents, intent_id=body.get("id"))
        return client_secret

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def verify_webhook(
        self, payload: bytes, signature_header: str | None, now: float | None = None
    ) -> dict[str, Any]:
        """
        Check the signature of a webhook delivery and return the decoded event.

        Without a configured webhook secret nothing is verified and an
        undecodable payload yields an empty event.
        """
        if not self.webhook_secret:
            try:
                return self._decode_event(payload)
            except ValidationFailed:
                return {}

        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        timestamp, signatures = _parse_signature_header(signature_header)
        expected = compute_signature(payload, timestamp, self.webhook_secret)
        if not any(hmac.compare_digest(expected, sig) for sig in signatures):
            logger.warning("Webhook signature mismatch")
            raise WebhookSignatureError("No signatures found matching the expected signature")

        current = time.time() if now is None else now
        if abs(current - timestamp) > SIGNATURE_TOLERANCE_SECONDS:
            logger.warning("Webhook timestamp outside tolerance", timestamp=timestamp)
            raise WebhookSignatureError("Timestamp outside the tolerance zone")

        return self._decode_event(payload)

    @staticmethod
    def _decode_event(payload: bytes) -> dict[str, Any]:
        try:
            event = json.loads(payload or b"{}")
        except ValueError as e:
            raise ValidationFailed("Invalid webhook payload") from e
        return event if isinstance(event, dict) else {}

    def handle_event(self, event: dict[str, Any]) -> None:
        if event.get("type") == "payment_intent.succeeded":
            intent = (event.get("data") or {}).get("object") or {}
            plan = (intent.get("metadata") or {}).get("plan")
            logger.info("Payment succeeded", plan=plan, intent_id=intent.get("id"))
        else:
            logger.debug("Webhook event ignored", event_type=event.get("type"))
