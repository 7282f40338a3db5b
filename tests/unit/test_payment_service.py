"""
Tests for Stripe payment intents and webhook signature checks.
"""

import json
import time

import httpx
import pytest

from viralboost.config import Settings
from viralboost.errors import UpstreamError, ValidationFailed
from viralboost.services.payment_service import (
    PaymentService,
    WebhookSignatureError,
    compute_signature,
)

WEBHOOK_SECRET = "whsec_test"


def _service(handler=None, **overrides) -> PaymentService:
    config = Settings(
        STRIPE_SECRET_KEY=overrides.pop("secret_key", "sk_test_123"),
        STRIPE_WEBHOOK_SECRET=overrides.pop("webhook_secret", None),
    )
    transport = httpx.MockTransport(handler) if handler else None
    return PaymentService(config, transport=transport)


def _signed_header(payload: bytes, timestamp: int, secret: str = WEBHOOK_SECRET) -> str:
    return f"t={timestamp},v1={compute_signature(payload, timestamp, secret)}"


# ---------------------------------------------------------------------------
# payment intents
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_payment_intent_posts_plan_price():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["form"] = dict(httpx.QueryParams(request.content.decode()))
        captured["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"id": "pi_1", "client_secret": "pi_1_secret_abc"})

    secret = await _service(handler).create_payment_intent("pro")

    assert secret == "pi_1_secret_abc"
    assert captured["path"] == "/v1/payment_intents"
    assert captured["form"]["amount"] == "1499"
    assert captured["form"]["currency"] == "eur"
    assert captured["form"]["metadata[plan]"] == "pro"
    assert captured["auth"].startswith("Basic ")


@pytest.mark.asyncio
@pytest.mark.parametrize("plan", ["free", "platinum", "", None])
async def test_invalid_or_free_plan_is_rejected(plan):
    def handler(request):
        raise AssertionError("Stripe must not be called")

    with pytest.raises(ValidationFailed) as exc_info:
        await _service(handler).create_payment_intent(plan)

    assert exc_info.value.message == "Plan invalide ou gratuit"


@pytest.mark.asyncio
async def test_stripe_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

    with pytest.raises(UpstreamError) as exc_info:
        await _service(handler).create_payment_intent("starter")

    assert exc_info.value.message == "Your card was declined."
    assert exc_info.value.recoverable is False


@pytest.mark.asyncio
async def test_unreachable_stripe_becomes_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        await _service(handler).create_payment_intent("elite")


@pytest.mark.asyncio
async def test_missing_secret_key_is_reported():
    with pytest.raises(UpstreamError):
        await _service(secret_key=None).create_payment_intent("pro")


# ---------------------------------------------------------------------------
# webhooks
# ---------------------------------------------------------------------------


def test_valid_signature_returns_event():
    payload = json.dumps({"type": "payment_intent.succeeded"}).encode()
    now = int(time.time())
    service = _service(webhook_secret=WEBHOOK_SECRET)

    event = service.verify_webhook(payload, _signed_header(payload, now), now=now)

    assert event["type"] == "payment_intent.succeeded"


def test_any_matching_v1_signature_is_accepted():
    payload = b'{"type": "charge.refunded"}'
    now = int(time.time())
    valid = compute_signature(payload, now, WEBHOOK_SECRET)
    header = f"t={now},v1={'0' * 64},v1={valid}"

    event = _service(webhook_secret=WEBHOOK_SECRET).verify_webhook(payload, header, now=now)

    assert event["type"] == "charge.refunded"


def test_tampered_payload_is_rejected():
    payload = b'{"type": "payment_intent.succeeded"}'
    now = int(time.time())
    header = _signed_header(payload, now)

    with pytest.raises(WebhookSignatureError):
        _service(webhook_secret=WEBHOOK_SECRET).verify_webhook(
            b'{"type": "payment_intent.canceled"}', header, now=now
        )


def test_stale_timestamp_is_rejected():
    payload = b"{}"
    signed_at = int(time.time()) - 3600

    with pytest.raises(WebhookSignatureError):
        _service(webhook_secret=WEBHOOK_SECRET).verify_webhook(
            payload, _signed_header(payload, signed_at), now=signed_at + 3600
        )


@pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "t=123"])
def test_malformed_signature_header_is_rejected(header):
    with pytest.raises(WebhookSignatureError) as exc_info:
        _service(webhook_secret=WEBHOOK_SECRET).verify_webhook(b"{}", header)

    assert exc_info.value.status_code == 400


def test_without_webhook_secret_payload_is_accepted_unverified():
    service = _service(webhook_secret=None)

    assert service.verify_webhook(b'{"type": "ping"}', None) == {"type": "ping"}
    assert service.verify_webhook(b"not json", None) == {}
