"""
Webhook intake and HTTP boundary tests
"""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from paybridge.core.config import Settings
from paybridge.integrations.payment_gateways import ErrorCode, PaymentError
from paybridge.integrations.webhooks import (
    AcceptAllVerifier,
    HmacSignatureVerifier,
    SignatureVerifier,
    WebhookError,
    WebhookEvent,
    WebhookIntake,
)
from paybridge.main import create_application
from paybridge.services import EventBus

WEBHOOK_URL = "/webhooks/payments"
STRIPE_SECRET = "whsec_test_123"


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class TestSignatureVerifiers:

    @pytest.mark.asyncio
    async def test_accept_all(self):
        assert await AcceptAllVerifier().verify("khalti", b"{}", {}) is True

    @pytest.mark.asyncio
    async def test_hmac_accepts_correct_signature(self):
        body = b'{"id": "evt_1"}'
        verifier = HmacSignatureVerifier(STRIPE_SECRET)

        assert await verifier.verify("stripe", body, {"x-webhook-signature": _sign(STRIPE_SECRET, body)})

    @pytest.mark.asyncio
    async def test_hmac_rejects_wrong_signature(self):
        body = b'{"id": "evt_1"}'
        verifier = HmacSignatureVerifier(STRIPE_SECRET)

        assert not await verifier.verify("stripe", body, {"X-Webhook-Signature": _sign("other", body)})
        assert not await verifier.verify("stripe", body, {})

    @pytest.mark.asyncio
    async def test_hmac_custom_header(self):
        body = b"{}"
        verifier = HmacSignatureVerifier("secret", header="Khalti-Signature")

        assert await verifier.verify("khalti", body, {"Khalti-Signature": _sign("secret", body).upper()})

    def test_hmac_requires_secret(self):
        with pytest.raises(ValueError):
            HmacSignatureVerifier("")

    @pytest.mark.asyncio
    async def test_hmac_rejects_non_ascii_signature(self):
        verifier = HmacSignatureVerifier(STRIPE_SECRET)

        assert not await verifier.verify("stripe", b"{}", {"X-Webhook-Signature": "caf\xe9"})


class TestWebhookIntake:

    @pytest.fixture
    def intake(self, event_bus):
        intake = WebhookIntake(events=event_bus)
        intake.register_gateway("khalti")
        return intake

    @pytest.mark.asyncio
    async def test_accepts_and_emits(self, intake, event_bus):
        received = []
        event_bus.on("webhook", received.append)

        response = await intake.handle("khalti", {"pidx": "abc", "status": "Completed"})

        assert response == {"received": True}
        assert len(received) == 1
        assert isinstance(received[0], WebhookEvent)
        assert received[0].gateway == "khalti"
        assert received[0].payload == {"pidx": "abc", "status": "Completed"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("gateway", [None, ""])
    async def test_missing_gateway(self, intake, gateway):
        with pytest.raises(WebhookError) as exc_info:
            await intake.handle(gateway, {})

        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "MISSING_GATEWAY"

    @pytest.mark.asyncio
    async def test_rejected_signature(self, intake, event_bus):
        verifier = AsyncMock(spec=SignatureVerifier)
        verifier.verify.return_value = False
        intake.register_gateway("khalti", verifier=verifier)
        received = []
        event_bus.on("webhook", received.append)

        with pytest.raises(WebhookError) as exc_info:
            await intake.handle("khalti", {"pidx": "abc"}, raw_body=b'{"pidx": "abc"}', headers={"a": "b"})

        assert exc_info.value.status_code == 401
        assert exc_info.value.error_code == "INVALID_SIGNATURE"
        verifier.verify.assert_awaited_once_with("khalti", b'{"pidx": "abc"}', {"a": "b"})
        assert received == []

    @pytest.mark.asyncio
    async def test_unsupported_gateway(self, intake):
        with pytest.raises(PaymentError) as exc_info:
            await intake.handle("paypal", {})

        assert exc_info.value.code == ErrorCode.UNSUPPORTED_GATEWAY
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_custom_parser(self, intake, event_bus):
        received = []
        event_bus.on("webhook", received.append)
        intake.register_gateway("khalti", parser=lambda payload: {"reference": payload["pidx"]})

        await intake.handle("khalti", {"pidx": "abc"})

        assert received[0].payload == {"reference": "abc"}

    @pytest.mark.asyncio
    async def test_works_without_event_bus(self):
        intake = WebhookIntake()
        intake.register_gateway("esewa")

        assert await intake.handle("esewa", {}) == {"received": True}

    def test_from_sdk_seeds_builtin_and_custom_gateways(self, sdk):
        intake = WebhookIntake.from_sdk(sdk, secrets={"stripe": STRIPE_SECRET})

        for key in ("esewa", "khalti", "stripe", "demo", "full"):
            assert intake.supports(key)
        assert intake.events is sdk.events
        assert not intake.supports("paypal")


class TestWebhookEndpoint:

    @pytest.fixture
    def app(self, sdk):
        settings = Settings(webhook_secrets={"stripe": STRIPE_SECRET})
        return create_application(sdk=sdk, settings=settings)

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_gateway_from_query(self, client, sdk):
        received = []
        sdk.events.on("webhook", received.append)

        response = client.post(f"{WEBHOOK_URL}?gateway=khalti", json={"pidx": "abc"})

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert received[0].gateway == "khalti"

    def test_gateway_from_body(self, client):
        response = client.post(WEBHOOK_URL, json={"gateway": "esewa", "transaction_uuid": "u1"})

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_custom_gateway_accepted(self, client):
        response = client.post(f"{WEBHOOK_URL}?gateway=demo", json={})

        assert response.status_code == 200

    def test_missing_gateway(self, client):
        response = client.post(WEBHOOK_URL, json={"status": "Completed"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing gateway parameter"}

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
    def test_invalid_payload(self, client, body):
        response = client.post(
            f"{WEBHOOK_URL}?gateway=khalti",
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook payload"}

    def test_invalid_signature(self, client):
        response = client.post(f"{WEBHOOK_URL}?gateway=stripe", json={"id": "evt_1"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}

    def test_non_ascii_signature_rejected(self, client):
        response = client.post(
            f"{WEBHOOK_URL}?gateway=stripe",
            content=b'{"id": "evt_1"}',
            headers=[("Content-Type", "application/json"), ("X-Webhook-Signature", "caf\xe9".encode("latin-1"))],
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}

    def test_valid_signature(self, client):
        body = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded"}).encode("utf-8")

        response = client.post(
            f"{WEBHOOK_URL}?gateway=stripe",
            content=body,
            headers={"Content-Type": "application/json", "X-Webhook-Signature": _sign(STRIPE_SECRET, body)},
        )

        assert response.status_code == 200

    def test_unsupported_gateway_uses_error_responder(self, client):
        response = client.post(f"{WEBHOOK_URL}?gateway=paypal", json={})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Unsupported gateway: paypal",
            "code": "UNSUPPORTED_GATEWAY",
        }

    def test_payment_error_without_status_answers_500(self, app, sdk):
        def failing_listener(event):
            raise PaymentError("Ledger unavailable", "LEDGER_DOWN")

        sdk.events.on("webhook", failing_listener)
        client = TestClient(app)

        response = client.post(f"{WEBHOOK_URL}?gateway=khalti", json={})

        assert response.status_code == 500
        assert response.json() == {"error": "Ledger unavailable", "code": "LEDGER_DOWN"}

    def test_unexpected_error_answers_generic_500(self, app, sdk):
        def failing_listener(event):
            raise RuntimeError("boom")

        sdk.events.on("webhook", failing_listener)
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post(f"{WEBHOOK_URL}?gateway=khalti", json={})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_app_state(self, app, sdk):
        assert app.state.payment_sdk is sdk
        assert isinstance(app.state.webhook_intake, WebhookIntake)
        assert isinstance(app.state.webhook_intake.events, EventBus)
