from __future__ import annotations

import inspect
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from paybridge.core.logging import get_logger
from paybridge.integrations.payment_gateways import ErrorCode, GatewayKey, PaymentError
from paybridge.integrations.webhooks.base import (
    AcceptAllVerifier,
    HmacSignatureVerifier,
    SignatureVerifier,
    WebhookError,
    WebhookEvent,
)
from paybridge.services.event_bus import EventBus, SDKEvent

if TYPE_CHECKING:
    from paybridge.services.payment_sdk import PaymentSDK

logger = get_logger(__name__)

WebhookParser = Callable[[Dict[str, Any]], Any]


def passthrough_parser(payload: Dict[str, Any]) -> Dict[str, Any]:
    return dict(payload)


class WebhookIntake:
    """
    Accepts provider callbacks for known gateways.

    Each gateway has a parser that normalizes the payload and an optional
    signature verifier; gateways without a verifier fall back to the default
    one. Accepted callbacks are published on the event bus as ``webhook``.
    """

    def __init__(
        self,
        events: Optional[EventBus] = None,
        default_verifier: Optional[SignatureVerifier] = None,
    ):
        self.events = events
        self.default_verifier = default_verifier or AcceptAllVerifier()
        self._parsers: Dict[str, WebhookParser] = {}
        self._verifiers: Dict[str, SignatureVerifier] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_sdk(cls, sdk: "PaymentSDK", secrets: Optional[Mapping[str, str]] = None) -> "WebhookIntake":
        intake = cls(events=sdk.events)
        keys = {key.value for key in GatewayKey} | set(sdk.gateways)
        for key in sorted(keys):
            intake.register_gateway(key)
        for key, secret in (secrets or {}).items():
            intake.register_gateway(key, verifier=HmacSignatureVerifier(secret))
        return intake

    def register_gateway(
        self,
        key: str,
        parser: Optional[WebhookParser] = None,
        verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        """Accept callbacks for ``key``. A later call replaces the parser or verifier given."""
        with self._lock:
            if parser is not None or key not in self._parsers:
                self._parsers[key] = parser or passthrough_parser
            if verifier is not None:
                self._verifiers[key] = verifier

    def supports(self, key: str) -> bool:
        with self._lock:
            return key in self._parsers

    async def handle(
        self,
        gateway: Optional[str],
        payload: Dict[str, Any],
        *,
        raw_body: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        if not gateway:
            raise WebhookError("Missing gateway parameter", error_code="MISSING_GATEWAY", status_code=400)

        with self._lock:
            verifier = self._verifiers.get(gateway, self.default_verifier)
            parser = self._parsers.get(gateway)

        if not await verifier.verify(gateway, raw_body, headers or {}):
            logger.warning("webhook.signature.rejected", gateway=gateway)
            raise WebhookError("Invalid signature", error_code="INVALID_SIGNATURE", status_code=401)

        if parser is None:
            logger.warning("webhook.gateway.unsupported", gateway=gateway)
            raise PaymentError(
                f"Unsupported gateway: {gateway}",
                ErrorCode.UNSUPPORTED_GATEWAY,
                status_code=400,
                provider=gateway,
            )

        parsed = parser(payload)
        if inspect.isawaitable(parsed):
            parsed = await parsed

        event = WebhookEvent(gateway=gateway, payload=parsed)
        if self.events is not None:
            self.events.emit(SDKEvent.WEBHOOK, event)
        logger.info("webhook.received", gateway=gateway, received_at=event.received_at.isoformat())
        return {"received": True}
