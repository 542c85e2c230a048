"""
Webhook Base Classes

Signature verification strategies and the normalized event handed to
listeners once a provider callback has been accepted.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURE_HEADER = "X-Webhook-Signature"


@dataclass(frozen=True)
class WebhookEvent:
    """Accepted provider callback."""
    gateway: str
    payload: Dict[str, Any]
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class WebhookError(Exception):
    """Rejection at the webhook boundary, carrying the HTTP status to answer with."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 400,
    ):
        super().__init__(message)
        self.error_message = message
        self.error_code = error_code
        self.status_code = status_code


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class SignatureVerifier(ABC):
    """Decides whether an inbound callback really comes from the provider."""

    @abstractmethod
    async def verify(self, gateway: str, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        pass


class AcceptAllVerifier(SignatureVerifier):
    """
    Accepts every callback.

    Only suitable until a provider secret is configured; each call logs a
    warning so unverified traffic shows up in the logs.
    """

    async def verify(self, gateway: str, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        logger.warning(f"webhook.signature.unverified: accepting {gateway} webhook without verification")
        return True


class HmacSignatureVerifier(SignatureVerifier):
    """Hex HMAC-SHA256 of the raw request body, sent in a request header."""

    def __init__(self, secret: str, header: str = DEFAULT_SIGNATURE_HEADER):
        if not secret:
            raise ValueError("HMAC webhook secret must not be empty")
        self.secret = secret
        self.header = header

    def sign(self, raw_body: bytes) -> str:
        return hmac.new(self.secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    async def verify(self, gateway: str, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        signature = _header(headers, self.header)
        if not signature:
            logger.warning(f"Missing {self.header} header on {gateway} webhook")
            return False
        # Header values may carry non-ASCII characters
        received = signature.strip().lower().encode("utf-8")
        return hmac.compare_digest(self.sign(raw_body).encode("ascii"), received)
