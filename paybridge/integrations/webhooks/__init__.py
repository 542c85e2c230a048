"""
Inbound payment webhooks

Signature verification strategies and the intake that accepts provider
callbacks and publishes them as ``webhook`` events.
"""

from .base import (
    AcceptAllVerifier,
    HmacSignatureVerifier,
    SignatureVerifier,
    WebhookError,
    WebhookEvent,
)
from .intake import WebhookIntake, passthrough_parser

__all__ = [
    "AcceptAllVerifier",
    "HmacSignatureVerifier",
    "SignatureVerifier",
    "WebhookError",
    "WebhookEvent",
    "WebhookIntake",
    "passthrough_parser",
]
