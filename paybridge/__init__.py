"""
paybridge: one interface over eSewa, Khalti, Stripe and custom payment gateways.
"""

from paybridge.integrations.payment_gateways import (
    Capability,
    ErrorCode,
    GatewayKey,
    InvoiceParams,
    InvoiceResult,
    InvoiceStatus,
    OperationResult,
    PaymentError,
    PaymentGateway,
    PaymentParams,
    PaymentResult,
    PaymentStatus,
    RefundParams,
    SubscriptionParams,
    SubscriptionResult,
    SubscriptionStatus,
    TransactionRecord,
    VerifyParams,
    WalletParams,
    WalletResult,
)
from paybridge.integrations.webhooks import (
    AcceptAllVerifier,
    HmacSignatureVerifier,
    WebhookError,
    WebhookEvent,
    WebhookIntake,
)
from paybridge.services import (
    DispatchEvent,
    EventBus,
    PaymentSDK,
    PaymentSDKConfig,
    SDKEvent,
    TransactionLedger,
)

__version__ = "0.1.0"

__all__ = [
    "AcceptAllVerifier",
    "Capability",
    "DispatchEvent",
    "ErrorCode",
    "EventBus",
    "GatewayKey",
    "HmacSignatureVerifier",
    "InvoiceParams",
    "InvoiceResult",
    "InvoiceStatus",
    "OperationResult",
    "PaymentError",
    "PaymentGateway",
    "PaymentParams",
    "PaymentResult",
    "PaymentSDK",
    "PaymentSDKConfig",
    "PaymentStatus",
    "RefundParams",
    "SDKEvent",
    "SubscriptionParams",
    "SubscriptionResult",
    "SubscriptionStatus",
    "TransactionLedger",
    "TransactionRecord",
    "VerifyParams",
    "WalletParams",
    "WalletResult",
    "WebhookError",
    "WebhookEvent",
    "WebhookIntake",
]
