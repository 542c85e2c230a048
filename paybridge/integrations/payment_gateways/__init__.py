"""
Payment gateway integration modules

Provides the adapter contract and the built-in adapters (eSewa, Khalti,
Stripe) with a consistent interface and error handling.
"""

from .base import (
    Capability,
    ErrorCode,
    GatewayKey,
    InvoiceParams,
    InvoiceResult,
    InvoiceStatus,
    OperationResult,
    PaymentError,
    PaymentGateway,
    PaymentGatewayFactory,
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
    conforms_to_contract,
    describe_capabilities,
)
from .esewa_adapter import EsewaAdapter
from .khalti_adapter import KhaltiAdapter
from .stripe_adapter import StripeAdapter

PaymentGatewayFactory.register_gateway(GatewayKey.ESEWA, EsewaAdapter)
PaymentGatewayFactory.register_gateway(GatewayKey.KHALTI, KhaltiAdapter)
PaymentGatewayFactory.register_gateway(GatewayKey.STRIPE, StripeAdapter)

__all__ = [
    "Capability",
    "ErrorCode",
    "EsewaAdapter",
    "GatewayKey",
    "InvoiceParams",
    "InvoiceResult",
    "InvoiceStatus",
    "KhaltiAdapter",
    "OperationResult",
    "PaymentError",
    "PaymentGateway",
    "PaymentGatewayFactory",
    "PaymentParams",
    "PaymentResult",
    "PaymentStatus",
    "RefundParams",
    "StripeAdapter",
    "SubscriptionParams",
    "SubscriptionResult",
    "SubscriptionStatus",
    "TransactionRecord",
    "VerifyParams",
    "WalletParams",
    "WalletResult",
    "conforms_to_contract",
    "describe_capabilities",
]
