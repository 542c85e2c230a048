from paybridge.services.event_bus import DispatchEvent, EventBus, SDKEvent
from paybridge.services.payment_sdk import PaymentSDK, PaymentSDKConfig
from paybridge.services.transaction_ledger import TransactionLedger

__all__ = [
    "DispatchEvent",
    "EventBus",
    "PaymentSDK",
    "PaymentSDKConfig",
    "SDKEvent",
    "TransactionLedger",
]
