"""
Shared test configuration and fixtures for the paybridge test suite.
"""

from typing import Any, Dict, List

import pytest

from paybridge.core.config import clear_settings_cache
from paybridge.integrations.payment_gateways import (
    InvoiceResult,
    InvoiceStatus,
    PaymentGateway,
    PaymentResult,
    PaymentStatus,
    SubscriptionResult,
    SubscriptionStatus,
    WalletResult,
)
from paybridge.services import EventBus, PaymentSDK, TransactionLedger


class DemoAdapter(PaymentGateway):
    """Adapter with only the mandatory operations."""

    def __init__(self, key: str = "demo", **config):
        super().__init__(**config)
        self.key = key
        self.calls: List[str] = []

    def _get_gateway_key(self) -> str:
        return self.key

    async def pay(self, params):
        self.calls.append("pay")
        return PaymentResult(gateway=self.key, status=PaymentStatus.SUCCESS, params={"id": "mock"}, message="stub")

    async def verify(self, params):
        self.calls.append("verify")
        return PaymentResult(gateway=self.key, status=PaymentStatus.SUCCESS, params={"id": params.transaction_id})

    async def refund(self, params):
        self.calls.append("refund")
        return PaymentResult(gateway=self.key, status=PaymentStatus.SUCCESS, params={"refunded": str(params.amount)})


class FullAdapter(DemoAdapter):
    """Adapter implementing every optional capability."""

    async def subscribe(self, params):
        self.calls.append("subscribe")
        return SubscriptionResult(gateway=self.key, status=SubscriptionStatus.ACTIVE, params={"plan": params.plan_id})

    async def create_invoice(self, params):
        self.calls.append("create_invoice")
        return InvoiceResult(gateway=self.key, status=InvoiceStatus.CREATED, params={"customer": params.customer_id})

    async def wallet(self, params):
        self.calls.append("wallet")
        return WalletResult(gateway=self.key, status=PaymentStatus.SUCCESS, params={"balance": 0})


@pytest.fixture(autouse=True)
def reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def demo_adapter() -> DemoAdapter:
    return DemoAdapter()


@pytest.fixture
def full_adapter() -> FullAdapter:
    return FullAdapter(key="full")


@pytest.fixture
def make_adapter():
    def _make(key: str = "demo", full: bool = False, **config) -> DemoAdapter:
        adapter_class = FullAdapter if full else DemoAdapter
        return adapter_class(key=key, **config)
    return _make


@pytest.fixture
def ledger() -> TransactionLedger:
    return TransactionLedger()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def sdk(demo_adapter, full_adapter, ledger, event_bus) -> PaymentSDK:
    return PaymentSDK(
        {"custom_providers": {"demo": demo_adapter, "full": full_adapter}},
        ledger=ledger,
        events=event_bus,
    )


@pytest.fixture
def pay_request() -> Dict[str, Any]:
    return {
        "gateway": "demo",
        "amount": 100,
        "currency": "NPR",
        "returnUrl": "https://shop.example.com/payments/return",
    }
