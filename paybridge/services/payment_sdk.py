"""
Payment SDK: gateway registry and operation dispatcher.

Every public operation validates its request, resolves the gateway key to a
registered adapter, checks optional capabilities, awaits the adapter and then
notifies listeners. Validation and lookup failures raise ``PaymentError``
before any provider call is made.
"""

from __future__ import annotations

import inspect
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from paybridge.core.config import Settings, get_settings
from paybridge.core.logging import get_logger
from paybridge.integrations.payment_gateways import (
    Capability,
    ErrorCode,
    InvoiceParams,
    InvoiceResult,
    PaymentError,
    PaymentGatewayFactory,
    PaymentParams,
    PaymentResult,
    RefundParams,
    SubscriptionParams,
    SubscriptionResult,
    TransactionRecord,
    VerifyParams,
    WalletParams,
    WalletResult,
    conforms_to_contract,
    describe_capabilities,
)
from paybridge.integrations.payment_gateways.base import is_positive_amount
from paybridge.services.event_bus import DispatchEvent, EventBus, SDKEvent
from paybridge.services.transaction_ledger import TransactionLedger

logger = get_logger(__name__)

Validator = Callable[[Any], None]


class PaymentSDKConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    mode: Literal["sandbox", "production"] = "sandbox"
    # Built-in gateway key -> adapter constructor kwargs
    gateways: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    # Gateway key -> adapter instance, registered after the built-ins
    custom_providers: Dict[str, Any] = Field(default_factory=dict, alias="customProviders")


@dataclass(frozen=True)
class _ProviderEntry:
    adapter: Any
    capabilities: Capability


# Event names that differ from the adapter method they dispatch to
_ADAPTER_METHODS = {
    SDKEvent.CREATE_INVOICE: "create_invoice",
}

_UNSUPPORTED = {
    Capability.SUBSCRIBE: (ErrorCode.SUBSCRIPTION_NOT_SUPPORTED, "subscriptions"),
    Capability.CREATE_INVOICE: (ErrorCode.INVOICE_NOT_SUPPORTED, "invoices"),
    Capability.WALLET: (ErrorCode.WALLET_NOT_SUPPORTED, "wallet operations"),
}


def _require_gateway(params: Any) -> None:
    if not isinstance(params.gateway, str) or not params.gateway:
        raise PaymentError("Gateway is required", ErrorCode.MISSING_GATEWAY)


def _require_amount(params: Any) -> None:
    if not is_positive_amount(params.amount):
        raise PaymentError("Amount must be greater than zero", ErrorCode.INVALID_AMOUNT)


def _require_currency(params: Any) -> None:
    if not params.currency:
        raise PaymentError("Currency is required", ErrorCode.MISSING_CURRENCY)


def _require_return_url(params: Any) -> None:
    if not params.return_url:
        raise PaymentError("Return URL is required", ErrorCode.MISSING_RETURN_URL)


def _require_transaction_id(params: Any) -> None:
    if not params.transaction_id:
        raise PaymentError("Transaction ID is required", ErrorCode.MISSING_TRANSACTION_ID)


def _status_value(result: Any) -> Any:
    status = getattr(result, "status", None)
    return getattr(status, "value", status)


def _coerce(params: Any, params_type: Type) -> Any:
    if isinstance(params, params_type):
        return params
    if isinstance(params, Mapping):
        return params_type.from_mapping(params)
    raise PaymentError("Invalid parameters", ErrorCode.INVALID_PARAMS)


class PaymentSDK:
    """Single entry point for payments across every configured gateway."""

    def __init__(
        self,
        config: Union[PaymentSDKConfig, Mapping[str, Any], None] = None,
        *,
        ledger: Optional[TransactionLedger] = None,
        events: Optional[EventBus] = None,
    ):
        if config is None:
            config = PaymentSDKConfig()
        elif not isinstance(config, PaymentSDKConfig):
            config = PaymentSDKConfig.model_validate(dict(config))

        self.config = config
        self.mode = config.mode
        self._ledger = ledger if ledger is not None else TransactionLedger()
        self._events = events if events is not None else EventBus()
        self._providers: Dict[str, _ProviderEntry] = {}
        self._lock = threading.RLock()

        for key, options in config.gateways.items():
            if not PaymentGatewayFactory.is_supported(key):
                logger.warning(
                    "payment_sdk.gateway.unknown",
                    gateway=key,
                    supported=PaymentGatewayFactory.get_supported_gateways(),
                )
                continue
            adapter = PaymentGatewayFactory.create_gateway(key, **{"mode": config.mode, **options})
            self.register_provider(key, adapter)

        for key, adapter in config.custom_providers.items():
            self.register_provider(key, adapter)

        logger.info("payment_sdk.initialized", mode=self.mode, gateways=self.gateways)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "PaymentSDK":
        settings = settings or get_settings()
        config = PaymentSDKConfig(mode=settings.payment_mode, gateways=settings.gateways)
        return cls(config, **kwargs)

    # Registry

    def register_provider(self, key: str, adapter: Any) -> None:
        """Add or replace the adapter for ``key``. Last registration wins."""
        if not isinstance(key, str) or not key:
            raise TypeError("Gateway key must be a non-empty string")
        if not conforms_to_contract(adapter):
            raise TypeError(
                f"Adapter for '{key}' must implement pay, verify and refund; got {type(adapter).__name__}"
            )
        entry = _ProviderEntry(adapter=adapter, capabilities=describe_capabilities(adapter))
        with self._lock:
            replaced = key in self._providers
            self._providers[key] = entry
        logger.info(
            "payment_sdk.provider.registered",
            gateway=key,
            adapter=type(adapter).__name__,
            capabilities=str(entry.capabilities),
            replaced=replaced,
        )

    def has_provider(self, key: str) -> bool:
        with self._lock:
            return key in self._providers

    def get_provider(self, key: str) -> Any:
        return self._lookup(key).adapter

    def capabilities(self, key: str) -> Capability:
        return self._lookup(key).capabilities

    @property
    def gateways(self) -> List[str]:
        with self._lock:
            return sorted(self._providers)

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def ledger(self) -> TransactionLedger:
        return self._ledger

    def _lookup(self, key: str) -> _ProviderEntry:
        with self._lock:
            entry = self._providers.get(key)
        if entry is None:
            raise PaymentError(
                f"Gateway '{key}' is not configured",
                ErrorCode.GATEWAY_NOT_CONFIGURED,
                provider=key,
            )
        return entry

    # Dispatch

    async def pay(self, params: Union[PaymentParams, Mapping[str, Any]]) -> PaymentResult:
        return await self._dispatch(
            SDKEvent.PAY,
            params,
            PaymentParams,
            (_require_gateway, _require_amount, _require_currency, _require_return_url),
        )

    async def verify(self, params: Union[VerifyParams, Mapping[str, Any]]) -> PaymentResult:
        return await self._dispatch(
            SDKEvent.VERIFY,
            params,
            VerifyParams,
            (_require_gateway, _require_transaction_id, _require_amount),
        )

    async def refund(self, params: Union[RefundParams, Mapping[str, Any]]) -> PaymentResult:
        return await self._dispatch(
            SDKEvent.REFUND,
            params,
            RefundParams,
            (_require_gateway, _require_transaction_id, _require_amount),
        )

    async def subscribe(self, params: Union[SubscriptionParams, Mapping[str, Any]]) -> SubscriptionResult:
        return await self._dispatch(
            SDKEvent.SUBSCRIBE,
            params,
            SubscriptionParams,
            (_require_gateway,),
            capability=Capability.SUBSCRIBE,
        )

    async def create_invoice(self, params: Union[InvoiceParams, Mapping[str, Any]]) -> InvoiceResult:
        return await self._dispatch(
            SDKEvent.CREATE_INVOICE,
            params,
            InvoiceParams,
            (_require_gateway, _require_amount),
            capability=Capability.CREATE_INVOICE,
        )

    async def wallet(self, params: Union[WalletParams, Mapping[str, Any]]) -> WalletResult:
        return await self._dispatch(
            SDKEvent.WALLET,
            params,
            WalletParams,
            (_require_gateway, _require_amount),
            capability=Capability.WALLET,
        )

    async def _dispatch(
        self,
        operation: SDKEvent,
        params: Any,
        params_type: Type,
        validators: Sequence[Validator],
        capability: Optional[Capability] = None,
    ) -> Any:
        gateway = params.get("gateway") if isinstance(params, Mapping) else getattr(params, "gateway", None)
        try:
            request = _coerce(params, params_type)
            for validate in validators:
                validate(request)
            entry = self._lookup(request.gateway)
            if capability is not None and capability not in entry.capabilities:
                code, label = _UNSUPPORTED[capability]
                raise PaymentError(
                    f"Gateway '{request.gateway}' does not support {label}",
                    code,
                    provider=request.gateway,
                )
            method = getattr(entry.adapter, _ADAPTER_METHODS.get(operation, operation.value))
            result = await self._invoke(method, request)
        except PaymentError as exc:
            logger.warning(
                "payment_sdk.dispatch.failed",
                operation=operation.value,
                gateway=gateway,
                code=exc.code_value,
                error=exc.error_message,
            )
            raise

        logger.info(
            "payment_sdk.dispatch.succeeded",
            operation=operation.value,
            gateway=request.gateway,
            status=_status_value(result),
        )
        self._events.emit(
            operation,
            DispatchEvent(operation=operation.value, gateway=request.gateway, request=request, result=result),
        )
        return result

    @staticmethod
    async def _invoke(method: Callable[[Any], Awaitable[Any]], request: Any) -> Any:
        try:
            result = method(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        except PaymentError:
            raise
        except Exception as exc:
            raise PaymentError(
                str(exc) or type(exc).__name__,
                ErrorCode.INTERNAL_ERROR,
                provider=request.gateway,
            ) from exc

    # Ledger

    def add_transaction(self, record: TransactionRecord) -> None:
        self._ledger.add(record)

    def update_transaction(self, transaction_id: str, updates: Mapping[str, Any]) -> Optional[TransactionRecord]:
        return self._ledger.update(transaction_id, updates)

    def get_transaction(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self._ledger.get(transaction_id)

    def list_transactions(self) -> List[TransactionRecord]:
        return self._ledger.list()
