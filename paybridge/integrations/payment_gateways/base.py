"""
Payment Gateway Base Classes and Interfaces

Defines the contract every payment gateway adapter implements, the request
and result shapes exchanged with the SDK, and the error type shared by the
dispatcher, the adapters and the webhook boundary.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum, Flag, auto
from numbers import Real
from types import MappingProxyType
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

Amount = Union[int, float, Decimal]


class GatewayKey(str, Enum):
    """Built-in payment gateway identifiers."""
    ESEWA = "esewa"
    KHALTI = "khalti"
    STRIPE = "stripe"


class PaymentStatus(str, Enum):
    """Outcome of pay, verify, refund and wallet operations."""
    SUCCESS = "success"
    FAILURE = "failure"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    CANCELLED = "cancelled"


class ErrorCode(str, Enum):
    """Error kinds raised by the SDK itself. Adapters may use their own strings."""
    INVALID_PARAMS = "INVALID_PARAMS"
    MISSING_GATEWAY = "MISSING_GATEWAY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    MISSING_CURRENCY = "MISSING_CURRENCY"
    MISSING_RETURN_URL = "MISSING_RETURN_URL"
    MISSING_TRANSACTION_ID = "MISSING_TRANSACTION_ID"
    GATEWAY_NOT_CONFIGURED = "GATEWAY_NOT_CONFIGURED"
    SUBSCRIPTION_NOT_SUPPORTED = "SUBSCRIPTION_NOT_SUPPORTED"
    INVOICE_NOT_SUPPORTED = "INVOICE_NOT_SUPPORTED"
    WALLET_NOT_SUPPORTED = "WALLET_NOT_SUPPORTED"
    UNSUPPORTED_GATEWAY = "UNSUPPORTED_GATEWAY"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class Capability(Flag):
    """Optional operations an adapter may implement."""
    NONE = 0
    SUBSCRIBE = auto()
    CREATE_INVOICE = auto()
    WALLET = auto()


class PaymentError(Exception):
    """Typed payment error. ``code`` is stable and safe to branch on."""

    def __init__(
        self,
        message: str,
        code: Union[ErrorCode, str, None] = None,
        *,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_message = message
        self.code = code
        self.status_code = status_code
        self.provider = provider
        self.details = details

    @property
    def code_value(self) -> Optional[str]:
        if isinstance(self.code, Enum):
            return self.code.value
        return self.code


def _frozen_extra(instance: Any) -> None:
    object.__setattr__(instance, "extra", MappingProxyType(dict(instance.extra)))


class _Params:
    """Shared construction from loose mappings."""

    _aliases: ClassVar[Dict[str, str]] = {
        "returnUrl": "return_url",
        "transactionId": "transaction_id",
        "customerId": "customer_id",
        "planId": "plan_id",
        "gatewayKey": "gateway",
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]):
        known = {f.name for f in fields(cls)} - {"extra"}
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        nested = data.get("extra")
        if isinstance(nested, Mapping):
            extra.update(nested)
        for key, value in data.items():
            if key == "extra" and (isinstance(nested, Mapping) or nested is None):
                continue
            name = cls._aliases.get(key, key)
            if name in known:
                values[name] = value
            else:
                extra[key] = value
        return cls(**values, extra=extra)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a provider-specific value from ``extra``."""
        return self.extra.get(key, default)


@dataclass(frozen=True)
class PaymentParams(_Params):
    gateway: Optional[str] = None
    amount: Optional[Amount] = None
    currency: Optional[str] = None
    return_url: Optional[str] = None
    transaction_id: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class VerifyParams(_Params):
    gateway: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: Optional[Amount] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class RefundParams(_Params):
    gateway: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: Optional[Amount] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class SubscriptionParams(_Params):
    gateway: Optional[str] = None
    plan_id: Optional[str] = None
    customer_id: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class InvoiceParams(_Params):
    gateway: Optional[str] = None
    amount: Optional[Amount] = None
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class WalletParams(_Params):
    gateway: Optional[str] = None
    customer_id: Optional[str] = None
    amount: Optional[Amount] = None
    currency: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _frozen_extra(self)


@dataclass(frozen=True)
class OperationResult:
    """Result of a gateway operation. ``params`` is the provider payload."""
    gateway: str
    status: Enum
    params: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None


@dataclass(frozen=True)
class PaymentResult(OperationResult):
    status: PaymentStatus = PaymentStatus.FAILURE


@dataclass(frozen=True)
class SubscriptionResult(OperationResult):
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE


@dataclass(frozen=True)
class InvoiceResult(OperationResult):
    status: InvoiceStatus = InvoiceStatus.CANCELLED


@dataclass(frozen=True)
class WalletResult(OperationResult):
    status: PaymentStatus = PaymentStatus.FAILURE


@dataclass
class TransactionRecord:
    """A ledger entry: an operation outcome tagged with a correlation id."""
    gateway: str
    status: Union[Enum, str]
    transaction_id: str
    params: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: OperationResult, transaction_id: str) -> "TransactionRecord":
        now = datetime.now(timezone.utc)
        return cls(
            gateway=result.gateway,
            status=result.status,
            transaction_id=transaction_id,
            params=dict(result.params),
            message=result.message,
            created_at=now,
            updated_at=now,
        )


class PaymentGateway(ABC):
    """Abstract base class for payment gateway adapters."""

    def __init__(self, **config):
        """Initialize the payment gateway with configuration."""
        self.config = config
        self.mode = config.get("mode", "sandbox")

    @property
    def gateway_key(self) -> str:
        return self._get_gateway_key()

    @abstractmethod
    def _get_gateway_key(self) -> str:
        """Return the gateway identifier."""
        pass

    @abstractmethod
    async def pay(self, params: PaymentParams) -> PaymentResult:
        """
        Initiate a payment.

        Provider-side failures are returned as a ``failure`` result.

        Raises:
            PaymentError: If the adapter cannot serve the request at all
        """
        pass

    @abstractmethod
    async def verify(self, params: VerifyParams) -> PaymentResult:
        """
        Verify a previously initiated payment.

        Raises:
            PaymentError: If the adapter cannot serve the request at all
        """
        pass

    @abstractmethod
    async def refund(self, params: RefundParams) -> PaymentResult:
        """
        Refund a payment, fully or partially.

        Raises:
            PaymentError: If the provider offers no refund API
        """
        pass

    async def subscribe(self, params: SubscriptionParams) -> SubscriptionResult:
        """Create a subscription. Override to advertise the capability."""
        raise NotImplementedError("Subscriptions not implemented for this gateway")

    async def create_invoice(self, params: InvoiceParams) -> InvoiceResult:
        """Create an invoice. Override to advertise the capability."""
        raise NotImplementedError("Invoices not implemented for this gateway")

    async def wallet(self, params: WalletParams) -> WalletResult:
        """Run a wallet operation. Override to advertise the capability."""
        raise NotImplementedError("Wallet operations not implemented for this gateway")


_CAPABILITY_METHODS = {
    Capability.SUBSCRIBE: "subscribe",
    Capability.CREATE_INVOICE: "create_invoice",
    Capability.WALLET: "wallet",
}

_REQUIRED_METHODS = ("pay", "verify", "refund")


def conforms_to_contract(adapter: Any) -> bool:
    """True when ``adapter`` exposes the mandatory operations."""
    return all(callable(getattr(adapter, name, None)) for name in _REQUIRED_METHODS)


def describe_capabilities(adapter: Any) -> Capability:
    """
    Work out which optional operations ``adapter`` supports.

    An explicit ``capabilities`` attribute wins. Subclasses of
    ``PaymentGateway`` support an operation when they override the base
    method; other objects when the attribute exists and is callable.
    """
    declared = getattr(adapter, "capabilities", None)
    if isinstance(declared, Capability):
        return declared

    supported = Capability.NONE
    for capability, method_name in _CAPABILITY_METHODS.items():
        if isinstance(adapter, PaymentGateway):
            if getattr(type(adapter), method_name) is not getattr(PaymentGateway, method_name):
                supported |= capability
        elif callable(getattr(adapter, method_name, None)):
            supported |= capability
    return supported


def to_minor_units(amount: Amount) -> int:
    """Convert a major-unit amount (rupees, dollars) to paisa/cents."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))


def is_positive_amount(value: Any) -> bool:
    """Real numbers above zero. Booleans and NaN are rejected."""
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
        return False
    try:
        return value > 0
    except (TypeError, ArithmeticError):
        return False


class PaymentGatewayFactory:
    """Factory for creating built-in payment gateway instances."""

    _gateways: Dict[str, type] = {}

    @classmethod
    def register_gateway(cls, gateway_key: str, gateway_class: type):
        """Register a payment gateway implementation."""
        cls._gateways[str(gateway_key.value if isinstance(gateway_key, Enum) else gateway_key)] = gateway_class

    @classmethod
    def create_gateway(cls, gateway_key: str, **config) -> PaymentGateway:
        """Create a payment gateway instance."""
        if gateway_key not in cls._gateways:
            supported = ", ".join(sorted(cls._gateways))
            raise PaymentError(
                f"Unsupported gateway: {gateway_key}. Supported gateways: {supported}",
                ErrorCode.UNSUPPORTED_GATEWAY,
            )
        gateway_class = cls._gateways[gateway_key]
        return gateway_class(**config)

    @classmethod
    def get_supported_gateways(cls) -> List[str]:
        """Get list of registered gateway keys."""
        return list(cls._gateways.keys())

    @classmethod
    def is_supported(cls, gateway_key: str) -> bool:
        return gateway_key in cls._gateways
