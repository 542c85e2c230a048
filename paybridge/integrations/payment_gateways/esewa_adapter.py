"""
eSewa Payment Gateway Adapter

Integrates with eSewa ePay v2. Payment initiation needs no server call: the
adapter returns the signed form the customer's browser posts to eSewa.
Verification uses the transaction status endpoint.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from aiohttp import ClientError, ClientSession, ClientTimeout

from .base import (
    GatewayKey,
    PaymentError,
    PaymentGateway,
    PaymentParams,
    PaymentResult,
    PaymentStatus,
    RefundParams,
    VerifyParams,
)

logger = logging.getLogger(__name__)

ESEWA_URLS = {
    "sandbox": {
        "form": "https://rc-epay.esewa.com.np/api/epay/main/v2/form",
        "status": "https://rc.esewa.com.np/api/epay/transaction/status/",
    },
    "production": {
        "form": "https://epay.esewa.com.np/api/epay/main/v2/form",
        "status": "https://esewa.com.np/api/epay/transaction/status/",
    },
}

SIGNED_FIELD_NAMES = "total_amount,transaction_uuid,product_code"


def _format_amount(value: Decimal) -> str:
    return format(value.normalize(), "f")


class EsewaAdapter(PaymentGateway):
    """eSewa payment gateway adapter."""

    def __init__(
        self,
        product_code: str,
        secret_key: str,
        form_url: Optional[str] = None,
        status_url: Optional[str] = None,
        timeout_seconds: int = 30,
        **config
    ):
        """
        Initialize eSewa adapter.

        Args:
            product_code: Merchant product code issued by eSewa
            secret_key: Merchant secret used to sign the payment form
            form_url: Override for the ePay form endpoint
            status_url: Override for the status check endpoint
            timeout_seconds: Timeout for status checks
            **config: Additional configuration (``mode`` selects the URLs)
        """
        super().__init__(product_code=product_code, timeout_seconds=timeout_seconds, **config)
        if not product_code or not secret_key:
            raise PaymentError(
                "eSewa requires product_code and secret_key",
                "ESEWA_CONFIG_ERROR",
                provider="esewa",
            )
        urls = ESEWA_URLS.get(self.mode, ESEWA_URLS["sandbox"])
        self.product_code = product_code
        self.secret_key = secret_key
        self.form_url = form_url or urls["form"]
        self.status_url = status_url or urls["status"]
        self.timeout_seconds = timeout_seconds

    def _get_gateway_key(self) -> str:
        return GatewayKey.ESEWA.value

    def sign(self, fields: Dict[str, str], signed_field_names: str = SIGNED_FIELD_NAMES) -> str:
        """Base64 HMAC-SHA256 over ``name=value`` pairs in signed-field order."""
        message = ",".join(f"{name}={fields[name]}" for name in signed_field_names.split(","))
        digest = hmac.new(self.secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    async def pay(self, params: PaymentParams) -> PaymentResult:
        """
        Build the signed ePay form.

        ``tax_amount``, ``product_service_charge`` and
        ``product_delivery_charge`` are read from the request extras and added
        to the total. ``failure_url`` defaults to the return URL.
        """
        amount = Decimal(str(params.amount))
        tax_amount = Decimal(str(params.get("tax_amount", 0)))
        service_charge = Decimal(str(params.get("product_service_charge", 0)))
        delivery_charge = Decimal(str(params.get("product_delivery_charge", 0)))
        total_amount = amount + tax_amount + service_charge + delivery_charge

        fields = {
            "amount": _format_amount(amount),
            "tax_amount": _format_amount(tax_amount),
            "total_amount": _format_amount(total_amount),
            "transaction_uuid": params.transaction_id or uuid.uuid4().hex,
            "product_code": self.product_code,
            "product_service_charge": _format_amount(service_charge),
            "product_delivery_charge": _format_amount(delivery_charge),
            "success_url": params.return_url,
            "failure_url": params.get("failure_url") or params.return_url,
            "signed_field_names": SIGNED_FIELD_NAMES,
        }
        fields["signature"] = self.sign(fields)

        logger.info(f"eSewa payment form prepared for {fields['transaction_uuid']}")
        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS,
            params={"form_url": self.form_url, "fields": fields},
            message="Payment initiated",
        )

    async def verify(self, params: VerifyParams) -> PaymentResult:
        """Check the transaction status. Only ``COMPLETE`` counts as success."""
        query = {
            "product_code": self.product_code,
            "total_amount": _format_amount(Decimal(str(params.amount))),
            "transaction_uuid": params.transaction_id,
        }
        try:
            status_code, data = await self._get(query)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"eSewa status check error: {e}")
            return PaymentResult(
                gateway=self.gateway_key,
                status=PaymentStatus.FAILURE,
                params={"error": str(e)},
                message=str(e) or "eSewa verification failed",
            )

        if status_code != 200:
            return PaymentResult(
                gateway=self.gateway_key,
                status=PaymentStatus.FAILURE,
                params=data,
                message=data.get("error_message") or f"eSewa status check returned {status_code}",
            )

        completed = data.get("status") == "COMPLETE"
        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS if completed else PaymentStatus.FAILURE,
            params=data,
            message=f"Payment status: {data.get('status', 'UNKNOWN')}",
        )

    async def refund(self, params: RefundParams) -> PaymentResult:
        # eSewa refunds are settled through the merchant portal.
        raise PaymentError(
            "eSewa refund is not supported via public API",
            "ESEWA_REFUND_UNSUPPORTED",
            provider="esewa",
        )

    async def _get(self, query: Dict[str, str]) -> Tuple[int, Dict[str, Any]]:
        timeout = ClientTimeout(total=self.timeout_seconds)
        async with ClientSession(timeout=timeout) as session:
            async with session.get(self.status_url, params=query) as response:
                data = await response.json(content_type=None)
                return response.status, data if isinstance(data, dict) else {"response": data}
