"""
Khalti Payment Gateway Adapter

Integrates with the Khalti ePayment (KPG-2) API: initiate returns a
``pidx`` and hosted ``payment_url``; lookup reports the payment status.
"""

import asyncio
import logging
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
    to_minor_units,
)

logger = logging.getLogger(__name__)

KHALTI_BASE_URLS = {
    "sandbox": "https://dev.khalti.com/api/v2",
    "production": "https://khalti.com/api/v2",
}


class KhaltiAdapter(PaymentGateway):
    """Khalti payment gateway adapter."""

    def __init__(
        self,
        secret_key: str,
        public_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: int = 30,
        **config
    ):
        """
        Initialize Khalti adapter.

        Args:
            secret_key: Live or test secret key
            public_key: Public key, exposed to checkout widgets only
            base_url: Override for the API root
            timeout_seconds: Request timeout
            **config: Additional configuration (``mode`` selects the API root)
        """
        super().__init__(public_key=public_key, timeout_seconds=timeout_seconds, **config)
        if not secret_key:
            raise PaymentError("Khalti requires secret_key", "KHALTI_CONFIG_ERROR", provider="khalti")
        self.secret_key = secret_key
        self.public_key = public_key
        self.base_url = (base_url or KHALTI_BASE_URLS.get(self.mode, KHALTI_BASE_URLS["sandbox"])).rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _get_gateway_key(self) -> str:
        return GatewayKey.KHALTI.value

    async def pay(self, params: PaymentParams) -> PaymentResult:
        """
        Initiate a payment. Amount is given in rupees and sent in paisa.

        Optional extras: ``website_url``, ``purchase_order_name``,
        ``customer_info``.
        """
        payload = {
            "return_url": params.return_url,
            "website_url": params.get("website_url") or params.return_url,
            "amount": to_minor_units(params.amount),
            "purchase_order_id": params.transaction_id or params.get("purchase_order_id"),
            "purchase_order_name": params.get("purchase_order_name", "Order"),
            "customer_info": dict(params.get("customer_info") or {}),
        }
        return await self._call("/epayment/initiate/", payload, success_message="Payment initiated")

    async def verify(self, params: VerifyParams) -> PaymentResult:
        """Look up a payment by ``pidx`` (the transaction id)."""
        result = await self._call("/epayment/lookup/", {"pidx": params.transaction_id})
        if result.status is PaymentStatus.FAILURE:
            return result

        completed = result.params.get("status") == "Completed"
        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS if completed else PaymentStatus.FAILURE,
            params=result.params,
            message="Payment verification result",
        )

    async def refund(self, params: RefundParams) -> PaymentResult:
        raise PaymentError(
            "Khalti refund is not supported via public API",
            "KHALTI_REFUND_UNSUPPORTED",
            provider="khalti",
        )

    async def _call(self, path: str, payload: Dict[str, Any], success_message: str = "OK") -> PaymentResult:
        try:
            status_code, data = await self._post(path, payload)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Khalti request to {path} failed: {e}")
            return PaymentResult(
                gateway=self.gateway_key,
                status=PaymentStatus.FAILURE,
                params={"error": str(e)},
                message=str(e) or "Khalti request failed",
            )

        if status_code >= 400:
            logger.warning(f"Khalti {path} returned {status_code}: {data}")
            return PaymentResult(
                gateway=self.gateway_key,
                status=PaymentStatus.FAILURE,
                params=data,
                message=data.get("detail") or data.get("error_key") or f"Khalti returned {status_code}",
            )

        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS,
            params=data,
            message=success_message,
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        headers = {
            "Authorization": f"Key {self.secret_key}",
            "Content-Type": "application/json",
        }
        timeout = ClientTimeout(total=self.timeout_seconds)
        async with ClientSession(timeout=timeout) as session:
            async with session.post(f"{self.base_url}{path}", json=payload, headers=headers) as response:
                data = await response.json(content_type=None)
                return response.status, data if isinstance(data, dict) else {"response": data}
