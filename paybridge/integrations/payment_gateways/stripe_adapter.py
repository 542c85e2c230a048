"""
Stripe Payment Gateway Adapter

Provides integration with the Stripe payment processing platform. Supports
subscriptions and invoices in addition to the mandatory operations; wallet
operations are not offered.
"""

import logging
from typing import Any, Dict, Optional

from stripe import StripeClient, StripeError

from .base import (
    GatewayKey,
    InvoiceParams,
    InvoiceResult,
    InvoiceStatus,
    PaymentGateway,
    PaymentParams,
    PaymentResult,
    PaymentStatus,
    RefundParams,
    SubscriptionParams,
    SubscriptionResult,
    SubscriptionStatus,
    VerifyParams,
    to_minor_units,
)

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}
SUCCESSFUL_REFUND_STATUSES = {"succeeded", "pending"}


def _stringify_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # Stripe metadata values must be strings.
    return {str(k): "" if v is None else str(v) for k, v in (metadata or {}).items()}


class StripeAdapter(PaymentGateway):
    """Stripe payment gateway adapter."""

    def __init__(
        self,
        api_key: str,
        webhook_secret: Optional[str] = None,
        publishable_key: Optional[str] = None,
        **config
    ):
        """
        Initialize Stripe adapter.

        Args:
            api_key: Stripe secret API key
            webhook_secret: Stripe webhook secret for signature verification
            publishable_key: Stripe publishable key
            **config: Additional configuration
        """
        super().__init__(publishable_key=publishable_key, **config)
        self.client = StripeClient(api_key)
        self.webhook_secret = webhook_secret
        self.publishable_key = publishable_key

    def _get_gateway_key(self) -> str:
        return GatewayKey.STRIPE.value

    def _failure(self, error: StripeError, fallback: str) -> PaymentResult:
        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.FAILURE,
            params={"error": str(error), "code": getattr(error, "code", None)},
            message=getattr(error, "user_message", None) or str(error) or fallback,
        )

    async def pay(self, params: PaymentParams) -> PaymentResult:
        """
        Create a PaymentIntent.

        Optional extras: ``metadata``, ``email`` (receipt), ``description``.
        The return URL is carried in metadata for the confirmation step.
        """
        metadata = _stringify_metadata(params.get("metadata"))
        metadata.setdefault("return_url", params.return_url or "")
        if params.transaction_id:
            metadata.setdefault("transaction_id", params.transaction_id)

        payment_intent_data: Dict[str, Any] = {
            "amount": to_minor_units(params.amount),
            "currency": params.currency.lower(),
            "payment_method_types": ["card"],
            "metadata": metadata,
        }
        if params.get("email"):
            payment_intent_data["receipt_email"] = params.get("email")
        if params.get("description"):
            payment_intent_data["description"] = params.get("description")

        try:
            payment_intent = await self.client.v1.payment_intents.create_async(params=payment_intent_data)
        except StripeError as e:
            logger.error(f"Stripe payment error: {e}")
            return self._failure(e, "Stripe payment failed")

        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS,
            params={
                "id": payment_intent.id,
                "status": payment_intent.status,
                "client_secret": getattr(payment_intent, "client_secret", None),
            },
            message="Stripe payment initiated",
        )

    async def verify(self, params: VerifyParams) -> PaymentResult:
        """Retrieve the PaymentIntent; only ``succeeded`` counts as success."""
        try:
            payment_intent = await self.client.v1.payment_intents.retrieve_async(params.transaction_id)
        except StripeError as e:
            logger.error(f"Stripe status query error: {e}")
            return self._failure(e, "Stripe verification failed")

        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS if payment_intent.status == "succeeded" else PaymentStatus.FAILURE,
            params={"id": payment_intent.id, "status": payment_intent.status},
            message="Stripe payment verification",
        )

    async def refund(self, params: RefundParams) -> PaymentResult:
        refund_data: Dict[str, Any] = {
            "payment_intent": params.transaction_id,
            "amount": to_minor_units(params.amount),
        }
        if params.get("reason"):
            refund_data["reason"] = params.get("reason")

        try:
            refund = await self.client.v1.refunds.create_async(params=refund_data)
        except StripeError as e:
            logger.error(f"Stripe refund error: {e}")
            return self._failure(e, "Stripe refund failed")

        return PaymentResult(
            gateway=self.gateway_key,
            status=PaymentStatus.SUCCESS if refund.status in SUCCESSFUL_REFUND_STATUSES else PaymentStatus.FAILURE,
            params={"id": refund.id, "status": refund.status},
            message="Stripe refund processed",
        )

    async def subscribe(self, params: SubscriptionParams) -> SubscriptionResult:
        """Subscribe ``customer_id`` to the price ``plan_id``."""
        subscription_data: Dict[str, Any] = {
            "customer": params.customer_id,
            "items": [{"price": params.plan_id}],
        }
        if params.get("trial_days"):
            subscription_data["trial_period_days"] = int(params.get("trial_days"))
        if params.get("metadata"):
            subscription_data["metadata"] = _stringify_metadata(params.get("metadata"))

        try:
            subscription = await self.client.v1.subscriptions.create_async(params=subscription_data)
        except StripeError as e:
            logger.error(f"Stripe subscription error: {e}")
            return SubscriptionResult(
                gateway=self.gateway_key,
                status=SubscriptionStatus.CANCELLED,
                params={"error": str(e)},
                message=str(e) or "Stripe subscription failed",
            )

        active = subscription.status in ACTIVE_SUBSCRIPTION_STATUSES
        return SubscriptionResult(
            gateway=self.gateway_key,
            status=SubscriptionStatus.ACTIVE if active else SubscriptionStatus.INACTIVE,
            params={"id": subscription.id, "status": subscription.status},
            message="Stripe subscription created",
        )

    async def create_invoice(self, params: InvoiceParams) -> InvoiceResult:
        """Add a pending invoice item for the amount, then draft an invoice that includes it."""
        try:
            await self.client.v1.invoice_items.create_async(params={
                "customer": params.customer_id,
                "amount": to_minor_units(params.amount),
                "currency": (params.currency or "usd").lower(),
                "description": params.get("description") or "Invoice item",
            })
            invoice = await self.client.v1.invoices.create_async(params={
                "customer": params.customer_id,
                "pending_invoice_items_behavior": "include",
            })
        except StripeError as e:
            logger.error(f"Stripe invoice error: {e}")
            return InvoiceResult(
                gateway=self.gateway_key,
                status=InvoiceStatus.CANCELLED,
                params={"error": str(e)},
                message=str(e) or "Stripe invoice failed",
            )

        return InvoiceResult(
            gateway=self.gateway_key,
            status=InvoiceStatus.PAID if invoice.status == "paid" else InvoiceStatus.CREATED,
            params={"id": invoice.id, "status": invoice.status},
            message="Stripe invoice created",
        )
