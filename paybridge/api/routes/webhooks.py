import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from paybridge.api.dependencies.webhooks import get_webhook_intake
from paybridge.core.logging import get_logger
from paybridge.integrations.webhooks import WebhookError, WebhookIntake

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("")
async def receive_payment_webhook(
    request: Request,
    gateway: Optional[str] = None,
    intake: WebhookIntake = Depends(get_webhook_intake),
) -> Dict[str, Any]:
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        logger.warning("webhook.payload.invalid", gateway=gateway, size=len(raw_body))
        raise WebhookError("Invalid webhook payload", error_code="INVALID_PAYLOAD", status_code=400)

    body_gateway = payload.get("gateway")
    gateway = gateway or (body_gateway if isinstance(body_gateway, str) else None)
    return await intake.handle(gateway, payload, raw_body=raw_body, headers=request.headers)
