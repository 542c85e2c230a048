from fastapi import Request

from paybridge.integrations.webhooks import WebhookIntake


def get_webhook_intake(request: Request) -> WebhookIntake:
    return request.app.state.webhook_intake
