from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from paybridge.api.routes import webhooks
from paybridge.core.config import Settings, get_settings
from paybridge.core.logging import configure_logging, get_logger
from paybridge.integrations.payment_gateways import PaymentError
from paybridge.integrations.webhooks import WebhookError, WebhookIntake
from paybridge.services.payment_sdk import PaymentSDK

configure_logging()
logger = get_logger(__name__)


def create_application(sdk: Optional[PaymentSDK] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    sdk = sdk or PaymentSDK.from_settings(settings)

    application = FastAPI(title=settings.app_name)
    application.state.payment_sdk = sdk
    application.state.webhook_intake = WebhookIntake.from_sdk(sdk, secrets=settings.webhook_secrets)
    application.include_router(webhooks.router, prefix=settings.webhook_path)

    @application.exception_handler(WebhookError)
    async def webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.error_message})

    @application.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
        logger.warning("api.payment_error", path=request.url.path, code=exc.code_value, error=exc.error_message)
        return JSONResponse(
            status_code=exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": exc.error_message, "code": exc.code_value},
        )

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("api.unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal Server Error"},
        )

    logger.info(
        "application.created",
        environment=settings.environment,
        mode=sdk.mode,
        gateways=sdk.gateways,
        webhook_path=settings.webhook_path,
    )
    return application


app = create_application()
