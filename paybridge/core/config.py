from functools import lru_cache
from typing import Any, Dict

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from paybridge.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_PAYMENT_MODES = {"sandbox", "production"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="paybridge")
    environment: str = Field(default="development")
    payment_mode: str = Field(default="sandbox", description="Gateway environment: 'sandbox' or 'production'")
    log_level: str = Field(default="INFO")

    # Per-gateway adapter kwargs, e.g. GATEWAYS='{"khalti": {"secret_key": "..."}}'
    gateways: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    # Per-gateway HMAC secrets for inbound webhooks
    webhook_secrets: Dict[str, str] = Field(default_factory=dict)
    webhook_path: str = Field(default="/webhooks/payments")

    @model_validator(mode="before")
    @classmethod
    def validate_payment_configuration(cls, data: Any) -> Any:
        """
        Normalize the payment mode and drop webhook secrets that are blank.

        A gateway with an empty secret would otherwise get an HMAC verifier
        that can never succeed.
        """
        if not isinstance(data, dict):
            return data
        data = data.copy()

        mode = str(data.get("payment_mode", "sandbox")).strip().lower()
        if mode not in ALLOWED_PAYMENT_MODES:
            raise ValueError(
                f"payment_mode must be one of {sorted(ALLOWED_PAYMENT_MODES)}, got '{mode}'"
            )
        data["payment_mode"] = mode

        secrets = data.get("webhook_secrets")
        if isinstance(secrets, dict):
            blank = [key for key, value in secrets.items() if not value or not str(value).strip()]
            if blank:
                logger.warning("settings.webhook_secrets.blank_ignored", gateways=blank)
            data["webhook_secrets"] = {
                key: value for key, value in secrets.items() if key not in blank
            }

        return data


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    The same instance is returned for the whole process so that the SDK and
    the HTTP layer agree on gateway configuration.
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the cached settings instance.

    Useful for testing or when configuration needs to be reloaded.
    """
    get_settings.cache_clear()
