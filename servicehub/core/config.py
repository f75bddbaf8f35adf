# servicehub/core/config.py
import logging
import os
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


DEFAULT_SENSITIVE_FIELDS: List[str] = [
    "password",
    "token",
    "secret",
    "apiKey",
    "api_key",
    "authorization",
    "client_secret",
    "payment_method_id",
]

PAYPAL_LIVE_BASE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"


class Settings(BaseSettings):
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "ENV"),
        description="Deployment environment name (development|staging|production)",
    )
    is_testing: bool = False  # Set to True when running tests

    # Cache
    redis_url: Optional[str] = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis URL for the primary cache backend; memory-only when unset",
    )
    cache_default_ttl: int = Field(
        default=300,
        alias="CACHE_DEFAULT_TTL",
        description="Default TTL in seconds for cache-aside entries",
    )
    cache_use_memory_fallback: bool = Field(
        default=True,
        alias="CACHE_USE_MEMORY_FALLBACK",
        description="Serve reads/writes from the in-memory store when Redis is unreachable",
    )

    # Stripe
    stripe_secret_key: Optional[SecretStr] = Field(
        default=None,
        alias="STRIPE_SECRET_KEY",
        description="Stripe secret API key; Stripe processor disabled when unset",
    )
    stripe_api_version: str = Field(default="2025-10-29.clover", alias="STRIPE_API_VERSION")

    # PayPal
    paypal_client_id: Optional[str] = Field(default=None, alias="PAYPAL_CLIENT_ID")
    paypal_client_secret: Optional[SecretStr] = Field(default=None, alias="PAYPAL_CLIENT_SECRET")
    paypal_sandbox: bool = Field(default=True, alias="PAYPAL_SANDBOX")

    # Gateway / retry behaviour
    gateway_timeout_seconds: float = Field(
        default=30.0,
        alias="GATEWAY_TIMEOUT_SECONDS",
        description="Deadline applied to every individual gateway call",
    )
    payment_intent_ttl_seconds: int = Field(
        default=3600,
        alias="PAYMENT_INTENT_TTL_SECONDS",
        description="How long an unconfirmed or action-pending intent stays confirmable",
    )
    payment_retry_max_attempts: int = Field(default=2, alias="PAYMENT_RETRY_MAX_ATTEMPTS")
    payment_retry_base_delay: float = Field(
        default=1.0,
        alias="PAYMENT_RETRY_BASE_DELAY",
        description="Base delay in seconds between payment retries",
    )
    payment_retry_backoff_multiplier: float = Field(
        default=2.0, alias="PAYMENT_RETRY_BACKOFF_MULTIPLIER"
    )

    # Logging / monitoring
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_sensitive_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_FIELDS),
        alias="LOG_SENSITIVE_FIELDS",
        description="Argument/result field names masked by the logging interceptor",
    )
    sentry_dsn: Optional[str] = Field(default=None, alias="SENTRY_DSN")

    default_locale: str = Field(default="fr", alias="DEFAULT_LOCALE")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("gateway_timeout_seconds", "payment_retry_base_delay")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("payment_retry_max_attempts")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @model_validator(mode="after")
    def _detect_testing(self) -> "Settings":
        if is_running_tests():
            self.is_testing = True
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production", "live"}

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_secret_key.get_secret_value())

    @property
    def paypal_enabled(self) -> bool:
        return bool(
            self.paypal_client_id
            and self.paypal_client_secret
            and self.paypal_client_secret.get_secret_value()
        )

    @property
    def paypal_base_url(self) -> str:
        return PAYPAL_SANDBOX_BASE_URL if self.paypal_sandbox else PAYPAL_LIVE_BASE_URL


settings = Settings()
