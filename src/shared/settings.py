"""Runtime settings shared by the ordering, payments and notifications packages.

Values come from environment variables so the same code runs in tests,
local development (fake gateway, no frontend) and production. Settings are
cached per process; tests call reset_settings() after changing the
environment.
"""

import os
from functools import lru_cache

from pydantic import BaseModel, Field

SANDBOX_BASE_URL = "https://developersandbox-api.flutterwave.com"
LIVE_BASE_URL = "https://api.flutterwave.com/v3"
DEFAULT_OAUTH_TOKEN_URL = "https://idp.flutterwave.com/realms/flutterwave/protocol/openid-connect/token"

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    environment: str = "development"

    # Where the shopper's browser is sent after the payment redirect
    frontend_url: str | None = None
    app_url: str | None = None

    # Payment gateway
    payment_gateway: str = "fake"  # fake, flutterwave
    client_id: str | None = None
    client_secret: str | None = None
    webhook_secret_hash: str | None = None
    gateway_environment: str = "sandbox"  # sandbox, live
    base_url: str = SANDBOX_BASE_URL
    oauth_token_url: str = DEFAULT_OAUTH_TOKEN_URL
    currency: str = Field(default="RWF", max_length=3)
    redirect_url: str | None = None
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    webhook_signature_required: bool = False

    # Timeout reaper
    payment_timeout_minutes: int = Field(default=30, ge=1)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def frontend_base(self) -> str | None:
        """Frontend URL without a trailing slash, or None when unconfigured."""
        url = self.frontend_url or self.app_url
        return url.rstrip("/") if url else None


def load_settings(environ=None) -> Settings:
    """Build Settings from an environment mapping (defaults to os.environ)."""
    env = os.environ if environ is None else environ

    environment = env.get("PROTEAN_ENV", "development")
    gateway_environment = env.get("FLUTTERWAVE_ENV", "sandbox")
    app_url = env.get("APP_URL") or None

    base_url = env.get("FLUTTERWAVE_BASE_URL") or (
        LIVE_BASE_URL if gateway_environment == "live" else SANDBOX_BASE_URL
    )
    redirect_url = env.get("FLUTTERWAVE_REDIRECT_URL") or (
        f"{app_url.rstrip('/')}/payment/callback" if app_url else None
    )

    signature_flag = env.get("WEBHOOK_SIGNATURE_REQUIRED")
    if signature_flag is None:
        signature_required = environment == "production"
    else:
        signature_required = signature_flag.strip().lower() in _TRUTHY

    return Settings(
        environment=environment,
        frontend_url=env.get("FRONTEND_URL") or None,
        app_url=app_url,
        payment_gateway=env.get("PAYMENT_GATEWAY", "fake").strip().lower(),
        client_id=env.get("FLUTTERWAVE_CLIENT_ID") or None,
        client_secret=env.get("FLUTTERWAVE_CLIENT_SECRET") or None,
        webhook_secret_hash=env.get("FLUTTERWAVE_WEBHOOK_SECRET_HASH") or None,
        gateway_environment=gateway_environment,
        base_url=base_url,
        oauth_token_url=env.get("FLUTTERWAVE_OAUTH_TOKEN_URL") or DEFAULT_OAUTH_TOKEN_URL,
        currency=env.get("FLUTTERWAVE_CURRENCY", "RWF"),
        redirect_url=redirect_url,
        http_timeout_seconds=float(env.get("PAYMENT_HTTP_TIMEOUT", "30")),
        webhook_signature_required=signature_required,
        payment_timeout_minutes=int(env.get("PAYMENT_TIMEOUT_MINUTES", "30")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
