"""Portal configuration via environment variables, one settings class per concern."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class PortalServerSettings(BaseSettings):
    model_config = {"env_prefix": "PORTAL_"}

    # Scheme and host of every absolute URL the portal emits (OAuth redirects,
    # checkout return URLs, magic links).
    base_url: str = "http://localhost:3000"
    production: bool = False
    log_dir: str | None = "backend/logs/portal"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")


class BillingSettings(BaseSettings):
    model_config = {"env_prefix": "STRIPE_"}

    secret_key: str = Field(min_length=1)
    portal_config: str = Field(min_length=1)
    # Without it the webhook endpoint rejects every delivery.
    webhook_secret: str | None = None
    product_id: str = "monthly_donation"
    currency: str = "usd"
    # Bounds every outbound call: billing provider, OAuth providers, email API.
    request_timeout_seconds: float = Field(default=10.0, gt=0)


class OAuthSettings(BaseSettings):
    model_config = {"env_prefix": "OAUTH_"}

    github_client_id: str = Field(min_length=1)
    github_secret: str = Field(min_length=1)
    google_client_id: str = Field(min_length=1)
    google_secret: str = Field(min_length=1)


class EmailSettings(BaseSettings):
    model_config = {"env_prefix": "EMAIL_"}

    resend_key: str = Field(min_length=1)
    from_address: str = "Noisebridge <onboarding@resend.dev>"
