"""Auth settings: signing secrets and cookie policy."""

from pydantic import Field
from pydantic_settings import BaseSettings


class AuthSettings(BaseSettings):
    model_config = {"env_prefix": "AUTH_"}

    # Signs every cookie the portal sets -- required, no default.
    cookie_secret: str = Field(min_length=1)

    # HMAC key for magic-link codes -- required, no default.
    totp_secret: str = Field(min_length=1)

    # Cookie Secure flag -- True in production, False for local dev (HTTP)
    cookie_secure: bool = False

    # Enables GET /auth/backdoor for end-to-end test runs. Never set in production.
    testing_backdoor: bool = False
