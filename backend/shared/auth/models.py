"""Session and sign-in state models carried in signed cookies and magic links."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class AuthProvider(StrEnum):
    GITHUB = "github"
    GOOGLE = "google"
    MAGIC_LINK = "magic_link"


class SessionData(BaseModel, frozen=True):
    """Signed-in donor identity. The signed cookie is the only record."""

    email: str
    provider: AuthProvider


class OAuthState(BaseModel, frozen=True):
    """CSRF state for an in-flight OAuth authorization-code flow."""

    state: str


class MagicLinkState(BaseModel):
    """Payload embedded (base64 JSON) in an emailed sign-in link."""

    model_config = ConfigDict(frozen=True, strict=True)

    email: str
    code: str
