"""Shared OAuth client types."""

from dataclasses import dataclass

USER_AGENT = "NoisebridgeDonorPortal"


class OAuthError(Exception):
    """Authorization-code exchange or profile lookup failed."""


@dataclass(frozen=True)
class OAuthIdentity:
    """Verified identity returned by a completed OAuth flow."""

    email: str
    provider_user_id: str
    display_name: str | None = None
