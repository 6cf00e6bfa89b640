"""Authentication primitives shared by the portal: signed cookies and magic links."""

from shared.auth.magic_link import MagicLinkEngine, decode_state, encode_state
from shared.auth.models import AuthProvider, MagicLinkState, OAuthState, SessionData
from shared.auth.settings import AuthSettings
from shared.auth.signed_cookies import (
    GITHUB_STATE_COOKIE,
    GOOGLE_STATE_COOKIE,
    SESSION_COOKIE,
    CookieSpec,
    SignedCookieStore,
)

__all__ = [
    "GITHUB_STATE_COOKIE",
    "GOOGLE_STATE_COOKIE",
    "SESSION_COOKIE",
    "AuthProvider",
    "AuthSettings",
    "CookieSpec",
    "MagicLinkEngine",
    "MagicLinkState",
    "OAuthState",
    "SessionData",
    "SignedCookieStore",
    "decode_state",
    "encode_state",
]
