"""HMAC-SHA256 signed cookies for client-side session and OAuth state.

The cookie is the only record of a session; authenticity comes from the
server-held secret. Values are pydantic models serialized to JSON.

Cookie format: base64url(envelope_json).base64url(hmac_sha256(name + "." + payload))
where envelope_json is {"v": <value>, "exp": <unix seconds>}. The cookie name is
part of the signed message so a value signed for one cookie is rejected under
another, and the expiry is enforced here as well as by the browser max-age.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ValidationError

from shared.auth.models import OAuthState, SessionData

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection
    from starlette.responses import Response

logger = structlog.get_logger()

SESSION_TTL_SECONDS = 60 * 60 * 24 * 7  # 7 days
OAUTH_STATE_TTL_SECONDS = 60 * 10  # 10 minutes

COOKIE_PATH = "/"

_TOKEN_PARTS = 2  # base64url(payload).base64url(signature)


@dataclass(frozen=True)
class CookieSpec[T: BaseModel]:
    """Name, lifetime, and value model of one signed cookie."""

    name: str
    max_age: int
    model: type[T]


SESSION_COOKIE = CookieSpec("user_session", SESSION_TTL_SECONDS, SessionData)
GITHUB_STATE_COOKIE = CookieSpec("github_oauth_state", OAUTH_STATE_TTL_SECONDS, OAuthState)
GOOGLE_STATE_COOKIE = CookieSpec("google_oauth_state", OAUTH_STATE_TTL_SECONDS, OAuthState)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class SignedCookieStore:
    """Read, write, and clear signed cookies on the current request/response.

    Holds no per-request state; one instance serves the whole process.
    """

    def __init__(self, secret: str, *, cookie_secure: bool) -> None:
        self._secret = secret.encode()
        self._cookie_secure = cookie_secure

    def sign(self, name: str, value: BaseModel, max_age: int, *, now: float | None = None) -> str:
        """Serialize value into a signed envelope valid for max_age seconds."""
        issued = time.time() if now is None else now
        envelope = {"v": value.model_dump(mode="json"), "exp": issued + max_age}
        payload_b64 = _b64encode(json.dumps(envelope, sort_keys=True, separators=(",", ":")).encode())
        return f"{payload_b64}.{_b64encode(self._mac(name, payload_b64))}"

    def unsign(self, name: str, token: str, *, now: float | None = None) -> object | None:
        """Verify signature and expiry and return the decoded JSON value.

        Returns None on a forged, truncated, expired, or unparsable token.
        """
        parts = token.split(".")
        if len(parts) != _TOKEN_PARTS:
            return None
        payload_b64, sig_b64 = parts

        try:
            provided_sig = _b64decode(sig_b64)
        except (ValueError, binascii.Error):  # fmt: skip
            return None
        if not hmac.compare_digest(provided_sig, self._mac(name, payload_b64)):
            logger.debug("signed cookie signature mismatch", cookie_name=name)
            return None

        try:
            envelope = json.loads(_b64decode(payload_b64))
        except ValueError as e:
            logger.error("failed to parse signed cookie", cookie_name=name, error=str(e))
            return None
        if not isinstance(envelope, dict) or "v" not in envelope:
            logger.error("signed cookie envelope malformed", cookie_name=name)
            return None

        expires_at = envelope.get("exp")
        current = time.time() if now is None else now
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)) or current >= expires_at:
            logger.debug("signed cookie expired", cookie_name=name)
            return None

        return envelope["v"]

    def read[T: BaseModel](self, conn: HTTPConnection, spec: CookieSpec[T]) -> T | None:
        """Return the cookie value as spec.model, or None if absent or invalid."""
        token = conn.cookies.get(spec.name)
        if not token:
            return None
        raw = self.unsign(spec.name, token)
        if raw is None:
            return None
        try:
            return spec.model.model_validate(raw)
        except ValidationError as e:
            logger.error("failed to parse signed cookie", cookie_name=spec.name, error_count=e.error_count())
            return None

    def is_valid(self, conn: HTTPConnection, spec: CookieSpec) -> bool:
        """True iff the cookie is present, correctly signed, unexpired, and non-null."""
        token = conn.cookies.get(spec.name)
        if not token:
            return False
        return self.unsign(spec.name, token) is not None

    def write[T: BaseModel](self, response: Response, spec: CookieSpec[T], value: T) -> None:
        response.set_cookie(
            key=spec.name,
            value=self.sign(spec.name, value, spec.max_age),
            max_age=spec.max_age,
            path=COOKIE_PATH,
            secure=self._cookie_secure,
            httponly=True,
            samesite="lax",
        )

    def clear(self, response: Response, spec: CookieSpec) -> None:
        response.delete_cookie(
            key=spec.name,
            path=COOKIE_PATH,
            secure=self._cookie_secure,
            httponly=True,
            samesite="lax",
        )

    def _mac(self, name: str, payload_b64: str) -> bytes:
        return hmac.new(self._secret, f"{name}.{payload_b64}".encode(), hashlib.sha256).digest()
