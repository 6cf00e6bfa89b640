"""Starlette AuthenticationBackend that trusts the signed session cookie."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.authentication import AuthCredentials, AuthenticationBackend

from portal.auth.models import AuthenticatedDonor
from shared.auth.signed_cookies import SESSION_COOKIE

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from shared.auth.signed_cookies import SignedCookieStore


class SignedSessionBackend(AuthenticationBackend):
    """Authenticate requests from the signed ``user_session`` cookie.

    There is no server-side session table: a correctly signed, unexpired
    cookie is the session.
    """

    def __init__(self, cookies: SignedCookieStore) -> None:
        self._cookies = cookies

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedDonor] | None:
        session = self._cookies.read(conn, SESSION_COOKIE)
        if session is None:
            return None
        return AuthCredentials(["authenticated"]), AuthenticatedDonor(email=session.email, provider=session.provider)
