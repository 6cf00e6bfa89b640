"""Tests for the signed-session authentication backend."""

from __future__ import annotations

import pytest
from starlette.requests import HTTPConnection

from portal.auth.backend import SignedSessionBackend
from portal.auth.models import AuthenticatedDonor
from portal.tests.helpers.app import COOKIE_SECRET
from shared.auth.models import AuthProvider, OAuthState, SessionData
from shared.auth.signed_cookies import SESSION_COOKIE, SESSION_TTL_SECONDS, SignedCookieStore


@pytest.fixture
def cookies() -> SignedCookieStore:
    return SignedCookieStore(COOKIE_SECRET, cookie_secure=False)


@pytest.fixture
def backend(cookies) -> SignedSessionBackend:
    return SignedSessionBackend(cookies)


def _connection(cookie_header: str | None) -> HTTPConnection:
    headers = [(b"cookie", cookie_header.encode())] if cookie_header else []
    return HTTPConnection({"type": "http", "path": "/", "headers": headers})


class TestSignedSessionBackend:
    async def test_valid_session_authenticates(self, backend, cookies) -> None:
        token = cookies.sign(SESSION_COOKIE.name, SessionData(email="a@b.com", provider=AuthProvider.GOOGLE), 60)

        result = await backend.authenticate(_connection(f"{SESSION_COOKIE.name}={token}"))

        assert result is not None
        credentials, user = result
        assert credentials.scopes == ["authenticated"]
        assert isinstance(user, AuthenticatedDonor)
        assert user.email == "a@b.com"
        assert user.provider is AuthProvider.GOOGLE
        assert user.is_authenticated

    async def test_no_cookie(self, backend) -> None:
        assert await backend.authenticate(_connection(None)) is None

    async def test_forged_cookie(self, backend) -> None:
        forger = SignedCookieStore("not-the-secret", cookie_secure=False)
        token = forger.sign(SESSION_COOKIE.name, SessionData(email="a@b.com", provider=AuthProvider.GITHUB), 60)
        assert await backend.authenticate(_connection(f"{SESSION_COOKIE.name}={token}")) is None

    async def test_expired_cookie(self, backend, cookies) -> None:
        session = SessionData(email="a@b.com", provider=AuthProvider.GITHUB)
        token = cookies.sign(SESSION_COOKIE.name, session, SESSION_TTL_SECONDS, now=0)
        assert await backend.authenticate(_connection(f"{SESSION_COOKIE.name}={token}")) is None

    async def test_state_cookie_cannot_act_as_session(self, backend, cookies) -> None:
        token = cookies.sign("github_oauth_state", OAuthState(state="s"), 60)
        assert await backend.authenticate(_connection(f"{SESSION_COOKIE.name}={token}")) is None
