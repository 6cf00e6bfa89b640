"""Google OAuth 2.0: authorization URL, code exchange, and verified email."""

from __future__ import annotations

from http import HTTPStatus
from urllib.parse import urlencode

import httpx

from portal.oauth.types import USER_AGENT, OAuthError, OAuthIdentity

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_SCOPES = ("openid", "email", "profile")


class GoogleOAuth:
    def __init__(self, http_client: httpx.AsyncClient, *, client_id: str, client_secret: str, base_url: str) -> None:
        self._http = http_client
        self._client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = f"{base_url.rstrip('/')}/auth/google/callback"

    def authorization_url(self, state: str, scopes: tuple[str, ...] = DEFAULT_SCOPES) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def complete(self, code: str) -> OAuthIdentity:
        """Exchange the code and return the user's verified Google email."""
        token = await self._access_token(code)
        info = await self._userinfo(token)
        email = info.get("email")
        if not email or not info.get("verified_email"):
            raise OAuthError("Google account email is not verified")
        return OAuthIdentity(email=email, provider_user_id=str(info.get("id")), display_name=info.get("name"))

    async def _access_token(self, code: str) -> str:
        try:
            response = await self._http.post(
                TOKEN_URL,
                headers={"User-Agent": USER_AGENT},
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"Google token request failed: {e}") from e
        if response.status_code != HTTPStatus.OK:
            raise OAuthError(f"Google token request returned {response.status_code}: {response.text[:200]}")
        try:
            body = response.json()
        except ValueError as e:
            raise OAuthError("Google token response is not JSON") from e
        if not isinstance(body, dict):
            raise OAuthError("Google token response is not an object")
        token = body.get("access_token")
        if not token:
            raise OAuthError("No access token in Google response")
        return token

    async def _userinfo(self, token: str) -> dict:
        try:
            response = await self._http.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {token}", "User-Agent": USER_AGENT},
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"Google userinfo request failed: {e}") from e
        if response.status_code != HTTPStatus.OK:
            raise OAuthError(f"Google userinfo request returned {response.status_code}")
        try:
            info = response.json()
        except ValueError as e:
            raise OAuthError("Google userinfo response is not JSON") from e
        if not isinstance(info, dict):
            raise OAuthError("Google userinfo response is not an object")
        return info
