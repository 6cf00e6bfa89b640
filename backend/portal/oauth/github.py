"""GitHub OAuth: authorization URL, code exchange, and primary verified email."""

from __future__ import annotations

import asyncio
from http import HTTPStatus
from urllib.parse import urlencode

import httpx
import structlog

from portal.oauth.types import USER_AGENT, OAuthError, OAuthIdentity

logger = structlog.get_logger()

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
EMAILS_URL = "https://api.github.com/user/emails"

DEFAULT_SCOPES = ("user:email",)

_API_ACCEPT = "application/vnd.github.v3+json"


class GitHubOAuth:
    def __init__(self, http_client: httpx.AsyncClient, *, client_id: str, client_secret: str, base_url: str) -> None:
        self._http = http_client
        self._client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = f"{base_url.rstrip('/')}/auth/github/callback"

    def authorization_url(self, state: str, scopes: tuple[str, ...] = DEFAULT_SCOPES) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "scope": " ".join(scopes),
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def complete(self, code: str) -> OAuthIdentity:
        """Exchange the code and return the user's primary verified email."""
        token = await self._access_token(code)
        profile, email = await asyncio.gather(self._profile(token), self._primary_email(token))
        if email is None:
            raise OAuthError("GitHub account has no verified primary email")
        return OAuthIdentity(email=email, provider_user_id=str(profile.get("id")), display_name=profile.get("login"))

    async def _access_token(self, code: str) -> str:
        try:
            response = await self._http.post(
                TOKEN_URL,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                json={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"GitHub token request failed: {e}") from e
        if response.status_code != HTTPStatus.OK:
            raise OAuthError(f"GitHub token request returned {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise OAuthError("GitHub token response is not JSON") from e
        if not isinstance(body, dict):
            raise OAuthError("GitHub token response is not an object")
        token = body.get("access_token")
        if not token:
            # GitHub reports bad_verification_code etc. with a 200 and an error field
            raise OAuthError(f"No access token in GitHub response: {body.get('error')}")
        return token

    async def _get(self, url: str, token: str) -> httpx.Response:
        try:
            return await self._http.get(
                url,
                headers={"Authorization": f"Bearer {token}", "Accept": _API_ACCEPT, "User-Agent": USER_AGENT},
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"GitHub API request failed: {e}") from e

    async def _profile(self, token: str) -> dict:
        response = await self._get(USER_URL, token)
        if response.status_code != HTTPStatus.OK:
            raise OAuthError(f"GitHub profile request returned {response.status_code}")
        try:
            profile = response.json()
        except ValueError as e:
            raise OAuthError("GitHub profile response is not JSON") from e
        if not isinstance(profile, dict):
            raise OAuthError("GitHub profile response is not an object")
        return profile

    async def _primary_email(self, token: str) -> str | None:
        response = await self._get(EMAILS_URL, token)
        if response.status_code != HTTPStatus.OK:
            logger.error("github email lookup failed", status=response.status_code)
            return None
        try:
            entries = response.json()
        except ValueError:
            return None
        for entry in entries if isinstance(entries, list) else ():
            if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
                return entry.get("email")
        return None
