"""User model for Starlette AuthenticationMiddleware integration."""

from __future__ import annotations

from starlette.authentication import BaseUser

from shared.auth.models import AuthProvider


class AuthenticatedDonor(BaseUser):
    """Signed-in donor for Starlette's request.user.

    Built by the auth backend from the signed session cookie.
    """

    def __init__(self, email: str, provider: AuthProvider) -> None:
        self._email = email
        self._provider = provider

    @property
    def is_authenticated(self) -> bool:  # pragma: no cover
        return True

    @property
    def display_name(self) -> str:  # pragma: no cover
        return self._email

    @property
    def identity(self) -> str:  # pragma: no cover
        return self._email

    @property
    def email(self) -> str:
        return self._email

    @property
    def provider(self) -> AuthProvider:
        return self._provider
