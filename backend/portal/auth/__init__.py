"""Portal authentication: Starlette backend, donor model, and route policy."""

from portal.auth.backend import SignedSessionBackend
from portal.auth.models import AuthenticatedDonor
from portal.auth.policy import protected_html, public_route, validate_route_auth_policy

__all__ = [
    "AuthenticatedDonor",
    "SignedSessionBackend",
    "protected_html",
    "public_route",
    "validate_route_auth_policy",
]
