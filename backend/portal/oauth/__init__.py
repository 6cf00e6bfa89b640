"""OAuth2 authorization-code clients for GitHub and Google sign-in."""

from portal.oauth.github import GitHubOAuth
from portal.oauth.google import GoogleOAuth
from portal.oauth.types import OAuthError, OAuthIdentity

__all__ = ["GitHubOAuth", "GoogleOAuth", "OAuthError", "OAuthIdentity"]
