"""Sign-in endpoints: GitHub and Google OAuth, email magic links, sign-out."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse, RedirectResponse, Response

from portal.email.sender import EmailDeliveryError
from portal.oauth.types import OAuthError
from portal.views.paths import MANAGE, SIGN_IN, collect_messages, redirect_to
from shared.auth.magic_link import decode_state
from shared.auth.models import AuthProvider, OAuthState, SessionData
from shared.auth.signed_cookies import GITHUB_STATE_COOKIE, GOOGLE_STATE_COOKIE, SESSION_COOKIE

if TYPE_CHECKING:
    from starlette.requests import Request

    from portal.oauth.github import GitHubOAuth
    from portal.oauth.google import GoogleOAuth
    from shared.auth.signed_cookies import CookieSpec, SignedCookieStore

logger = structlog.get_logger()

EMAIL_MAX_LENGTH = 254

INVALID_STATE_ERROR = "Sign-in expired or was tampered with. Please try again."
OAUTH_FAILED_ERROR = "Unable to sign in. Please try again."
INVALID_EMAIL_ERROR = "Please enter a valid email address"
EMAIL_SEND_ERROR = "Unable to send sign-in email. Please try again."
INVALID_LINK_ERROR = "Sign-in link is invalid or expired. Please request a new one."


def normalize_email(raw: str) -> str | None:
    """Trim an email address; None if it is obviously invalid.

    Case is preserved; billing customer lookups match it exactly.
    """
    email = raw.strip()
    if not email or len(email) > EMAIL_MAX_LENGTH:
        return None
    local, sep, domain = email.rpartition("@")
    if not sep or not local or "." not in domain or any(c.isspace() for c in email):
        return None
    return email


def _sign_in_response(request: Request, email: str, provider: AuthProvider) -> Response:
    """Set the session cookie and send the donor to the manage page."""
    cookies: SignedCookieStore = request.app.state.cookies
    response = RedirectResponse(MANAGE, status_code=303)
    cookies.write(response, SESSION_COOKIE, SessionData(email=email, provider=provider))
    logger.info("donor signed in", provider=provider)
    return response


async def sign_in_page(request: Request) -> Response:
    """GET /auth - sign-in options and any pending messages."""
    return JSONResponse(
        {
            "providers": [AuthProvider.GITHUB, AuthProvider.GOOGLE, AuthProvider.MAGIC_LINK],
            "messages": collect_messages(request),
        },
    )


def _start_oauth(request: Request, client: GitHubOAuth | GoogleOAuth, spec: CookieSpec[OAuthState]) -> Response:
    cookies: SignedCookieStore = request.app.state.cookies
    state = secrets.token_hex(32)
    response = RedirectResponse(client.authorization_url(state), status_code=303)
    cookies.write(response, spec, OAuthState(state=state))
    return response


async def _finish_oauth(
    request: Request,
    client: GitHubOAuth | GoogleOAuth,
    spec: CookieSpec[OAuthState],
    provider: AuthProvider,
) -> Response:
    cookies: SignedCookieStore = request.app.state.cookies
    expected = cookies.read(request, spec)

    error = request.query_params.get("error")
    code = request.query_params.get("code")
    state = request.query_params.get("state")

    if error:
        logger.info("oauth provider returned error", provider=provider, error=error)
        response = redirect_to(SIGN_IN, error=OAUTH_FAILED_ERROR)
    elif expected is None or not state or not secrets.compare_digest(expected.state.encode(), state.encode()):
        logger.warning("oauth state mismatch", provider=provider, has_cookie=expected is not None)
        response = redirect_to(SIGN_IN, error=INVALID_STATE_ERROR)
    elif not code:
        response = redirect_to(SIGN_IN, error=OAUTH_FAILED_ERROR)
    else:
        try:
            identity = await client.complete(code)
        except OAuthError as e:
            logger.warning("oauth exchange failed", provider=provider, error=str(e))
            response = redirect_to(SIGN_IN, error=OAUTH_FAILED_ERROR)
        else:
            email = normalize_email(identity.email)
            if email is None:
                response = redirect_to(SIGN_IN, error=OAUTH_FAILED_ERROR)
            else:
                response = _sign_in_response(request, email, provider)

    # state is single-use whatever the outcome
    cookies.clear(response, spec)
    return response


async def github_start(request: Request) -> Response:
    """GET /auth/github/start - redirect to GitHub with a fresh state cookie."""
    return _start_oauth(request, request.app.state.github_oauth, GITHUB_STATE_COOKIE)


async def github_callback(request: Request) -> Response:
    """GET /auth/github/callback?code&state&error"""
    return await _finish_oauth(request, request.app.state.github_oauth, GITHUB_STATE_COOKIE, AuthProvider.GITHUB)


async def google_start(request: Request) -> Response:
    """GET /auth/google/start - redirect to Google with a fresh state cookie."""
    return _start_oauth(request, request.app.state.google_oauth, GOOGLE_STATE_COOKIE)


async def google_callback(request: Request) -> Response:
    """GET /auth/google/callback?code&state&error"""
    return await _finish_oauth(request, request.app.state.google_oauth, GOOGLE_STATE_COOKIE, AuthProvider.GOOGLE)


async def email_auth(request: Request) -> Response:
    """POST /auth/email {email} - email a magic sign-in link."""
    form = await request.form()
    email = normalize_email(str(form.get("email", "")))
    if email is None:
        return redirect_to(SIGN_IN, error=INVALID_EMAIL_ERROR)

    try:
        await request.app.state.email_manager.send_magic_link(email)
    except EmailDeliveryError:
        logger.exception("magic link email failed")
        return redirect_to(SIGN_IN, error=EMAIL_SEND_ERROR)
    return redirect_to(SIGN_IN, info="magic-link-sent")


async def email_callback(request: Request) -> Response:
    """GET /auth/email/callback?state=<base64> - verify the link and sign in."""
    encoded = request.query_params.get("state")
    link = decode_state(encoded) if encoded else None
    if link is None:
        return redirect_to(SIGN_IN, error=INVALID_LINK_ERROR)

    if not request.app.state.magic_links.verify(link.email, link.code):
        logger.info("magic link code rejected")
        return redirect_to(SIGN_IN, error=INVALID_LINK_ERROR)

    email = normalize_email(link.email)
    if email is None:
        return redirect_to(SIGN_IN, error=INVALID_LINK_ERROR)
    return _sign_in_response(request, email, AuthProvider.MAGIC_LINK)


async def sign_out(request: Request) -> Response:
    """GET /auth/signout - drop the session cookie."""
    cookies: SignedCookieStore = request.app.state.cookies
    response = redirect_to("/", info="signed-out")
    cookies.clear(response, SESSION_COOKIE)
    return response


async def auth_backdoor(request: Request) -> Response:
    """GET /auth/backdoor?email= - sign in without verification (test deployments only)."""
    email = normalize_email(request.query_params.get("email", ""))
    if email is None:
        return redirect_to(SIGN_IN, error=INVALID_EMAIL_ERROR)
    logger.warning("testing backdoor sign-in used")
    return _sign_in_response(request, email, AuthProvider.MAGIC_LINK)
