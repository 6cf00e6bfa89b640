from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog
from starlette.applications import Starlette
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from portal.auth.backend import SignedSessionBackend
from portal.auth.policy import protected_html, public_route, validate_route_auth_policy
from portal.billing.donation import DonationManager
from portal.billing.provider import StripeBillingProvider
from portal.billing.subscription import SubscriptionManager
from portal.email.manager import EmailManager
from portal.email.sender import ResendEmailSender
from portal.oauth.github import GitHubOAuth
from portal.oauth.google import GoogleOAuth
from portal.server.middleware import RequestContextMiddleware, SecurityHeadersMiddleware, SlashNormalizationMiddleware
from portal.server.settings import BillingSettings, EmailSettings, OAuthSettings, PortalServerSettings
from portal.views.auth_handlers import (
    auth_backdoor,
    email_auth,
    email_callback,
    github_callback,
    github_start,
    google_callback,
    google_start,
    sign_in_page,
    sign_out,
)
from portal.views.billing_handlers import billing_portal, cancel, donate, manage_page, subscribe
from portal.views.handlers import health, index_page, thank_you_page
from portal.views.webhook_handlers import webhook
from shared.auth.magic_link import MagicLinkEngine
from shared.auth.settings import AuthSettings
from shared.auth.signed_cookies import SignedCookieStore
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from portal.billing.provider import BillingProvider
    from portal.email.sender import EmailSender


async def _server_error(_request: Request, exc: Exception) -> JSONResponse:
    """Generic 500 for unexpected faults. In debug mode Starlette renders the traceback instead."""
    logger.error("unhandled exception", error_type=type(exc).__name__, error=str(exc), exc_info=exc)
    return JSONResponse(
        {"error": "Something went wrong. Please try again later."},
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
    )


def _build_routes(auth_settings: AuthSettings) -> list[Route]:
    routes = [
        # Protected routes (redirect to /auth when signed out)
        Route("/manage", protected_html(manage_page), methods=["GET"], name="manage_page"),
        Route("/subscribe", protected_html(subscribe), methods=["POST"], name="subscribe"),
        Route("/subscribe/portal", protected_html(billing_portal), methods=["GET"], name="billing_portal"),
        Route("/cancel", protected_html(cancel), methods=["POST"], name="cancel"),
        # Public routes
        Route("/", public_route(index_page), methods=["GET"], name="index_page"),
        Route("/thank-you", public_route(thank_you_page), methods=["GET"], name="thank_you_page"),
        Route("/donate", public_route(donate), methods=["POST"], name="donate"),
        Route("/healthz", public_route(health), methods=["GET"], name="health"),
        Route("/webhook", public_route(webhook), methods=["POST"], name="webhook"),
        Route("/auth", public_route(sign_in_page), methods=["GET"], name="sign_in_page"),
        Route("/auth/github/start", public_route(github_start), methods=["GET"], name="github_start"),
        Route("/auth/github/callback", public_route(github_callback), methods=["GET"], name="github_callback"),
        Route("/auth/google/start", public_route(google_start), methods=["GET"], name="google_start"),
        Route("/auth/google/callback", public_route(google_callback), methods=["GET"], name="google_callback"),
        Route("/auth/email", public_route(email_auth), methods=["POST"], name="email_auth"),
        Route("/auth/email/callback", public_route(email_callback), methods=["GET"], name="email_callback"),
        Route("/auth/signout", public_route(sign_out), methods=["GET"], name="sign_out"),
    ]
    if auth_settings.testing_backdoor:
        logger.warning("testing backdoor enabled")
        routes.append(Route("/auth/backdoor", public_route(auth_backdoor), methods=["GET"], name="auth_backdoor"))
    return routes


def create_app(  # noqa: PLR0913
    settings: PortalServerSettings | None = None,
    auth_settings: AuthSettings | None = None,
    billing_settings: BillingSettings | None = None,
    oauth_settings: OAuthSettings | None = None,
    email_settings: EmailSettings | None = None,
    *,
    billing_provider: BillingProvider | None = None,
    email_sender: EmailSender | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Starlette:
    """Build the portal app.

    ``billing_provider``, ``email_sender`` and ``http_client`` replace the
    Stripe, Resend and outbound HTTP clients; tests pass in-memory fakes.
    """
    if settings is None:  # pragma: no cover
        settings = PortalServerSettings()
    if auth_settings is None:  # pragma: no cover
        auth_settings = AuthSettings()  # type: ignore[call-arg]
    if billing_settings is None:  # pragma: no cover
        billing_settings = BillingSettings()  # type: ignore[call-arg]
    if oauth_settings is None:  # pragma: no cover
        oauth_settings = OAuthSettings()  # type: ignore[call-arg]
    if email_settings is None:  # pragma: no cover
        email_settings = EmailSettings()  # type: ignore[call-arg]

    routes = _build_routes(auth_settings)
    validate_route_auth_policy(routes)

    owns_http_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=billing_settings.request_timeout_seconds)
    if billing_provider is None:
        billing_provider = StripeBillingProvider(
            billing_settings.secret_key,
            timeout_seconds=billing_settings.request_timeout_seconds,
        )
    if email_sender is None:
        email_sender = ResendEmailSender(http_client, email_settings.resend_key)

    cookies = SignedCookieStore(auth_settings.cookie_secret, cookie_secure=auth_settings.cookie_secure)
    magic_links = MagicLinkEngine(auth_settings.totp_secret, settings.base_url)
    email_manager = EmailManager(
        email_sender,
        magic_links,
        from_address=email_settings.from_address,
        base_url=settings.base_url,
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        if owns_http_client:
            await http_client.aclose()

    app = Starlette(
        debug=not settings.production,
        routes=routes,
        lifespan=lifespan,
        exception_handlers={Exception: _server_error},
    )
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(AuthenticationMiddleware, backend=SignedSessionBackend(cookies))  # type: ignore[arg-type]
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.production)  # type: ignore[arg-type]
    app.add_middleware(RequestContextMiddleware)  # type: ignore[arg-type]

    app.state.settings = settings
    app.state.auth_settings = auth_settings
    app.state.billing_settings = billing_settings
    app.state.cookies = cookies
    app.state.magic_links = magic_links
    app.state.http_client = http_client
    app.state.billing_provider = billing_provider
    app.state.email_manager = email_manager
    app.state.subscription_manager = SubscriptionManager(
        billing_provider,
        email_manager,
        base_url=settings.base_url,
        product_id=billing_settings.product_id,
        portal_configuration=billing_settings.portal_config,
        currency=billing_settings.currency,
    )
    app.state.donation_manager = DonationManager(
        billing_provider,
        base_url=settings.base_url,
        currency=billing_settings.currency,
    )
    app.state.github_oauth = GitHubOAuth(
        http_client,
        client_id=oauth_settings.github_client_id,
        client_secret=oauth_settings.github_secret,
        base_url=settings.base_url,
    )
    app.state.google_oauth = GoogleOAuth(
        http_client,
        client_id=oauth_settings.google_client_id,
        client_secret=oauth_settings.google_secret,
        base_url=settings.base_url,
    )

    logger.info("portal server ready", production=settings.production)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory portal.server.app:get_app."""
    s = PortalServerSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s)
