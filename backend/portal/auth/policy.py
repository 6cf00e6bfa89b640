"""Fail-closed route auth policy.

Every endpoint registered on the portal is wrapped by ``protected_html`` or
``public_route``; ``validate_route_auth_policy`` refuses to build an app that
has a route with neither.
"""

from __future__ import annotations

import functools
import inspect
from enum import StrEnum
from typing import TYPE_CHECKING

from starlette.authentication import has_required_scope
from starlette.responses import RedirectResponse
from starlette.routing import Route

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

    type Endpoint = Callable[[Request], Awaitable[Response]]

AUTH_POLICY_ATTR = "__auth_policy__"

SIGN_IN_PATH = "/auth"


class AuthPolicy(StrEnum):
    PROTECTED = "protected_html"
    PUBLIC = "public"


def policy_of(endpoint: object) -> AuthPolicy | None:
    return getattr(endpoint, AUTH_POLICY_ATTR, None)


def _require_coroutine(endpoint: Endpoint) -> None:
    if not inspect.iscoroutinefunction(endpoint):
        msg = f"{endpoint.__name__} must be an async endpoint to carry an auth policy"
        raise TypeError(msg)


def protected_html(endpoint: Endpoint) -> Endpoint:
    """Require a signed-in donor; anyone else is sent to the sign-in page.

    The redirect target is a relative path, never built from the Host header.
    """
    _require_coroutine(endpoint)

    @functools.wraps(endpoint)
    async def guarded(request: Request) -> Response:
        if not has_required_scope(request, ["authenticated"]):
            return RedirectResponse(url=SIGN_IN_PATH, status_code=303)
        return await endpoint(request)

    setattr(guarded, AUTH_POLICY_ATTR, AuthPolicy.PROTECTED)
    return guarded


def public_route(endpoint: Endpoint) -> Endpoint:
    """Mark an endpoint as open to signed-out visitors.

    The marker goes on a wrapper so the handler itself stays unmarked and can
    be registered under another policy elsewhere.
    """
    _require_coroutine(endpoint)

    @functools.wraps(endpoint)
    async def open_endpoint(request: Request) -> Response:
        return await endpoint(request)

    setattr(open_endpoint, AUTH_POLICY_ATTR, AuthPolicy.PUBLIC)
    return open_endpoint


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Raise RuntimeError naming every Route whose endpoint has no policy."""
    missing = [
        f"{route.path} ({route.name})"
        for route in routes
        if isinstance(route, Route) and policy_of(route.endpoint) is None
    ]
    if missing:
        msg = f"Routes without an auth policy: {', '.join(missing)}"
        raise RuntimeError(msg)
