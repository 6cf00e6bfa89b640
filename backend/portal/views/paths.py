"""Page paths and redirect helpers carrying ``error``/``info`` messages."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlencode

from starlette.responses import RedirectResponse

if TYPE_CHECKING:
    from starlette.requests import Request

INDEX = "/"
SIGN_IN = "/auth"
MANAGE = "/manage"

# Codes passed as ?info=<code> and the banners they produce.
INFO_MESSAGES = {
    "subscription-created": "Your monthly donation has been set up. Thank you!",
    "subscription-updated": "Your monthly donation amount has been updated. It takes effect on your next billing cycle.",
    "subscription-canceled": "Your monthly donation has been canceled.",
    "magic-link-sent": "Check your email for a sign-in link.",
    "signed-out": "You have been signed out.",
}


def format_path(path: str, **params: str | None) -> str:
    """Append non-None params to path as a query string."""
    query = {key: value for key, value in params.items() if value is not None}
    if not query:
        return path
    return f"{path}?{urlencode(query)}"


def redirect_to(path: str, *, error: str | None = None, info: str | None = None) -> RedirectResponse:
    return RedirectResponse(format_path(path, error=error, info=info), status_code=303)


def collect_messages(request: Request) -> list[dict[str, str]]:
    """Banner messages for a page, from its ``error`` and ``info`` query params.

    Unknown info codes are dropped so arbitrary text cannot be injected as info.
    """
    messages = []
    error = request.query_params.get("error")
    if error:
        messages.append({"type": "error", "text": error})
    info = request.query_params.get("info")
    if info in INFO_MESSAGES:
        messages.append({"type": "info", "text": INFO_MESSAGES[info]})
    return messages
