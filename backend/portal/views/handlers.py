"""Public pages and the health check."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from portal.billing.donation import DONATION_MINIMUM_CENTS
from portal.billing.subscription import SUBSCRIPTION_MINIMUM_CENTS
from portal.views.billing_handlers import tier_options
from portal.views.paths import collect_messages
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.money import format_amount

if TYPE_CHECKING:
    from starlette.requests import Request


async def index_page(request: Request) -> JSONResponse:
    """GET / - donation options."""
    return JSONResponse(
        {
            "signed_in": request.user.is_authenticated,
            "tiers": tier_options(None),
            "minimums": {
                "one_time": format_amount(DONATION_MINIMUM_CENTS),
                "monthly": format_amount(SUBSCRIPTION_MINIMUM_CENTS),
            },
            "messages": collect_messages(request),
        },
    )


async def thank_you_page(request: Request) -> JSONResponse:
    return JSONResponse({"message": "Thank you for supporting Noisebridge!", "messages": collect_messages(request)})


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})
