"""Donation endpoints: manage page, monthly subscribe/cancel/portal, one-time donate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse, RedirectResponse

from portal.billing.types import (
    BillingProviderError,
    CheckoutRedirect,
    DonationErrorCode,
    PortalRedirect,
    SubscriptionCanceled,
    SubscriptionErrorCode,
    SubscriptionUpdated,
)
from portal.views.paths import INDEX, MANAGE, collect_messages, redirect_to
from shared.money import CENTS_PER_DOLLAR, format_amount, parse_amount_dollars

if TYPE_CHECKING:
    from starlette.datastructures import FormData
    from starlette.requests import Request
    from starlette.responses import Response

    from portal.billing.donation import DonationManager
    from portal.billing.subscription import SubscriptionManager

logger = structlog.get_logger()

# Preset amounts in whole dollars; anything else is a custom amount.
DONATION_TIERS = (50, 100, 200)

CUSTOM_AMOUNT = "custom"

MANAGE_UNAVAILABLE_ERROR = "Unable to load your donation details. Please try again."


def read_form_amount(form: FormData) -> int | None:
    """Amount in cents from an ``amount-dollars`` field, or ``custom-amount`` when it says "custom"."""
    choice = str(form.get("amount-dollars", "")).strip()
    if choice == CUSTOM_AMOUNT:
        return parse_amount_dollars(str(form.get("custom-amount", "")))
    return parse_amount_dollars(choice)


def tier_options(current_cents: int | None) -> list[dict[str, object]]:
    """Preset tiers with the one matching ``current_cents`` marked, plus the custom option."""
    options: list[dict[str, object]] = [
        {
            "value": str(dollars),
            "label": format_amount(dollars * CENTS_PER_DOLLAR),
            "selected": current_cents == dollars * CENTS_PER_DOLLAR,
        }
        for dollars in DONATION_TIERS
    ]
    is_custom = current_cents is not None and not any(option["selected"] for option in options)
    options.append({"value": CUSTOM_AMOUNT, "label": "Custom", "selected": is_custom})
    return options


async def manage_page(request: Request) -> Response:
    """GET /manage - the donor's current monthly donation."""
    manager: SubscriptionManager = request.app.state.subscription_manager
    email = request.user.email
    try:
        current = await manager.get_subscription(email)
    except BillingProviderError:
        logger.exception("subscription lookup failed", action="manage")
        return JSONResponse(
            {"email": email, "messages": [{"type": "error", "text": MANAGE_UNAVAILABLE_ERROR}]},
            status_code=503,
        )

    subscription = None
    if current.subscription is not None:
        amount = current.subscription.amount
        subscription = {
            "id": current.subscription.id,
            "status": current.subscription.status,
            "amount_cents": amount,
            "amount": format_amount(amount) if amount is not None else None,
        }

    return JSONResponse(
        {
            "email": email,
            "state": current.state,
            "subscription": subscription,
            "tiers": tier_options(current.amount),
            "messages": collect_messages(request),
        },
    )


async def subscribe(request: Request) -> Response:
    """POST /subscribe - start a monthly donation or change its amount."""
    manager: SubscriptionManager = request.app.state.subscription_manager
    form = await request.form()
    amount = read_form_amount(form)
    if amount is None:
        return redirect_to(MANAGE, error=SubscriptionErrorCode.INVALID_AMOUNT)

    result = await manager.subscribe(request.user.email, amount)
    if isinstance(result, CheckoutRedirect):
        return RedirectResponse(result.checkout_url, status_code=303)
    if isinstance(result, SubscriptionUpdated):
        return redirect_to(MANAGE, info="subscription-updated")
    return redirect_to(MANAGE, error=result.error)


async def billing_portal(request: Request) -> Response:
    """GET /subscribe/portal - hand off to the provider-hosted billing portal."""
    manager: SubscriptionManager = request.app.state.subscription_manager
    result = await manager.create_portal_session(request.user.email)
    if isinstance(result, PortalRedirect):
        return RedirectResponse(result.portal_url, status_code=303)
    return redirect_to(MANAGE, error=result.error)


async def cancel(request: Request) -> Response:
    """POST /cancel - cancel the monthly donation."""
    manager: SubscriptionManager = request.app.state.subscription_manager
    result = await manager.cancel(request.user.email)
    if isinstance(result, SubscriptionCanceled):
        return redirect_to(MANAGE, info="subscription-canceled")
    return redirect_to(MANAGE, error=result.error)


async def donate(request: Request) -> Response:
    """POST /donate - one-time donation checkout; no sign-in required."""
    manager: DonationManager = request.app.state.donation_manager
    form = await request.form()
    amount = read_form_amount(form)
    if amount is None:
        return redirect_to(INDEX, error=DonationErrorCode.INVALID_AMOUNT)

    result = await manager.donate(amount)
    if isinstance(result, CheckoutRedirect):
        return RedirectResponse(result.checkout_url, status_code=303)
    return redirect_to(INDEX, error=result.error)
