"""One-time donations through a provider-hosted checkout."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from portal.billing.types import (
    BillingProviderError,
    CheckoutRedirect,
    DonationErrorCode,
    DonationFailure,
)

if TYPE_CHECKING:
    from portal.billing.provider import BillingProvider
    from portal.billing.types import DonateResult

logger = structlog.get_logger()

DONATION_MINIMUM_CENTS = 200

DEFAULT_PRODUCT_NAME = "Donation to Noisebridge"
DEFAULT_PRODUCT_DESCRIPTION = "Support our hackerspace community"


class DonationManager:
    def __init__(self, provider: BillingProvider, *, base_url: str, currency: str = "usd") -> None:
        self._provider = provider
        self._base_url = base_url.rstrip("/")
        self._currency = currency

    async def donate(
        self,
        amount_cents: int,
        name: str | None = None,
        description: str | None = None,
    ) -> DonateResult:
        """Create a payment-mode checkout session for a single donation."""
        if amount_cents < DONATION_MINIMUM_CENTS:
            return DonationFailure(DonationErrorCode.INVALID_AMOUNT)

        try:
            session = await self._provider.create_checkout_session(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self._currency,
                            "product_data": {
                                "name": name or DEFAULT_PRODUCT_NAME,
                                "description": description or DEFAULT_PRODUCT_DESCRIPTION,
                            },
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    },
                ],
                success_url=f"{self._base_url}/thank-you",
                cancel_url=f"{self._base_url}/",
            )
        except BillingProviderError:
            logger.exception("donation checkout failed", amount=amount_cents)
            return DonationFailure(DonationErrorCode.SESSION_ERROR)

        if not session.url:
            return DonationFailure(DonationErrorCode.SESSION_ERROR)
        return CheckoutRedirect(checkout_url=session.url, session_id=session.id)
