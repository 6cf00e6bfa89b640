"""Billing provider webhook endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse

from portal.billing.types import WebhookSignatureError

if TYPE_CHECKING:
    from starlette.requests import Request

    from portal.billing.provider import BillingProvider
    from portal.billing.subscription import SubscriptionManager

logger = structlog.get_logger()

SIGNATURE_HEADER = "stripe-signature"


async def webhook(request: Request) -> JSONResponse:
    """POST /webhook - verify the signature, then process the event.

    Only a missing or invalid signature is reported as 400. Processing errors
    are logged and acknowledged with 200 so the provider does not retry.
    """
    secret: str | None = request.app.state.billing_settings.webhook_secret
    if not secret:
        logger.error("webhook received but no webhook secret is configured")
        return JSONResponse({"error": "Webhook not configured"}, status_code=400)

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        return JSONResponse({"error": "Missing signature"}, status_code=400)

    # Signature is computed over the exact bytes received.
    payload = await request.body()
    provider: BillingProvider = request.app.state.billing_provider
    try:
        event = provider.construct_event(payload, signature, secret)
    except WebhookSignatureError as e:
        logger.warning("webhook signature rejected", reason=str(e))
        return JSONResponse({"error": "Invalid signature"}, status_code=400)

    manager: SubscriptionManager = request.app.state.subscription_manager
    try:
        await manager.process_webhook(event)
    except Exception:
        logger.exception("webhook processing failed", event_id=event.id, event_type=event.type)

    return JSONResponse({"received": True})
