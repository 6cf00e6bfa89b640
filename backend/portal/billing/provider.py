"""Billing provider seam: the protocol the managers consume and its Stripe adapter.

StripeBillingProvider converts Stripe objects into the portal's own records
and every stripe.StripeError into BillingProviderError, so managers never see
Stripe types. Calls are bounded by the configured request timeout and are
never retried here.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

import stripe
import structlog

from portal.billing.types import (
    BillingEvent,
    BillingProviderError,
    CheckoutSession,
    Customer,
    Subscription,
    SubscriptionItem,
    WebhookSignatureError,
)

if TYPE_CHECKING:
    from portal.billing.types import SubscriptionStatus

logger = structlog.get_logger()


class BillingProvider(Protocol):
    """Capabilities the portal needs from the billing provider."""

    async def list_customers(self, email: str, limit: int) -> list[Customer]: ...

    async def retrieve_customer(self, customer_id: str) -> Customer | None: ...

    async def list_subscriptions(
        self,
        customer_id: str,
        status: SubscriptionStatus,
        limit: int,
    ) -> list[Subscription]: ...

    async def cancel_subscription(self, subscription_id: str) -> Subscription: ...

    async def update_subscription(
        self,
        subscription_id: str,
        items: list[dict[str, Any]],
        proration_behavior: str,
    ) -> Subscription: ...

    async def create_checkout_session(
        self,
        *,
        mode: str,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        customer_id: str | None = None,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession: ...

    async def create_portal_session(self, *, configuration: str, customer_id: str, return_url: str) -> str: ...

    def construct_event(self, payload: bytes, signature: str, secret: str) -> BillingEvent: ...


def _to_customer(obj: Any) -> Customer:  # noqa: ANN401
    return Customer(id=obj["id"], email=obj.get("email"))


def _to_subscription(obj: Any) -> Subscription:  # noqa: ANN401
    items = []
    for item in obj["items"]["data"]:
        price = item.get("price") or {}
        product = price.get("product")
        if product is not None and not isinstance(product, str):
            product = product["id"]  # expanded product object
        items.append(SubscriptionItem(id=item["id"], product_id=product, unit_amount=price.get("unit_amount")))
    customer = obj["customer"]
    if not isinstance(customer, str):
        customer = customer["id"]
    return Subscription(id=obj["id"], customer_id=customer, status=obj["status"], items=tuple(items))


class StripeBillingProvider:
    """BillingProvider backed by the Stripe API through stripe.StripeClient."""

    def __init__(self, secret_key: str, *, timeout_seconds: float) -> None:
        self._client = stripe.StripeClient(
            secret_key,
            http_client=stripe.HTTPXClient(timeout=timeout_seconds),
            max_network_retries=0,
        )

    async def list_customers(self, email: str, limit: int) -> list[Customer]:
        try:
            result = await self._client.v1.customers.list_async(params={"email": email, "limit": limit})
        except stripe.StripeError as e:
            raise BillingProviderError(f"customer lookup failed: {e.user_message or e}") from e
        return [_to_customer(c) for c in result.data]

    async def retrieve_customer(self, customer_id: str) -> Customer | None:
        try:
            obj = await self._client.v1.customers.retrieve_async(customer_id)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                return None
            raise BillingProviderError(f"customer retrieve failed: {e}") from e
        except stripe.StripeError as e:
            raise BillingProviderError(f"customer retrieve failed: {e}") from e
        if obj.get("deleted"):
            return None
        return _to_customer(obj)

    async def list_subscriptions(
        self,
        customer_id: str,
        status: SubscriptionStatus,
        limit: int,
    ) -> list[Subscription]:
        try:
            result = await self._client.v1.subscriptions.list_async(
                params={"customer": customer_id, "status": str(status), "limit": limit},
            )
        except stripe.StripeError as e:
            raise BillingProviderError(f"subscription lookup failed: {e}") from e
        return [_to_subscription(s) for s in result.data]

    async def cancel_subscription(self, subscription_id: str) -> Subscription:
        try:
            obj = await self._client.v1.subscriptions.cancel_async(subscription_id)
        except stripe.StripeError as e:
            raise BillingProviderError(f"subscription cancel failed: {e}") from e
        return _to_subscription(obj)

    async def update_subscription(
        self,
        subscription_id: str,
        items: list[dict[str, Any]],
        proration_behavior: str,
    ) -> Subscription:
        try:
            obj = await self._client.v1.subscriptions.update_async(
                subscription_id,
                params={"items": items, "proration_behavior": proration_behavior},
            )
        except stripe.StripeError as e:
            raise BillingProviderError(f"subscription update failed: {e}") from e
        return _to_subscription(obj)

    async def create_checkout_session(
        self,
        *,
        mode: str,
        line_items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
        customer_id: str | None = None,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": mode,
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_id is not None:
            params["customer"] = customer_id
        elif customer_email is not None:
            params["customer_email"] = customer_email
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        try:
            session = await self._client.v1.checkout.sessions.create_async(params=params, options=options)
        except stripe.StripeError as e:
            raise BillingProviderError(f"checkout session create failed: {e}") from e
        return CheckoutSession(id=session["id"], url=session.get("url"))

    async def create_portal_session(self, *, configuration: str, customer_id: str, return_url: str) -> str:
        try:
            session = await self._client.v1.billing_portal.sessions.create_async(
                params={"configuration": configuration, "customer": customer_id, "return_url": return_url},
            )
        except stripe.StripeError as e:
            raise BillingProviderError(f"billing portal session create failed: {e}") from e
        return session["url"]

    def construct_event(self, payload: bytes, signature: str, secret: str) -> BillingEvent:
        """Verify the Stripe-Signature header and parse the event payload."""
        try:
            self._client.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureError(str(e)) from e
        return parse_event(payload)


def parse_event(payload: bytes) -> BillingEvent:
    """Reduce a raw (already verified) event payload to a BillingEvent."""
    try:
        data = json.loads(payload)
        return BillingEvent(
            id=data["id"],
            type=data["type"],
            object=data["data"]["object"],
            previous_attributes=data["data"].get("previous_attributes"),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise WebhookSignatureError(f"unparsable event payload: {e}") from e
