"""In-memory billing provider with Stripe-like semantics for tests."""

from __future__ import annotations

import itertools
from typing import Any

from portal.billing.provider import parse_event
from portal.billing.types import (
    BillingEvent,
    BillingProviderError,
    CheckoutSession,
    Customer,
    Subscription,
    SubscriptionItem,
    SubscriptionStatus,
    WebhookSignatureError,
)

DONATION_PRODUCT = "monthly_donation"


def signature_for(secret: str) -> str:
    """Signature header value FakeBillingProvider accepts for ``secret``."""
    return f"t=0,v1=fake-{secret}"


class FakeBillingProvider:
    """Customers, subscriptions and checkout sessions kept in dicts.

    Set ``fail`` to make every call raise BillingProviderError. ``calls``
    records (method, arguments) in order.
    """

    def __init__(self) -> None:
        self.customers: dict[str, Customer] = {}
        self.subscriptions: dict[str, Subscription] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail = False
        self._ids = itertools.count(1)
        self._by_idempotency_key: dict[str, CheckoutSession] = {}

    # -- fixtures --

    def add_customer(self, email: str | None) -> Customer:
        customer = Customer(id=f"cus_{next(self._ids)}", email=email)
        self.customers[customer.id] = customer
        return customer

    def add_subscription(
        self,
        customer_id: str,
        amount: int | None,
        *,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        product_id: str = DONATION_PRODUCT,
        item_count: int = 1,
    ) -> Subscription:
        items = tuple(
            SubscriptionItem(id=f"si_{next(self._ids)}", product_id=product_id, unit_amount=amount)
            for _ in range(item_count)
        )
        subscription = Subscription(id=f"sub_{next(self._ids)}", customer_id=customer_id, status=status, items=items)
        self.subscriptions[subscription.id] = subscription
        return subscription

    def complete_checkout(self, session_id: str) -> Subscription:
        """Simulate the donor paying on the hosted checkout page."""
        session = self.sessions[session_id]
        customer_id = session["customer_id"]
        if customer_id is None:
            customer_id = self.add_customer(session["customer_email"]).id
        price = session["line_items"][0]["price_data"]
        return self.add_subscription(customer_id, price["unit_amount"], product_id=price.get("product", DONATION_PRODUCT))

    # -- BillingProvider --

    def _record(self, method: str, **arguments: Any) -> None:  # noqa: ANN401
        self.calls.append((method, arguments))
        if self.fail:
            msg = f"{method} failed"
            raise BillingProviderError(msg)

    def called(self, method: str) -> list[dict[str, Any]]:
        return [arguments for name, arguments in self.calls if name == method]

    async def list_customers(self, email: str, limit: int) -> list[Customer]:
        self._record("list_customers", email=email, limit=limit)
        return [c for c in self.customers.values() if c.email == email][:limit]

    async def retrieve_customer(self, customer_id: str) -> Customer | None:
        self._record("retrieve_customer", customer_id=customer_id)
        return self.customers.get(customer_id)

    async def list_subscriptions(self, customer_id: str, status: SubscriptionStatus, limit: int) -> list[Subscription]:
        self._record("list_subscriptions", customer_id=customer_id, status=status, limit=limit)
        matches = [s for s in self.subscriptions.values() if s.customer_id == customer_id and s.status == status]
        return matches[:limit]

    async def cancel_subscription(self, subscription_id: str) -> Subscription:
        self._record("cancel_subscription", subscription_id=subscription_id)
        canceled = self.subscriptions[subscription_id].model_copy(update={"status": SubscriptionStatus.CANCELED})
        self.subscriptions[subscription_id] = canceled
        return canceled

    async def update_subscription(
        self,
        subscription_id: str,
        items: list[dict[str, Any]],
        proration_behavior: str,
    ) -> Subscription:
        self._record(
            "update_subscription",
            subscription_id=subscription_id,
            items=items,
            proration_behavior=proration_behavior,
        )
        current = self.subscriptions[subscription_id]
        amount = items[0]["price_data"]["unit_amount"]
        updated_items = tuple(
            item.model_copy(update={"unit_amount": amount}) if item.id == items[0]["id"] else item
            for item in current.items
        )
        updated = current.model_copy(update={"items": updated_items})
        self.subscriptions[subscription_id] = updated
        return updated

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
        self._record(
            "create_checkout_session",
            mode=mode,
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_id=customer_id,
            customer_email=customer_email,
            idempotency_key=idempotency_key,
        )
        if idempotency_key is not None and idempotency_key in self._by_idempotency_key:
            return self._by_idempotency_key[idempotency_key]

        session_id = f"cs_test_{next(self._ids)}"
        session = CheckoutSession(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")
        self.sessions[session_id] = {
            "mode": mode,
            "line_items": line_items,
            "customer_id": customer_id,
            "customer_email": customer_email,
        }
        if idempotency_key is not None:
            self._by_idempotency_key[idempotency_key] = session
        return session

    async def create_portal_session(self, *, configuration: str, customer_id: str, return_url: str) -> str:
        self._record(
            "create_portal_session",
            configuration=configuration,
            customer_id=customer_id,
            return_url=return_url,
        )
        return f"https://billing.stripe.com/p/session/test_{customer_id}"

    def construct_event(self, payload: bytes, signature: str, secret: str) -> BillingEvent:
        if signature != signature_for(secret):
            msg = "No signatures found matching the expected signature for payload"
            raise WebhookSignatureError(msg)
        return parse_event(payload)
