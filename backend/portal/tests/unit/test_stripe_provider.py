"""Tests for the Stripe adapter with the StripeClient replaced by mocks."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe

from portal.billing.provider import StripeBillingProvider, parse_event
from portal.billing.types import (
    BillingProviderError,
    CheckoutSession,
    Customer,
    SubscriptionStatus,
    WebhookSignatureError,
)

RAW_SUBSCRIPTION = {
    "id": "sub_1",
    "customer": "cus_1",
    "status": "active",
    "items": {"data": [{"id": "si_1", "price": {"product": "monthly_donation", "unit_amount": 5000}}]},
}


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def stripe_provider(client) -> StripeBillingProvider:
    provider = StripeBillingProvider("sk_test", timeout_seconds=5)
    provider._client = client
    return provider


class TestCustomers:
    async def test_list_customers(self, stripe_provider, client):
        client.v1.customers.list_async = AsyncMock(
            return_value=SimpleNamespace(data=[{"id": "cus_1", "email": "a@b.com"}]),
        )

        customers = await stripe_provider.list_customers("a@b.com", 2)

        assert customers == [Customer(id="cus_1", email="a@b.com")]
        client.v1.customers.list_async.assert_awaited_once_with(params={"email": "a@b.com", "limit": 2})

    async def test_stripe_error_is_wrapped(self, stripe_provider, client):
        client.v1.customers.list_async = AsyncMock(side_effect=stripe.APIConnectionError("network down"))
        with pytest.raises(BillingProviderError):
            await stripe_provider.list_customers("a@b.com", 2)

    async def test_retrieve_missing_customer(self, stripe_provider, client):
        client.v1.customers.retrieve_async = AsyncMock(
            side_effect=stripe.InvalidRequestError("No such customer", "id", code="resource_missing"),
        )
        assert await stripe_provider.retrieve_customer("cus_gone") is None

    async def test_retrieve_deleted_customer(self, stripe_provider, client):
        client.v1.customers.retrieve_async = AsyncMock(return_value={"id": "cus_1", "deleted": True})
        assert await stripe_provider.retrieve_customer("cus_1") is None

    async def test_retrieve_other_invalid_request_is_wrapped(self, stripe_provider, client):
        client.v1.customers.retrieve_async = AsyncMock(
            side_effect=stripe.InvalidRequestError("Bad id", "id", code="parameter_invalid"),
        )
        with pytest.raises(BillingProviderError):
            await stripe_provider.retrieve_customer("x")


class TestSubscriptions:
    async def test_list_converts_items(self, stripe_provider, client):
        client.v1.subscriptions.list_async = AsyncMock(return_value=SimpleNamespace(data=[RAW_SUBSCRIPTION]))

        (subscription,) = await stripe_provider.list_subscriptions("cus_1", SubscriptionStatus.ACTIVE, 2)

        assert subscription.status is SubscriptionStatus.ACTIVE
        assert subscription.amount == 5000
        assert subscription.line_item.product_id == "monthly_donation"
        client.v1.subscriptions.list_async.assert_awaited_once_with(
            params={"customer": "cus_1", "status": "active", "limit": 2},
        )

    async def test_expanded_product_and_customer(self, stripe_provider, client):
        expanded = {
            **RAW_SUBSCRIPTION,
            "customer": {"id": "cus_1", "email": "a@b.com"},
            "items": {"data": [{"id": "si_1", "price": {"product": {"id": "monthly_donation"}, "unit_amount": 100}}]},
        }
        client.v1.subscriptions.cancel_async = AsyncMock(return_value=expanded)

        subscription = await stripe_provider.cancel_subscription("sub_1")

        assert subscription.customer_id == "cus_1"
        assert subscription.line_item.product_id == "monthly_donation"

    async def test_update_passes_proration(self, stripe_provider, client):
        client.v1.subscriptions.update_async = AsyncMock(return_value=RAW_SUBSCRIPTION)
        items = [{"id": "si_1", "price_data": {"unit_amount": 7500}}]

        await stripe_provider.update_subscription("sub_1", items, "none")

        client.v1.subscriptions.update_async.assert_awaited_once_with(
            "sub_1",
            params={"items": items, "proration_behavior": "none"},
        )

    async def test_update_error_is_wrapped(self, stripe_provider, client):
        client.v1.subscriptions.update_async = AsyncMock(side_effect=stripe.APIError("boom"))
        with pytest.raises(BillingProviderError):
            await stripe_provider.update_subscription("sub_1", [], "none")


class TestSessions:
    async def test_checkout_for_new_customer_uses_email_and_idempotency_key(self, stripe_provider, client):
        client.v1.checkout.sessions.create_async = AsyncMock(
            return_value={"id": "cs_1", "url": "https://checkout.stripe.com/c/pay/cs_1"},
        )

        session = await stripe_provider.create_checkout_session(
            mode="subscription",
            line_items=[],
            success_url="s",
            cancel_url="c",
            customer_email="a@b.com",
            idempotency_key="subscribe-abc",
        )

        assert session == CheckoutSession(id="cs_1", url="https://checkout.stripe.com/c/pay/cs_1")
        kwargs = client.v1.checkout.sessions.create_async.await_args.kwargs
        assert kwargs["params"]["customer_email"] == "a@b.com"
        assert "customer" not in kwargs["params"]
        assert kwargs["options"] == {"idempotency_key": "subscribe-abc"}

    async def test_checkout_for_existing_customer(self, stripe_provider, client):
        client.v1.checkout.sessions.create_async = AsyncMock(return_value={"id": "cs_1", "url": None})

        await stripe_provider.create_checkout_session(
            mode="payment",
            line_items=[],
            success_url="s",
            cancel_url="c",
            customer_id="cus_1",
            customer_email="a@b.com",
        )

        kwargs = client.v1.checkout.sessions.create_async.await_args.kwargs
        assert kwargs["params"]["customer"] == "cus_1"
        assert "customer_email" not in kwargs["params"]
        assert kwargs["options"] == {}

    async def test_portal_session(self, stripe_provider, client):
        client.v1.billing_portal.sessions.create_async = AsyncMock(return_value={"url": "https://billing.stripe.com/p"})

        url = await stripe_provider.create_portal_session(configuration="bpc_1", customer_id="cus_1", return_url="r")

        assert url == "https://billing.stripe.com/p"
        client.v1.billing_portal.sessions.create_async.assert_awaited_once_with(
            params={"configuration": "bpc_1", "customer": "cus_1", "return_url": "r"},
        )


class TestWebhookEvents:
    PAYLOAD = json.dumps(
        {
            "id": "evt_1",
            "type": "customer.subscription.updated",
            "data": {"object": RAW_SUBSCRIPTION, "previous_attributes": {"status": "active"}},
        },
    ).encode()

    def test_construct_event_verifies_then_parses(self, stripe_provider, client):
        event = stripe_provider.construct_event(self.PAYLOAD, "t=1,v1=sig", "whsec")

        client.construct_event.assert_called_once_with(self.PAYLOAD, "t=1,v1=sig", "whsec")
        assert event.id == "evt_1"
        assert event.previous_attributes == {"status": "active"}
        assert event.object["id"] == "sub_1"

    def test_bad_signature(self, stripe_provider, client):
        client.construct_event.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=sig")
        with pytest.raises(WebhookSignatureError):
            stripe_provider.construct_event(self.PAYLOAD, "t=1,v1=sig", "whsec")

    @pytest.mark.parametrize("payload", [b"not json", b"{}", b'{"id": "evt", "type": "x", "data": null}'])
    def test_parse_event_rejects_malformed(self, payload):
        with pytest.raises(WebhookSignatureError):
            parse_event(payload)

    def test_parse_event_without_previous_attributes(self):
        payload = json.dumps({"id": "evt_2", "type": "invoice.paid", "data": {"object": {"id": "in_1"}}}).encode()
        event = parse_event(payload)
        assert event.previous_attributes is None
        assert event.type == "invoice.paid"
