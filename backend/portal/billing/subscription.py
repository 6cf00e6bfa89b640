"""Monthly donation management: reconcile donor intent with provider subscriptions.

Every operation starts from a fresh provider query (get_subscription) and
branches on the derived state. Expected outcomes are returned as result
objects; BillingConsistencyError is raised for provider state that breaks the
one-customer / one-subscription / one-line-item invariants.

Concurrent duplicate submits are handled by re-querying on every call: a
repeated update becomes a SameAmount rejection, and checkout creation carries
an idempotency key so identical creates within one bucket share a session.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import TYPE_CHECKING, Any

import structlog

from portal.billing.state import (
    QUALIFYING_STATUSES,
    CustomerSubscription,
    is_past_due_transition,
    line_item_amount,
)
from portal.billing.types import (
    BillingConsistencyError,
    BillingProviderError,
    CheckoutRedirect,
    PortalRedirect,
    SubscriptionCanceled,
    SubscriptionErrorCode,
    SubscriptionFailure,
    SubscriptionUpdated,
)
from portal.email.sender import EmailDeliveryError

if TYPE_CHECKING:
    from portal.billing.provider import BillingProvider
    from portal.billing.types import (
        BillingEvent,
        CancelResult,
        Customer,
        PortalResult,
        SubscribeResult,
        Subscription,
    )
    from portal.email.manager import EmailManager

logger = structlog.get_logger()

SUBSCRIPTION_MINIMUM_CENTS = 1000

# Amount changes apply from the next billing cycle; never prorate.
PRORATION_BEHAVIOR = "none"

IDEMPOTENCY_BUCKET_SECONDS = 5 * 60

INFO_SUBSCRIPTION_CREATED = "subscription-created"

# Ask for two so that a second match is detected instead of hidden by the limit.
_CONSISTENCY_LIMIT = 2


def checkout_idempotency_key(owner: str, amount_cents: int, now: float | None = None) -> str:
    """Idempotency key for a subscription checkout: (owner, amount, 5-minute bucket)."""
    bucket = int((time.time() if now is None else now) // IDEMPOTENCY_BUCKET_SECONDS)
    digest = hashlib.sha256(f"{owner}:{amount_cents}:{bucket}".encode()).hexdigest()
    return f"subscribe-{digest[:48]}"


class SubscriptionManager:
    def __init__(
        self,
        provider: BillingProvider,
        email_manager: EmailManager,
        *,
        base_url: str,
        product_id: str,
        portal_configuration: str,
        currency: str = "usd",
    ) -> None:
        self._provider = provider
        self._email = email_manager
        self._base_url = base_url.rstrip("/")
        self._product_id = product_id
        self._portal_configuration = portal_configuration
        self._currency = currency

    async def get_subscription(self, email: str) -> CustomerSubscription:
        """Look up the donor's customer and active or past-due subscription.

        Raises BillingConsistencyError for duplicate customers, duplicate
        qualifying subscriptions, or a subscription with a foreign line item.
        Raises BillingProviderError when the provider cannot be queried.
        """
        customers = await self._provider.list_customers(email, _CONSISTENCY_LIMIT)
        if len(customers) > 1:
            msg = f"multiple billing customers share one email ({len(customers)} found)"
            raise BillingConsistencyError(msg)
        if not customers:
            return CustomerSubscription()
        customer = customers[0]

        by_status = await asyncio.gather(
            *(self._provider.list_subscriptions(customer.id, status, _CONSISTENCY_LIMIT) for status in QUALIFYING_STATUSES),
        )
        subscriptions = [s for group in by_status for s in group]
        if len(subscriptions) > 1:
            msg = f"customer {customer.id} has {len(subscriptions)} active or past-due subscriptions"
            raise BillingConsistencyError(msg)
        if not subscriptions:
            return CustomerSubscription(customer=customer)

        subscription = subscriptions[0]
        self._validate_line_items(subscription)
        return CustomerSubscription(customer=customer, subscription=subscription)

    async def subscribe(self, email: str, amount_cents: int) -> SubscribeResult:
        """Start a monthly donation, or change the amount of the existing one.

        No qualifying subscription: returns a CheckoutRedirect. Existing
        subscription: updates the line item price in place without proration
        and returns SubscriptionUpdated; the same amount is rejected.
        """
        if amount_cents < SUBSCRIPTION_MINIMUM_CENTS:
            return SubscriptionFailure(SubscriptionErrorCode.INVALID_AMOUNT)

        try:
            current = await self.get_subscription(email)
        except BillingProviderError:
            logger.exception("subscription lookup failed", action="subscribe")
            return SubscriptionFailure(SubscriptionErrorCode.CREATE_ERROR)

        if current.subscription is None:
            return await self._create_checkout(email, current.customer, amount_cents)
        return await self._update_amount(current.subscription, amount_cents)

    async def cancel(self, email: str) -> CancelResult:
        """Cancel the donor's subscription and send the cancellation email."""
        try:
            current = await self.get_subscription(email)
        except BillingProviderError:
            logger.exception("subscription lookup failed", action="cancel")
            return SubscriptionFailure(SubscriptionErrorCode.CANCEL_ERROR)

        if current.customer is None:
            return SubscriptionFailure(SubscriptionErrorCode.NO_CUSTOMER)
        if current.subscription is None:
            return SubscriptionFailure(SubscriptionErrorCode.NO_SUBSCRIPTION)

        subscription = current.subscription
        # Captured before cancelling: provider state changes afterwards.
        amount = subscription.amount

        try:
            await self._provider.cancel_subscription(subscription.id)
        except BillingProviderError:
            logger.exception("subscription cancel failed", subscription_id=subscription.id)
            return SubscriptionFailure(SubscriptionErrorCode.CANCEL_ERROR)

        logger.info("subscription canceled", subscription_id=subscription.id, amount=amount)
        try:
            await self._email.send_subscription_canceled(email, amount)
        except EmailDeliveryError:
            logger.exception("cancellation email failed", subscription_id=subscription.id)

        return SubscriptionCanceled(subscription_id=subscription.id, customer_id=current.customer.id, amount=amount)

    async def create_portal_session(self, email: str) -> PortalResult:
        """Build a provider-hosted billing portal URL for an existing subscriber."""
        try:
            current = await self.get_subscription(email)
        except BillingProviderError:
            logger.exception("subscription lookup failed", action="portal")
            return SubscriptionFailure(SubscriptionErrorCode.PORTAL_ERROR)

        if current.customer is None:
            return SubscriptionFailure(SubscriptionErrorCode.NO_CUSTOMER)
        if current.subscription is None:
            return SubscriptionFailure(SubscriptionErrorCode.NO_SUBSCRIPTION)

        try:
            url = await self._provider.create_portal_session(
                configuration=self._portal_configuration,
                customer_id=current.customer.id,
                return_url=f"{self._base_url}/manage",
            )
        except BillingProviderError:
            logger.exception("billing portal session failed", customer_id=current.customer.id)
            return SubscriptionFailure(SubscriptionErrorCode.PORTAL_ERROR)
        return PortalRedirect(portal_url=url)

    async def process_webhook(self, event: BillingEvent) -> None:
        """Turn a verified billing event into donor notifications.

        Unknown event types are ignored. Exceptions propagate; the webhook
        endpoint logs them and still acknowledges the delivery.
        """
        log = logger.bind(event_id=event.id, event_type=event.type)
        if event.type == "invoice.paid":
            await self._on_invoice_paid(event)
        elif event.type == "customer.subscription.updated":
            await self._on_subscription_updated(event)
        else:
            log.debug("ignoring billing event")

    # -- private helpers --

    def _validate_line_items(self, subscription: Subscription) -> None:
        if len(subscription.items) > 1:
            msg = f"subscription {subscription.id} has {len(subscription.items)} line items"
            raise BillingConsistencyError(msg)
        item = subscription.line_item
        if item is not None and item.product_id != self._product_id:
            msg = f"subscription {subscription.id} bills product {item.product_id!r}, expected {self._product_id!r}"
            raise BillingConsistencyError(msg)

    def _price_data(self, amount_cents: int) -> dict[str, Any]:
        return {
            "currency": self._currency,
            "product": self._product_id,
            "unit_amount": amount_cents,
            "recurring": {"interval": "month"},
        }

    async def _create_checkout(self, email: str, customer: Customer | None, amount_cents: int) -> SubscribeResult:
        customer_id = customer.id if customer is not None else None
        try:
            session = await self._provider.create_checkout_session(
                mode="subscription",
                line_items=[{"price_data": self._price_data(amount_cents), "quantity": 1}],
                success_url=f"{self._base_url}/manage?info={INFO_SUBSCRIPTION_CREATED}",
                cancel_url=f"{self._base_url}/manage",
                customer_id=customer_id,
                customer_email=None if customer_id else email,
                idempotency_key=checkout_idempotency_key(customer_id or email, amount_cents),
            )
        except BillingProviderError:
            logger.exception("subscription checkout failed", customer_id=customer_id)
            return SubscriptionFailure(SubscriptionErrorCode.CREATE_ERROR)

        if not session.url:
            logger.error("checkout session has no url", session_id=session.id)
            return SubscriptionFailure(SubscriptionErrorCode.CREATE_ERROR)

        logger.info("subscription checkout created", session_id=session.id, amount=amount_cents)
        return CheckoutRedirect(checkout_url=session.url, session_id=session.id, customer_id=customer_id)

    async def _update_amount(self, subscription: Subscription, amount_cents: int) -> SubscribeResult:
        item = subscription.line_item
        if item is None:
            return SubscriptionFailure(SubscriptionErrorCode.NO_LINE_ITEM)
        if item.unit_amount == amount_cents:
            return SubscriptionFailure(SubscriptionErrorCode.SAME_AMOUNT)

        try:
            await self._provider.update_subscription(
                subscription.id,
                items=[{"id": item.id, "price_data": self._price_data(amount_cents)}],
                proration_behavior=PRORATION_BEHAVIOR,
            )
        except BillingProviderError:
            logger.exception("subscription update failed", subscription_id=subscription.id)
            return SubscriptionFailure(SubscriptionErrorCode.UPDATE_ERROR)

        logger.info(
            "subscription amount updated",
            subscription_id=subscription.id,
            old_amount=item.unit_amount,
            new_amount=amount_cents,
        )
        return SubscriptionUpdated(subscription_id=subscription.id, old_amount=item.unit_amount, new_amount=amount_cents)

    async def _customer_email(self, customer_id: object) -> str | None:
        if not isinstance(customer_id, str):
            return None
        customer = await self._provider.retrieve_customer(customer_id)
        return customer.email if customer is not None else None

    async def _on_invoice_paid(self, event: BillingEvent) -> None:
        invoice = event.object
        # Renewal invoices must not repeat the welcome email.
        if invoice.get("billing_reason") != "subscription_create":
            logger.debug("skipping paid invoice", event_id=event.id, billing_reason=invoice.get("billing_reason"))
            return

        amount = invoice.get("amount_paid")
        email = invoice.get("customer_email") or await self._customer_email(invoice.get("customer"))
        if not email or isinstance(amount, bool) or not isinstance(amount, int):
            logger.warning("paid invoice missing email or amount", event_id=event.id)
            return

        await self._email.send_subscription_welcome(email, amount)
        logger.info("welcome email sent", event_id=event.id)

    async def _on_subscription_updated(self, event: BillingEvent) -> None:
        subscription = event.object
        previous = event.previous_attributes or {}
        current_amount = line_item_amount(subscription)

        if is_past_due_transition(previous, subscription):
            email = await self._customer_email(subscription.get("customer"))
            if email is None:
                logger.warning("past due subscription has no customer email", event_id=event.id)
                return
            await self._email.send_subscription_past_due(email, current_amount)
            logger.info("past due email sent", event_id=event.id)
            return

        previous_amount = line_item_amount(previous)
        if previous_amount is None or current_amount is None or previous_amount == current_amount:
            return

        email = await self._customer_email(subscription.get("customer"))
        if email is None:
            logger.warning("updated subscription has no customer email", event_id=event.id)
            return
        await self._email.send_subscription_updated(email, previous_amount, current_amount)
        logger.info("amount updated email sent", event_id=event.id, old_amount=previous_amount, new_amount=current_amount)
