"""Billing-provider records, operation results, and error codes."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class BillingProviderError(Exception):
    """A billing provider API call failed (network, auth, or request error)."""


class BillingConsistencyError(Exception):
    """Provider state violates an invariant the portal relies on.

    Raised for more than one customer per email, more than one active or
    past-due subscription per customer, or a malformed subscription. These are
    faults, never converted into an error result.
    """


class WebhookSignatureError(Exception):
    """Webhook payload failed signature verification or could not be parsed."""


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    PAUSED = "paused"


class Customer(BaseModel, frozen=True):
    id: str
    email: str | None = None


class SubscriptionItem(BaseModel, frozen=True):
    id: str
    product_id: str | None = None
    unit_amount: int | None = None  # cents


class Subscription(BaseModel, frozen=True):
    id: str
    customer_id: str
    status: SubscriptionStatus
    items: tuple[SubscriptionItem, ...] = ()

    @property
    def line_item(self) -> SubscriptionItem | None:
        """The single billable item, or None when the subscription has no items."""
        return self.items[0] if self.items else None

    @property
    def amount(self) -> int | None:
        item = self.line_item
        return item.unit_amount if item is not None else None


class CheckoutSession(BaseModel, frozen=True):
    id: str
    url: str | None = None


class BillingEvent(BaseModel, frozen=True):
    """A verified webhook event, reduced to the parts the portal reads."""

    id: str
    type: str
    object: dict[str, Any]
    previous_attributes: dict[str, Any] | None = None


class SubscriptionErrorCode(StrEnum):
    INVALID_AMOUNT = "Monthly donations must be at least $10.00"
    SAME_AMOUNT = "Select a different donation amount"
    NO_CUSTOMER = "No Stripe customer found"
    NO_SUBSCRIPTION = "No active monthly donation found"
    NO_LINE_ITEM = "No line items in your active subscription"
    CREATE_ERROR = "Unable to create monthly donation. Please try again."
    CANCEL_ERROR = "Unable to cancel monthly donation. Please try again."
    UPDATE_ERROR = "Unable to update monthly donation. Please try again."
    PORTAL_ERROR = "Unable to open the billing portal. Please try again."


class DonationErrorCode(StrEnum):
    INVALID_AMOUNT = "Please select a valid donation amount"
    SESSION_ERROR = "Unable to process donation. Please try again."


@dataclass(frozen=True)
class CheckoutRedirect:
    """Send the donor to a provider-hosted checkout page."""

    checkout_url: str
    session_id: str
    customer_id: str | None = None


@dataclass(frozen=True)
class SubscriptionUpdated:
    """Existing subscription amount changed in place; no redirect needed."""

    subscription_id: str
    old_amount: int | None
    new_amount: int


@dataclass(frozen=True)
class SubscriptionCanceled:
    subscription_id: str
    customer_id: str
    amount: int | None


@dataclass(frozen=True)
class PortalRedirect:
    portal_url: str


@dataclass(frozen=True)
class SubscriptionFailure:
    error: SubscriptionErrorCode


@dataclass(frozen=True)
class DonationFailure:
    error: DonationErrorCode


SubscribeResult = CheckoutRedirect | SubscriptionUpdated | SubscriptionFailure
CancelResult = SubscriptionCanceled | SubscriptionFailure
PortalResult = PortalRedirect | SubscriptionFailure
DonateResult = CheckoutRedirect | DonationFailure
