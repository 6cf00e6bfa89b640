"""Logical subscription state derived from fresh provider queries.

The billing provider is the system of record. Nothing here is cached: every
operation re-queries and re-derives state through these pure functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from portal.billing.types import SubscriptionStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from portal.billing.types import Customer, Subscription


class SubscriptionState(StrEnum):
    NO_CUSTOMER = "no_customer"
    NO_SUBSCRIPTION = "no_subscription"
    ACTIVE = "active"
    PAST_DUE = "past_due"


# Statuses that make a subscription "the" subscription of a customer.
QUALIFYING_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE)


def derive_state(customer: Customer | None, subscription: Subscription | None) -> SubscriptionState:
    if customer is None:
        return SubscriptionState.NO_CUSTOMER
    if subscription is None or subscription.status not in QUALIFYING_STATUSES:
        return SubscriptionState.NO_SUBSCRIPTION
    if subscription.status == SubscriptionStatus.PAST_DUE:
        return SubscriptionState.PAST_DUE
    return SubscriptionState.ACTIVE


@dataclass(frozen=True)
class CustomerSubscription:
    """Snapshot of one donor's provider state at the start of an operation."""

    customer: Customer | None = None
    subscription: Subscription | None = None

    @property
    def state(self) -> SubscriptionState:
        return derive_state(self.customer, self.subscription)

    @property
    def amount(self) -> int | None:
        return self.subscription.amount if self.subscription is not None else None


def is_past_due_transition(previous: Mapping[str, Any], current: Mapping[str, Any]) -> bool:
    """True when a subscription.updated event moved status into past_due.

    Requires a previous status: the creation of a subscription can surface as
    an update without one, and that is never a transition.
    """
    previous_status = previous.get("status")
    if previous_status is None:
        return False
    return previous_status != SubscriptionStatus.PAST_DUE and current.get("status") == SubscriptionStatus.PAST_DUE


def line_item_amount(subscription: Mapping[str, Any]) -> int | None:
    """Unit amount (cents) of the first line item in a raw subscription payload."""
    items = subscription.get("items")
    if not isinstance(items, dict):
        return None
    data = items.get("data")
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    price = data[0].get("price")
    if not isinstance(price, dict):
        return None
    amount = price.get("unit_amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        return None
    return amount
