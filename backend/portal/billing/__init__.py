"""Billing: provider seam, monthly subscription reconciliation, one-time donations."""

from portal.billing.donation import DONATION_MINIMUM_CENTS, DonationManager
from portal.billing.provider import BillingProvider, StripeBillingProvider
from portal.billing.state import CustomerSubscription, SubscriptionState, derive_state
from portal.billing.subscription import SUBSCRIPTION_MINIMUM_CENTS, SubscriptionManager

__all__ = [
    "DONATION_MINIMUM_CENTS",
    "SUBSCRIPTION_MINIMUM_CENTS",
    "BillingProvider",
    "CustomerSubscription",
    "DonationManager",
    "StripeBillingProvider",
    "SubscriptionManager",
    "SubscriptionState",
    "derive_state",
]
