"""Shared fixtures for portal tests: in-memory provider, recording email sender, managers."""

from __future__ import annotations

import pytest

from portal.billing.donation import DonationManager
from portal.billing.subscription import SubscriptionManager
from portal.email.manager import EmailManager
from portal.tests.helpers.app import BASE_URL, FROM_ADDRESS, PORTAL_CONFIG, TOTP_SECRET
from portal.tests.mocks.billing import DONATION_PRODUCT, FakeBillingProvider
from portal.tests.mocks.email_sender import FakeEmailSender
from shared.auth.magic_link import MagicLinkEngine


@pytest.fixture
def provider() -> FakeBillingProvider:
    return FakeBillingProvider()


@pytest.fixture
def sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def magic_links() -> MagicLinkEngine:
    return MagicLinkEngine(TOTP_SECRET, BASE_URL)


@pytest.fixture
def email_manager(sender, magic_links) -> EmailManager:
    return EmailManager(sender, magic_links, from_address=FROM_ADDRESS, base_url=BASE_URL)


@pytest.fixture
def subscriptions(provider, email_manager) -> SubscriptionManager:
    return SubscriptionManager(
        provider,
        email_manager,
        base_url=BASE_URL,
        product_id=DONATION_PRODUCT,
        portal_configuration=PORTAL_CONFIG,
    )


@pytest.fixture
def donations(provider) -> DonationManager:
    return DonationManager(provider, base_url=BASE_URL)
