"""Tests for email rendering and the Resend sender."""

from __future__ import annotations

import json
import re
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from portal.email.manager import (
    CANCELED_SUBJECT,
    MAGIC_LINK_SUBJECT,
    PAST_DUE_SUBJECT,
    UPDATED_SUBJECT,
    WELCOME_SUBJECT,
    create_email_environment,
)
from portal.email.sender import RESEND_API_URL, EmailDeliveryError, ResendEmailSender
from portal.tests.helpers.app import BASE_URL, FROM_ADDRESS
from shared.auth.magic_link import CALLBACK_PATH, decode_state

EMAIL = "a@b.com"


class TestEmailEnvironment:
    def test_amount_filter(self):
        template = create_email_environment().from_string("{{ cents | amount }}")
        assert template.render(cents=133700) == "$1,337.00"

    def test_autoescapes_html_templates(self):
        env = create_email_environment()
        html = env.get_template("subscription_canceled.html").render(amount=None, sign_in_url="<script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestEmailManager:
    async def test_magic_link_email_carries_verifiable_link(self, email_manager, sender, magic_links):
        await email_manager.send_magic_link(EMAIL)

        (message,) = sender.sent
        assert message.subject == MAGIC_LINK_SUBJECT
        assert message.from_address == FROM_ADDRESS
        assert message.to == (EMAIL,)
        url = re.search(rf'href="({re.escape(BASE_URL + CALLBACK_PATH)}[^"]+)"', message.html).group(1)
        state = decode_state(parse_qs(urlparse(url).query)["state"][0])
        assert state is not None
        assert state.email == EMAIL
        assert magic_links.verify(state.email, state.code)

    async def test_welcome(self, email_manager, sender):
        await email_manager.send_subscription_welcome(EMAIL, 5000)
        assert sender.sent[0].subject == WELCOME_SUBJECT
        assert "$50.00" in sender.sent[0].html
        assert f"{BASE_URL}/auth" in sender.sent[0].html

    async def test_past_due_without_amount(self, email_manager, sender):
        await email_manager.send_subscription_past_due(EMAIL, None)
        assert sender.sent[0].subject == PAST_DUE_SUBJECT
        assert "Monthly Amount" not in sender.sent[0].html

    async def test_updated_shows_both_amounts(self, email_manager, sender):
        await email_manager.send_subscription_updated(EMAIL, 5000, 12345)
        html = sender.sent[0].html
        assert sender.sent[0].subject == UPDATED_SUBJECT
        assert "$50.00" in html
        assert "$123.45" in html

    async def test_canceled_with_and_without_amount(self, email_manager, sender):
        await email_manager.send_subscription_canceled(EMAIL, 10000)
        await email_manager.send_subscription_canceled(EMAIL, None)
        assert sender.subjects() == [CANCELED_SUBJECT, CANCELED_SUBJECT]
        assert "$100.00" in sender.sent[0].html
        assert "<strong>" not in sender.sent[1].html

    async def test_returns_message_id(self, email_manager):
        assert await email_manager.send_subscription_welcome(EMAIL, 1000) == "email_1"

    async def test_delivery_error_propagates(self, email_manager, sender):
        sender.fail = True
        with pytest.raises(EmailDeliveryError):
            await email_manager.send_magic_link(EMAIL)


def _sender(handler) -> ResendEmailSender:
    return ResendEmailSender(httpx.AsyncClient(transport=httpx.MockTransport(handler)), "re_key")


class TestResendEmailSender:
    async def test_posts_message(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "msg_123"})

        message_id = await _sender(handler).send(from_address=FROM_ADDRESS, to=[EMAIL], subject="Hi", html="<p>x</p>")

        assert message_id == "msg_123"
        (request,) = requests
        assert str(request.url) == RESEND_API_URL
        assert request.headers["authorization"] == "Bearer re_key"
        assert json.loads(request.content) == {"from": FROM_ADDRESS, "to": [EMAIL], "subject": "Hi", "html": "<p>x</p>"}

    async def test_error_status(self):
        sender = _sender(lambda _request: httpx.Response(422, json={"message": "invalid from"}))
        with pytest.raises(EmailDeliveryError, match="422"):
            await sender.send(from_address=FROM_ADDRESS, to=[EMAIL], subject="Hi", html="x")

    async def test_missing_id(self):
        sender = _sender(lambda _request: httpx.Response(200, json={}))
        with pytest.raises(EmailDeliveryError, match="message id"):
            await sender.send(from_address=FROM_ADDRESS, to=[EMAIL], subject="Hi", html="x")

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EmailDeliveryError, match="unreachable"):
            await _sender(handler).send(from_address=FROM_ADDRESS, to=[EMAIL], subject="Hi", html="x")
