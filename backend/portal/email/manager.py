"""Donor notification emails rendered from Jinja2 templates."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from shared.money import format_amount

if TYPE_CHECKING:
    from portal.email.sender import EmailSender
    from shared.auth.magic_link import MagicLinkEngine

logger = structlog.get_logger()

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

MAGIC_LINK_SUBJECT = "Sign in to donate.noisebridge.net"
WELCOME_SUBJECT = "Welcome! Your monthly donation to Noisebridge is set up"
PAST_DUE_SUBJECT = "Payment issue with your Noisebridge donation"
UPDATED_SUBJECT = "Your Noisebridge donation amount has been updated"
CANCELED_SUBJECT = "Your monthly donation to Noisebridge has been canceled"


def create_email_environment() -> Environment:
    """Create the Jinja2 environment for email templates, with an `amount` filter."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
    )
    env.filters["amount"] = format_amount
    return env


class EmailManager:
    """Render and send each kind of donor email.

    Delivery errors (EmailDeliveryError) propagate to the caller.
    """

    def __init__(
        self,
        sender: EmailSender,
        magic_links: MagicLinkEngine,
        *,
        from_address: str,
        base_url: str,
    ) -> None:
        self._sender = sender
        self._magic_links = magic_links
        self._from_address = from_address
        self._base_url = base_url.rstrip("/")
        self._env = create_email_environment()

    def render(self, template_name: str, **context: Any) -> str:  # noqa: ANN401
        template = self._env.get_template(template_name)
        return template.render(sign_in_url=f"{self._base_url}/auth", **context)

    async def send_magic_link(self, email: str) -> str:
        html = self.render("magic_link.html", magic_link_url=self._magic_links.issue_url(email))
        return await self._send(email, MAGIC_LINK_SUBJECT, html)

    async def send_subscription_welcome(self, email: str, amount: int) -> str:
        html = self.render("subscription_welcome.html", amount=amount)
        return await self._send(email, WELCOME_SUBJECT, html)

    async def send_subscription_past_due(self, email: str, amount: int | None) -> str:
        html = self.render("subscription_past_due.html", amount=amount)
        return await self._send(email, PAST_DUE_SUBJECT, html)

    async def send_subscription_updated(self, email: str, old_amount: int, new_amount: int) -> str:
        html = self.render("subscription_updated.html", old_amount=old_amount, new_amount=new_amount)
        return await self._send(email, UPDATED_SUBJECT, html)

    async def send_subscription_canceled(self, email: str, amount: int | None) -> str:
        html = self.render("subscription_canceled.html", amount=amount)
        return await self._send(email, CANCELED_SUBJECT, html)

    async def _send(self, email: str, subject: str, html: str) -> str:
        message_id = await self._sender.send(from_address=self._from_address, to=[email], subject=subject, html=html)
        logger.info("donor email sent", subject=subject, message_id=message_id)
        return message_id
