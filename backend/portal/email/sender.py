"""Outbound email transport: protocol and the Resend HTTP API implementation."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"


class EmailDeliveryError(Exception):
    """The email API rejected the message or could not be reached."""


class EmailSender(Protocol):
    """Send one HTML email and return the provider's message id."""

    async def send(self, *, from_address: str, to: Sequence[str], subject: str, html: str) -> str: ...


class ResendEmailSender:
    """EmailSender that posts to the Resend API over a shared httpx client."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str) -> None:
        self._http = http_client
        self._api_key = api_key

    async def send(self, *, from_address: str, to: Sequence[str], subject: str, html: str) -> str:
        try:
            response = await self._http.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"from": from_address, "to": list(to), "subject": subject, "html": html},
            )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"email API unreachable: {e}") from e

        if response.status_code != HTTPStatus.OK:
            raise EmailDeliveryError(f"email API returned {response.status_code}: {response.text[:200]}")
        try:
            message_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise EmailDeliveryError("email API response has no message id") from e
        logger.debug("email sent", message_id=message_id)
        return str(message_id)
