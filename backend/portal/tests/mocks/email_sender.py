"""Email sender that records messages instead of calling the Resend API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from portal.email.sender import EmailDeliveryError

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class SentEmail:
    from_address: str
    to: tuple[str, ...]
    subject: str
    html: str


class FakeEmailSender:
    def __init__(self) -> None:
        self.sent: list[SentEmail] = []
        self.fail = False

    async def send(self, *, from_address: str, to: Sequence[str], subject: str, html: str) -> str:
        if self.fail:
            msg = "Resend API returned 500"
            raise EmailDeliveryError(msg)
        self.sent.append(SentEmail(from_address=from_address, to=tuple(to), subject=subject, html=html))
        return f"email_{len(self.sent)}"

    def subjects(self) -> list[str]:
        return [message.subject for message in self.sent]
