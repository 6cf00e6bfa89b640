"""Stateless magic-link codes for passwordless sign-in.

A code is HMAC-SHA256(secret, f"{email}:{window}") where window is the
5-minute bucket of the issue time. Nothing is stored: verification recomputes
the code for the previous, current, and next window and accepts any match.

A code therefore stays valid for 10 to 15 minutes after issue and can be
replayed within that span. No single-use nonce is recorded.
"""

import base64
import hashlib
import hmac
import math
import time
from urllib.parse import urlencode

import structlog
from pydantic import ValidationError

from shared.auth.models import MagicLinkState

logger = structlog.get_logger()

WINDOW_SECONDS = 5 * 60
WINDOW_TOLERANCE = 1  # windows accepted on each side of the current one

CALLBACK_PATH = "/auth/email/callback"


def time_window(timestamp: float) -> int:
    """Return the 5-minute bucket index containing timestamp (unix seconds)."""
    return math.floor(timestamp / WINDOW_SECONDS)


class MagicLinkEngine:
    """Generate and verify time-windowed HMAC codes and the links carrying them."""

    def __init__(self, secret: str, base_url: str) -> None:
        self._secret = secret.encode()
        self._base_url = base_url.rstrip("/")

    def code(self, email: str, timestamp: float | None = None) -> str:
        """Return the hex code for email in the window containing timestamp."""
        window = time_window(time.time() if timestamp is None else timestamp)
        return self._code_for_window(email, window)

    def verify(self, email: str, code: str, timestamp: float | None = None) -> bool:
        """Accept code if it matches email in the current window or one either side."""
        window = time_window(time.time() if timestamp is None else timestamp)
        provided = code.encode()
        matched = False
        for offset in range(-WINDOW_TOLERANCE, WINDOW_TOLERANCE + 1):
            expected = self._code_for_window(email, window + offset)
            # no early exit: all windows are always compared
            matched |= hmac.compare_digest(expected.encode(), provided)
        return matched

    def issue_url(self, email: str, timestamp: float | None = None) -> str:
        """Build the absolute callback URL carrying a fresh code for email."""
        state = MagicLinkState(email=email, code=self.code(email, timestamp))
        return f"{self._base_url}{CALLBACK_PATH}?{urlencode({'state': encode_state(state)})}"

    def _code_for_window(self, email: str, window: int) -> str:
        return hmac.new(self._secret, f"{email}:{window}".encode(), hashlib.sha256).hexdigest()


def encode_state(state: MagicLinkState) -> str:
    """Encode link state as base64url JSON."""
    return base64.urlsafe_b64encode(state.model_dump_json().encode()).decode("ascii")


def decode_state(encoded: str) -> MagicLinkState | None:
    """Decode link state. Returns None on any malformed input, never raises."""
    try:
        padding = "=" * (-len(encoded) % 4)
        raw = base64.urlsafe_b64decode(encoded + padding)
    except ValueError:
        logger.warning("magic link state is not valid base64")
        return None

    try:
        return MagicLinkState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("magic link state malformed", error_count=e.error_count())
        return None
