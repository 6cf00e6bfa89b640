"""Root conftest: load .env.tests and route structlog through stdlib so caplog sees portal logs."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

# Settings classes read AUTH_*, STRIPE_*, OAUTH_*, EMAIL_* at construction time.
load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

configure_structlog(timestamps=False)


@pytest.fixture(autouse=True)
def _clear_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
