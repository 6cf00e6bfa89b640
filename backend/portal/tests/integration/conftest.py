"""Fixtures for portal integration tests: a TestClient over the fully wired app."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from starlette.testclient import TestClient

from portal.tests.helpers.app import DONOR_EMAIL, build_app

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def client(provider, sender) -> Iterator[TestClient]:
    with TestClient(build_app(provider, sender), follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def signed_in(client) -> TestClient:
    """The client after signing in as DONOR_EMAIL through the testing backdoor."""
    response = client.get("/auth/backdoor", params={"email": DONOR_EMAIL})
    assert response.status_code == 303
    return client
