"""
Shared test configuration and fixtures.
"""

from typing import Any

import httpx
import pytest

from authflow.core.notifications import NotificationCenter, reset_notification_center
from authflow.session.store import reset_session_store
from authflow.oauth.config import OAuthConfig, Presentation
from authflow.session.models import Session


BASE_URL = "https://auth.example.com"


def make_response(
    status_code: int = 200,
    json: Any = None,
    text: str | None = None,
    method: str = "POST",
    url: str = f"{BASE_URL}/token",
) -> httpx.Response:
    """Build a real httpx response bound to a request (needed by raise_for_status)."""
    request = httpx.Request(method, url)
    if json is not None:
        return httpx.Response(status_code, json=json, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset process-wide singletons between tests."""
    reset_notification_center()
    reset_session_store()
    yield
    reset_notification_center()
    reset_session_store()


@pytest.fixture
def config() -> OAuthConfig:
    """Client configuration against a test authorization server."""
    return OAuthConfig(
        base_url=BASE_URL,
        client_id="abc",
        redirect_url="app://cb",
        authz_endpoint="/auth",
        access_token_endpoint="/token",
        revoke_token_endpoint="/revoke",
        userinfo_endpoint="/userinfo",
        scopes=["profile"],
        presentation=Presentation.external_browser(),
    )


@pytest.fixture
def session(config) -> Session:
    """Empty session for the test account."""
    return Session(account_id=config.account_id)


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()
