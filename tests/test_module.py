"""
Tests for the OAuth2Module orchestrator.
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlsplit

import jwt
import pytest

from authflow.authorization.flow import AuthorizationState
from authflow.core.exceptions import (
    InvalidTokenResponseError,
    NoUserInfoEndpointError,
    TransportError,
    UserCancelledError,
)
from authflow.core.notifications import (
    APP_DID_BECOME_ACTIVE,
    APP_LAUNCHED_WITH_URL,
    NotificationCenter,
)
from authflow.module import OAuth2Module
from authflow.session.models import Session
from authflow.session.store import InMemorySessionStore

from tests.conftest import make_response


class RedirectingPresenter:
    """Presenter that simulates the user approving access in the browser."""

    def __init__(self, notifications: NotificationCenter, **redirect_params: str):
        self._notifications = notifications
        self._redirect_params = redirect_params
        self.presented: list[str] = []
        self.tasks: list[asyncio.Task] = []

    def present(self, url: str) -> None:
        self.presented.append(url)
        state = parse_qs(urlsplit(url).query)["state"][0]
        params = {"state": state, **self._redirect_params}
        query = "&".join(f"{k}={v}" for k, v in params.items())
        self.tasks.append(
            asyncio.ensure_future(
                self._notifications.post(APP_LAUNCHED_WITH_URL, url=f"app://cb?{query}")
            )
        )


@pytest.fixture
def module(config, session, notifications):
    return OAuth2Module(config, session=session, notifications=notifications)


class TestModuleConstruction:
    """Tests for building the module."""

    def test_restores_session_from_store(self, config):
        """Test the session is restored for the configured account."""
        store = InMemorySessionStore()
        Session.restore(config.account_id, store).save(access_token="stored")

        module = OAuth2Module(config, store=store)

        assert module.session.access_token == "stored"
        assert module.session.account_id == "ACCOUNT_FOR_CLIENTID_abc"

    def test_new_session_when_nothing_stored(self, config):
        """Test an empty session is created without a stored one."""
        module = OAuth2Module(config)

        assert module.session.access_token is None
        assert module.state is AuthorizationState.UNKNOWN

    def test_default_store_persists(self, config):
        """Test a module without an explicit store uses the shared store."""
        OAuth2Module(config).session.save(access_token="kept")

        assert OAuth2Module(config).session.access_token == "kept"


class TestRequestAccess:
    """Tests for obtaining a valid access token."""

    @pytest.mark.asyncio
    async def test_valid_token_no_network(self, module, session):
        """Test a non-expired token is returned without any network call."""
        session.save(access_token="still-good", access_token_expires_in=3600)

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            with patch.object(module.flow, "begin", new_callable=AsyncMock) as mock_begin:
                token = await module.request_access()

        assert token == "still-good"
        mock_post.assert_not_called()
        mock_begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token_refreshes(self, module, session):
        """Test an expired token with a valid refresh token is refreshed."""
        session.save(
            access_token="expired",
            refresh_token="refresh-1",
            access_token_expires_in=-60,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = make_response(
                json={"access_token": "refreshed", "expires_in": 300}
            )
            with patch.object(module.flow, "begin", new_callable=AsyncMock) as mock_begin:
                token = await module.request_access()

        assert token == "refreshed"
        assert mock_post.call_args[1]["data"]["grant_type"] == "refresh_token"
        mock_begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_refresh_token_authorizes(self, module, session):
        """Test the authorization step runs when the refresh token expired too."""
        session.save(
            access_token="expired",
            refresh_token="refresh-1",
            access_token_expires_in=-60,
            refresh_token_expires_in=-30,
        )

        with patch.object(module.flow, "begin", new_callable=AsyncMock) as mock_begin:
            with patch.object(
                module.flow, "wait", new_callable=AsyncMock, return_value="authorized"
            ):
                token = await module.request_access()

        assert token == "authorized"
        mock_begin.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_authorization_code_flow(self, config, session, notifications):
        """Test begin, external approval and code exchange end to end."""
        presenter = RedirectingPresenter(notifications, code="the-code")
        module = OAuth2Module(
            config, session=session, notifications=notifications, presenter=presenter
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = make_response(
                json={
                    "access_token": "fresh",
                    "refresh_token": "fresh-refresh",
                    "expires_in": 3600,
                    "server_code": "srv",
                }
            )

            token = await module.request_access()

        assert token == "fresh"
        assert len(presenter.presented) == 1
        data = mock_post.call_args[1]["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "the-code"
        assert module.is_authorized() is True
        assert module.server_code == "srv"
        assert module.state is AuthorizationState.APPROVED
        assert notifications.observer_count() == 0

    @pytest.mark.asyncio
    async def test_abandoned_authorization(self, config, session, notifications):
        """Test resuming the app without approval fails the request."""

        class AbandoningPresenter:
            def present(self, url):
                asyncio.ensure_future(notifications.post(APP_DID_BECOME_ACTIVE))

        module = OAuth2Module(
            config,
            session=session,
            notifications=notifications,
            presenter=AbandoningPresenter(),
        )

        with pytest.raises(UserCancelledError):
            await module.request_access()

        assert module.state is AuthorizationState.UNKNOWN
        assert session.access_token is None


class TestLogin:
    """Tests for OpenID Connect login."""

    @pytest.mark.asyncio
    async def test_login_returns_token_and_claims(self, module, session):
        """Test login composes request_access with the claims fetch."""
        session.save(access_token="good")

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response(
                json={"sub": "user-1", "email": "jane@example.com"}, method="GET"
            )

            token, claims = await module.login()

        assert token == "good"
        assert claims.sub == "user-1"
        assert mock_get.call_args[1]["headers"]["Authorization"] == "Bearer good"

    @pytest.mark.asyncio
    async def test_login_without_userinfo_endpoint(self, config, session, notifications):
        """Test login reports a missing userinfo endpoint."""
        session.save(access_token="good")
        module = OAuth2Module(
            replace(config, userinfo_endpoint=None),
            session=session,
            notifications=notifications,
        )

        with pytest.raises(NoUserInfoEndpointError):
            await module.login()

    @pytest.mark.asyncio
    async def test_login_stops_on_access_failure(self, module, session):
        """Test claims are not fetched when obtaining the token fails."""
        session.save(access_token="expired", refresh_token="r", access_token_expires_in=-1)

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = make_response(400, text="invalid_grant")
            with patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get:
                with pytest.raises(TransportError):
                    await module.login()

                mock_get.assert_not_called()


class TestAuthorizationState:
    """Tests for authorization helpers."""

    def test_is_authorized(self, module, session):
        """Test authorization requires a valid access token."""
        assert module.is_authorized() is False

        session.save(access_token="a", access_token_expires_in=60)
        assert module.is_authorized() is True

        session.save(access_token="a", access_token_expires_in=-1)
        assert module.is_authorized() is False

    def test_authorization_fields(self, module, session):
        """Test the bearer header is built from the held token."""
        assert module.authorization_fields() is None

        session.save(access_token="a")

        assert module.authorization_fields() == {"Authorization": "Bearer a"}

    def test_id_token_claims(self, module, session):
        """Test id_token claims are exposed."""
        assert module.id_token_claims is None

        id_token = jwt.encode(
            {"sub": "user-1", "name": "Jane"},
            "not-the-server-key-but-long-enough-for-hs256",
            algorithm="HS256",
        )
        session.save(access_token="a", id_token=id_token)

        assert module.id_token == id_token
        assert module.id_token_claims.name == "Jane"

    def test_id_token_claims_undecodable(self, module, session):
        """Test an id_token that is not a JWT is reported on access."""
        session.save(access_token="a", id_token="not-a-jwt")

        with pytest.raises(InvalidTokenResponseError):
            module.id_token_claims

    @pytest.mark.asyncio
    async def test_revoke_access(self, module, session):
        """Test revoking clears the session."""
        session.save(access_token="a")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = make_response(200, text="")

            await module.revoke_access()

        assert session.access_token is None
        assert module.authorization_fields() is None

    @pytest.mark.asyncio
    async def test_revoke_access_without_token(self, module):
        """Test revoking without a token is a no-op."""
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            assert await module.revoke_access() is None

            mock_post.assert_not_called()
