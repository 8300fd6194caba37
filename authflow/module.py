"""
OAuth2 module.

Composes the session, token endpoint client, authorization flow and claims
fetcher into the public operations: get a valid access token, log the user
in, revoke access.
"""

import logging

import httpx

from authflow.authorization.flow import (
    AuthorizationFlow,
    AuthorizationState,
    BeginHandlingHook,
    FinishHandlingHook,
)
from authflow.core.notifications import NotificationCenter
from authflow.core.ports import AuthorizationPresenter
from authflow.identity.claims import OpenIdClaim, decode_id_token
from authflow.identity.fetcher import IdentityClaimsFetcher
from authflow.oauth.config import OAuthConfig
from authflow.session.models import Session
from authflow.session.store import SessionStore, get_session_store
from authflow.tokens.client import TokenEndpointClient


logger = logging.getLogger(__name__)


class OAuth2Module:
    """
    OAuth2 / OpenID Connect client for one configured account.

    The module owns its session. Token calls that complete out of order
    overwrite each other (last write wins).
    """

    def __init__(
        self,
        config: OAuthConfig,
        session: Session | None = None,
        store: SessionStore | None = None,
        notifications: NotificationCenter | None = None,
        presenter: AuthorizationPresenter | None = None,
        begin_handling: BeginHandlingHook | None = None,
        finish_handling: FinishHandlingHook | None = None,
    ):
        self.config = config
        if session is None:
            session = Session.restore(
                config.account_id or "", store or get_session_store()
            )
        elif store is not None:
            session.bind(store)
        self.session = session

        self.token_client = TokenEndpointClient(config, session)
        self.claims_fetcher = IdentityClaimsFetcher(config)
        self.flow = AuthorizationFlow(
            config,
            self.token_client,
            notifications=notifications,
            presenter=presenter,
            begin_handling=begin_handling,
            finish_handling=finish_handling,
        )

    @property
    def id_token(self) -> str | None:
        return self.session.id_token

    @property
    def id_token_claims(self) -> OpenIdClaim | None:
        """
        Claims carried by the held id_token, if any.

        Raises:
            InvalidTokenResponseError: If the held id_token is not a decodable JWT
        """
        if self.session.id_token is None:
            return None
        return decode_id_token(self.session.id_token)

    @property
    def server_code(self) -> str | None:
        return self.token_client.server_code

    @property
    def state(self) -> AuthorizationState:
        return self.flow.state

    async def request_authorization_code(self) -> str:
        """
        Run the authorization step and exchange the resulting code.

        Returns:
            The access token
        """
        await self.flow.begin()
        return await self.flow.wait()

    async def exchange_authorization_code_for_access_token(self, code: str) -> str:
        return await self.token_client.exchange_code_for_token(code)

    async def refresh_access_token(self) -> str:
        return await self.token_client.refresh_access_token()

    async def request_access(self) -> str:
        """
        Get a valid access token.

        Uses the held token when still valid (no network call), refreshes it
        when the refresh token is still valid, and otherwise runs the
        authorization step.

        Returns:
            A valid access token

        Raises:
            OAuth2Error: Whatever failure ended the chosen path
        """
        if self.session.access_token is not None and self.session.token_is_not_expired():
            return self.session.access_token

        if (
            self.session.refresh_token is not None
            and self.session.refresh_token_is_not_expired()
        ):
            logger.info("Access token expired, refreshing")
            return await self.refresh_access_token()

        logger.info("No usable token, requesting authorization")
        return await self.request_authorization_code()

    async def login(self) -> tuple[str, OpenIdClaim]:
        """
        Authenticate the user with OpenID Connect.

        Returns:
            Tuple of (access_token, claims)

        Raises:
            NoUserInfoEndpointError: If no userinfo endpoint is configured
            OAuth2Error: Any failure from obtaining the token or the claims
        """
        access_token = await self.request_access()
        claims = await self.claims_fetcher.fetch_claims(access_token)
        return access_token, claims

    async def revoke_access(self) -> httpx.Response | None:
        """Revoke the access token and clear the session."""
        return await self.token_client.revoke_access_token()

    def authorization_fields(self) -> dict[str, str] | None:
        """Authorization header for the held access token, if any."""
        if self.session.access_token is None:
            return None
        return {"Authorization": f"Bearer {self.session.access_token}"}

    def is_authorized(self) -> bool:
        return self.session.access_token is not None and self.session.token_is_not_expired()
