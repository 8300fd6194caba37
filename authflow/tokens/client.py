"""
Token endpoint client.

Exchanges authorization codes, refreshes access tokens and revokes them,
updating the bound Session on success.
"""

import logging

import httpx

from authflow.core.exceptions import NoRefreshTokenError
from authflow.infrastructure.http import calculate_url, json_object, send
from authflow.oauth.config import OAuthConfig
from authflow.session.models import Session
from authflow.tokens.models import TokenResponse


logger = logging.getLogger(__name__)


class TokenEndpointClient:
    """Client for the authorization server's token and revocation endpoints."""

    def __init__(self, config: OAuthConfig, session: Session):
        self._config = config
        self._session = session
        self.server_code: str | None = None

    @property
    def session(self) -> Session:
        return self._session

    def _with_client_secret(self, params: dict[str, str]) -> dict[str, str]:
        if self._config.client_secret is not None:
            params["client_secret"] = self._config.client_secret
        return params

    async def exchange_code_for_token(self, code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Authorization code delivered on the redirect

        Returns:
            The new access token

        Raises:
            TransportError: On network failure or non-2xx response
            InvalidTokenResponseError: If the response lacks an access token
        """
        params = self._with_client_secret(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self._config.client_id,
                "redirect_uri": self._config.redirect_url,
            }
        )
        if self._config.audience_id is not None:
            params["audience"] = self._config.audience_id

        url = calculate_url(self._config.base_url, self._config.access_token_endpoint)
        logger.info(
            "Exchanging authorization code for access token",
            extra={"account_id": self._config.account_id},
        )

        response = await send("POST", url, "Code exchange", data=params)
        token = TokenResponse.from_response_body(json_object(response))

        self._session.save(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            access_token_expires_in=token.expires_in,
            refresh_token_expires_in=token.refresh_expires_in,
            id_token=token.id_token,
        )
        self.server_code = token.server_code
        return token.access_token

    async def refresh_access_token(self) -> str:
        """
        Obtain a new access token with the held refresh token.

        The refresh token is kept when the server does not rotate it, and its
        expiry is left as is.

        Raises:
            NoRefreshTokenError: If the session holds no refresh token
            TransportError: On network failure or non-2xx response
            InvalidTokenResponseError: If the response lacks an access token
        """
        refresh_token = self._session.refresh_token
        if refresh_token is None:
            raise NoRefreshTokenError("No refresh token available")

        params = self._with_client_secret(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._config.client_id,
            }
        )

        url = calculate_url(
            self._config.base_url,
            self._config.refresh_token_endpoint or self._config.access_token_endpoint,
        )
        logger.info(
            f"Refreshing access token for account {self._config.account_id}",
            extra={"account_id": self._config.account_id},
        )

        response = await send("POST", url, "Token refresh", data=params)
        token = TokenResponse.from_response_body(json_object(response))

        self._session.save(
            access_token=token.access_token,
            refresh_token=token.refresh_token or refresh_token,
            access_token_expires_in=token.expires_in,
            id_token=token.id_token,
        )
        return token.access_token

    async def revoke_access_token(self) -> httpx.Response | None:
        """
        Revoke the held access token and clear the session.

        Does nothing when no access token is held or no revocation endpoint
        is configured.

        Returns:
            The server response, or None when nothing was sent

        Raises:
            TransportError: On network failure or non-2xx response
        """
        access_token = self._session.access_token
        if access_token is None:
            logger.debug("No access token to revoke")
            return None
        if self._config.revoke_token_endpoint is None:
            logger.debug("No revoke endpoint configured, skipping revocation")
            return None

        url = calculate_url(self._config.base_url, self._config.revoke_token_endpoint)
        logger.info(
            f"Revoking access token for account {self._config.account_id}",
            extra={"account_id": self._config.account_id},
        )

        response = await send("POST", url, "Token revocation", data={"token": access_token})
        self._session.clear_tokens()
        return response
