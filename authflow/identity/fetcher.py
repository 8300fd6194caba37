"""
Userinfo endpoint client.
"""

import logging

from authflow.core.exceptions import NoUserInfoEndpointError
from authflow.identity.claims import OpenIdClaim
from authflow.infrastructure.http import calculate_url, json_object, send
from authflow.oauth.config import OAuthConfig


logger = logging.getLogger(__name__)


class IdentityClaimsFetcher:
    """Fetches OpenID Connect claims for an access token."""

    def __init__(self, config: OAuthConfig):
        self._config = config

    async def fetch_claims(self, access_token: str) -> OpenIdClaim:
        """
        Get the user's claims from the userinfo endpoint.

        Raises:
            NoUserInfoEndpointError: If no userinfo endpoint is configured
            TransportError: On network failure or non-2xx response
        """
        if not self._config.userinfo_endpoint:
            raise NoUserInfoEndpointError("No UserInfo endpoint available in config")

        url = calculate_url(self._config.base_url, self._config.userinfo_endpoint)
        response = await send(
            "GET",
            url,
            "UserInfo request",
            headers={"Authorization": f"Bearer {access_token}"},
        )

        body = json_object(response)
        if body is None:
            logger.warning("UserInfo response is not a JSON object, no claims mapped")
            return OpenIdClaim()

        claims = OpenIdClaim.from_userinfo(body)
        logger.info(f"Fetched user info for subject {claims.sub}")
        return claims
