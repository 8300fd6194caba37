"""
Token endpoint response models.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authflow.core.exceptions import InvalidTokenResponseError


class TokenResponse(BaseModel):
    """
    Parsed token endpoint response.

    Only ``access_token`` is required. ``refresh_expires_in`` is sent by
    servers that expire refresh tokens (e.g. Keycloak). ``server_code`` is an
    opaque value passed through to the caller.
    """

    access_token: str = Field(description="OAuth2 access token")
    refresh_token: str | None = Field(default=None, description="OAuth2 refresh token")
    id_token: str | None = Field(default=None, description="OpenID Connect id_token")
    server_code: str | None = Field(default=None, description="Opaque server code")
    expires_in: int | None = Field(
        default=None, description="Access token lifetime in seconds"
    )
    refresh_expires_in: int | None = Field(
        default=None, description="Refresh token lifetime in seconds"
    )
    token_type: str = Field(default="Bearer", description="Token type")
    scope: str | None = Field(default=None, description="Granted scopes")

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_response_body(cls, body: dict[str, Any] | None) -> "TokenResponse":
        """
        Validate a decoded token endpoint body.

        Raises:
            InvalidTokenResponseError: If the body is not an object or the
                access token is missing or malformed
        """
        if body is None:
            raise InvalidTokenResponseError("Token response is not a JSON object")
        try:
            return cls.model_validate(body)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            raise InvalidTokenResponseError(
                f"Invalid token response (fields: {fields or 'unknown'})"
            ) from e
