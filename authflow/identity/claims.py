"""
OpenID Connect claims.

Claims are mapped on a best-effort basis: known claims are typed, unknown
ones are kept as extra fields, and values of the wrong type are dropped.
"""

import logging
from typing import Any

import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authflow.core.exceptions import InvalidTokenResponseError


logger = logging.getLogger(__name__)


class OpenIdClaim(BaseModel):
    """Standard OpenID Connect claims returned by a userinfo endpoint."""

    sub: str | None = Field(default=None, description="Subject identifier")
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None
    nickname: str | None = None
    preferred_username: str | None = None
    profile: str | None = None
    picture: str | None = None
    website: str | None = None
    email: str | None = None
    email_verified: bool | None = None
    gender: str | None = None
    birthdate: str | None = None
    zoneinfo: str | None = None
    locale: str | None = None
    phone_number: str | None = None
    phone_number_verified: bool | None = None
    address: dict[str, Any] | None = None
    updated_at: int | None = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_userinfo(cls, data: dict[str, Any]) -> "OpenIdClaim":
        """
        Build claims from a userinfo (or id_token) payload.

        Claims whose values cannot be coerced to the standard type are
        dropped and logged.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            invalid = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            logger.warning(f"Dropping malformed claims: {', '.join(sorted(invalid))}")
            cleaned = {k: v for k, v in data.items() if k not in invalid}
            return cls.model_validate(cleaned)

    def as_dict(self) -> dict[str, Any]:
        """All claims present in the response, including non-standard ones."""
        return self.model_dump(exclude_none=True)


def decode_id_token(id_token: str) -> OpenIdClaim:
    """
    Read the claims carried by an id_token.

    The signature is not verified: the token was received directly from the
    token endpoint over TLS.

    Raises:
        InvalidTokenResponseError: If the token is not a decodable JWT
    """
    try:
        payload = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise InvalidTokenResponseError(f"Invalid id_token: {e}") from e
    return OpenIdClaim.from_userinfo(payload)
