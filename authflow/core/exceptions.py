"""
Errors raised by the OAuth2 client.

Every failure of a public operation surfaces to its caller as one of these
exceptions. Nothing is retried internally.
"""


class OAuth2Error(Exception):
    """Base exception for OAuth2 client errors."""

    pass


class MalformedURLError(OAuth2Error):
    """The authorization or endpoint URL could not be built."""

    pass


class WrongStateParameterError(OAuth2Error):
    """
    The callback's state parameter does not match the pending request.

    Raised for stale or foreign redirects; the token endpoint is not called.
    """

    pass


class UserCancelledError(OAuth2Error):
    """The user dismissed the authorization step without a result."""

    pass


class UnknownAuthorizationError(OAuth2Error):
    """The authorization server redirected back with an error parameter."""

    def __init__(self, name: str, description: str | None = None):
        self.name = name
        self.description = description
        message = f"Authorization failed: {name}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)


class NoRefreshTokenError(OAuth2Error):
    """A refresh was requested but the session holds no refresh token."""

    pass


class NoUserInfoEndpointError(OAuth2Error):
    """Claims were requested but no userinfo endpoint is configured."""

    pass


class TransportError(OAuth2Error):
    """
    Network failure or non-2xx response from the authorization server.

    ``status_code`` and ``body`` are set when a response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InvalidTokenResponseError(OAuth2Error):
    """The token endpoint response lacks a required field."""

    pass


class AuthorizationPendingError(OAuth2Error):
    """An authorization is already waiting on external approval."""

    pass


class PresenterUnavailableError(OAuth2Error):
    """The configured presentation mode has no presenter to show the URL."""

    pass
