"""
Authorization Code Grant flow.

The user approves access outside the process. ``begin`` builds the
authorization URL, registers for the host's notifications and hands the URL
to the presenter, then returns without waiting. The redirect arrives later
through the notification center and resumes the flow in ``handle_callback``.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable
from urllib.parse import quote, unquote, urlencode, urlsplit
from uuid import uuid4

from authflow.authorization.presenters import presenter_for
from authflow.core.exceptions import (
    AuthorizationPendingError,
    UnknownAuthorizationError,
    UserCancelledError,
    WrongStateParameterError,
)
from authflow.core.notifications import (
    APP_DID_BECOME_ACTIVE,
    APP_LAUNCHED_WITH_URL,
    NotificationCenter,
    Observer,
    get_notification_center,
)
from authflow.core.ports import AuthorizationPresenter
from authflow.infrastructure.http import calculate_url
from authflow.oauth.config import OAuthConfig
from authflow.tokens.client import TokenEndpointClient


logger = logging.getLogger(__name__)


class AuthorizationState(str, Enum):
    """Where a flow stands in the authorization step."""

    PENDING_EXTERNAL_APPROVAL = "pending_external_approval"
    APPROVED = "approved"
    UNKNOWN = "unknown"


BeginHandlingHook = Callable[["AuthorizationFlow"], Awaitable[bool]]
FinishHandlingHook = Callable[["AuthorizationFlow", Any], Awaitable[None]]


async def _proceed(flow: "AuthorizationFlow") -> bool:
    return True


async def _release(flow: "AuthorizationFlow", element: Any) -> None:
    return None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def parameters_from_query(query: str | None) -> dict[str, str]:
    """
    Percent-decoded query parameters; later duplicates win, blanks are skipped.

    Only percent escapes are decoded. A literal "+" is kept, since codes and
    state values are not form-encoded.
    """
    params: dict[str, str] = {}
    if not query:
        return params
    for pair in query.split("&"):
        name, _, value = pair.partition("=")
        if not name or not value:
            continue
        params[unquote(name)] = unquote(value)
    return params


class AuthorizationFlow:
    """
    Single authorization attempt state machine.

    Not safe for concurrent ``begin`` calls: a second ``begin`` while one is
    pending raises AuthorizationPendingError. There is no timeout; an
    abandoned flow is only reclaimed when the host reports that the
    application became active again.
    """

    def __init__(
        self,
        config: OAuthConfig,
        token_client: TokenEndpointClient,
        notifications: NotificationCenter | None = None,
        presenter: AuthorizationPresenter | None = None,
        begin_handling: BeginHandlingHook | None = None,
        finish_handling: FinishHandlingHook | None = None,
    ):
        self._config = config
        self._token_client = token_client
        self._notifications = notifications or get_notification_center()
        self._presenter = presenter
        self.begin_handling: BeginHandlingHook = begin_handling or _proceed
        self.finish_handling: FinishHandlingHook = finish_handling or _release

        self.state = AuthorizationState.UNKNOWN
        self.request_identifier = str(uuid4())
        self.loaded_url: str | None = None
        self.presented: Any = None
        self.began_handling_ui = False

        self._launch_observer: Observer | None = None
        self._active_observer: Observer | None = None
        self._outcome: asyncio.Future[str] | None = None
        self._used = False

    @property
    def is_observing(self) -> bool:
        return self._launch_observer is not None or self._active_observer is not None

    def build_authorization_url(self) -> str:
        """
        Build the authorization request URL for the current request identifier.

        Raises:
            MalformedURLError: If the base URL or endpoint is malformed
        """
        base = calculate_url(self._config.base_url, self._config.authz_endpoint)
        params = [
            ("scope", self._config.scope),
            ("redirect_uri", self._config.redirect_url),
            ("client_id", self._config.client_id),
            ("response_type", "code"),
            ("state", self.request_identifier),
        ]
        if self._config.audience_id is not None:
            params.append(("audience", self._config.audience_id))

        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode(params, quote_via=quote)}"

    async def begin(self) -> str:
        """
        Start the authorization step.

        Returns as soon as the URL has been handed to the presenter; use
        ``wait`` to receive the outcome.

        Returns:
            The authorization URL

        Raises:
            AuthorizationPendingError: If an authorization is already pending
            MalformedURLError: If the authorization URL cannot be built
            PresenterUnavailableError: If no presenter handles the mode
            UserCancelledError: If the begin-handling hook declines
        """
        if self.state is AuthorizationState.PENDING_EXTERNAL_APPROVAL:
            raise AuthorizationPendingError("An authorization is already pending")

        if self._used:
            self.request_identifier = str(uuid4())
        self._used = True

        url = self.build_authorization_url()

        self._outcome = asyncio.get_running_loop().create_future()
        self.state = AuthorizationState.PENDING_EXTERNAL_APPROVAL
        self._launch_observer = self._notifications.add_observer(
            APP_LAUNCHED_WITH_URL, self._on_launched_with_url
        )
        self._active_observer = self._notifications.add_observer(
            APP_DID_BECOME_ACTIVE, self._on_did_become_active
        )

        logger.info(
            f"Authorization started. State: {self.request_identifier[:8]}...",
            extra={"account_id": self._config.account_id},
        )

        try:
            await self._load_url(url)
        except Exception as e:
            self._reset()
            self._settle(error=e)
            raise
        return url

    async def _load_url(self, url: str) -> None:
        presentation = self._config.presentation
        presenter = presenter_for(presentation, self._presenter)

        if not presentation.uses_ui_hooks:
            await _maybe_await(presenter.present(url))
        else:
            if not await self.begin_handling(self):
                raise UserCancelledError("Action canceled")
            self.began_handling_ui = True
            self.presented = await _maybe_await(presenter.present(url))

        self.loaded_url = url

    async def wait(self) -> str:
        """
        Wait for the outcome of the pending authorization.

        Returns:
            The access token obtained for the approved code

        Raises:
            RuntimeError: If ``begin`` has not been called
            OAuth2Error: The error that ended the authorization
        """
        if self._outcome is None:
            raise RuntimeError("begin() has not been called")
        return await asyncio.shield(self._outcome)

    async def handle_callback(self, url: str) -> str:
        """
        Resume the flow with the redirect delivered by the host.

        Returns:
            The access token obtained for the authorization code

        Raises:
            WrongStateParameterError: If ``state`` does not match this flow, or
                no authorization is pending (the redirect was already handled)
            UnknownAuthorizationError: If the server returned an error
            UserCancelledError: If the redirect has neither code nor error
            TransportError: If the code exchange fails
            InvalidTokenResponseError: If the token response is invalid
        """
        params = parameters_from_query(urlsplit(url).query)

        if self.state is not AuthorizationState.PENDING_EXTERNAL_APPROVAL:
            logger.warning(f"Authorization callback while {self.state.value}, rejecting")
            raise WrongStateParameterError("No authorization request is pending")

        try:
            if "code" in params:
                if params.get("state") != self.request_identifier:
                    logger.warning("Authorization callback with unexpected state parameter")
                    raise WrongStateParameterError(
                        "State parameter does not match the pending request"
                    )
                self.state = AuthorizationState.APPROVED
                self.stop_observing()
                logger.info("Authorization approved, exchanging code")
                access_token = await self._token_client.exchange_code_for_token(
                    params["code"]
                )
            elif "error" in params:
                raise UnknownAuthorizationError(
                    params["error"], params.get("error_description")
                )
            else:
                raise UserCancelledError("User cancelled authorization.")

        except Exception as e:
            logger.error(f"Authorization failed: {e}")
            self.stop_observing()
            self.state = AuthorizationState.UNKNOWN
            await self._finish_ui()
            self._settle(error=e)
            raise

        await self._finish_ui()
        self._settle(result=access_token)
        return access_token

    def stop_observing(self) -> None:
        """Unregister both host observers. Safe to call repeatedly."""
        self._notifications.remove_observer(self._launch_observer)
        self._launch_observer = None
        self._notifications.remove_observer(self._active_observer)
        self._active_observer = None

    async def _on_launched_with_url(self, url: str, **_: Any) -> None:
        try:
            await self.handle_callback(url)
        except Exception:
            # Outcome is delivered to the caller through wait().
            logger.debug("Authorization callback completed with an error")

    async def _on_did_become_active(self, **_: Any) -> None:
        if self.state is not AuthorizationState.PENDING_EXTERNAL_APPROVAL:
            return
        logger.info("Application resumed without completing authorization")
        self._reset()
        self._settle(error=UserCancelledError("Authorization abandoned"))

    async def _finish_ui(self) -> None:
        element = self.presented
        began = self.began_handling_ui
        self.began_handling_ui = False
        self.presented = None
        if began and element is not None:
            await self.finish_handling(self, element)

    def _reset(self) -> None:
        self.stop_observing()
        self.state = AuthorizationState.UNKNOWN
        self.began_handling_ui = False
        self.presented = None

    def _settle(
        self, result: str | None = None, error: BaseException | None = None
    ) -> None:
        outcome = self._outcome
        if outcome is None or outcome.done():
            return
        if error is not None:
            outcome.set_exception(error)
            # The outcome may never be awaited.
            outcome.exception()
        else:
            outcome.set_result(result)
