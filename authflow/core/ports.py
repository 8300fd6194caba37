"""
Port definitions (interfaces) for the host environment.

The authorization flow never renders anything itself. The host supplies a
presenter that shows the authorization URL, and later routes the redirect
back through the notification center.
"""

from typing import Any, Awaitable, Protocol


class AuthorizationPresenter(Protocol):
    """
    Port (interface) for showing an authorization URL to the user.

    Implemented by the host (embedded web view, system browser sheet, ...).
    The returned element is kept by the flow until the authorization
    completes, so the host can dismiss it in its finish-handling hook.
    """

    def present(self, url: str) -> Any | Awaitable[Any]:
        """
        Show the authorization page.

        Args:
            url: Fully built authorization request URL

        Returns:
            The presented UI element, or None if nothing is retained
        """
        ...
