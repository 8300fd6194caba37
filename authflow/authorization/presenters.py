"""
Presenters for the configured presentation mode.

Only the external browser and custom loader modes can be handled without
the host. Embedded and system browser views need a presenter supplied by the
host application.
"""

import logging
import webbrowser
from typing import Any, Callable

from authflow.core.exceptions import PresenterUnavailableError
from authflow.core.ports import AuthorizationPresenter
from authflow.oauth.config import Presentation, PresentationMode


logger = logging.getLogger(__name__)


class ExternalBrowserPresenter:
    """Opens the authorization URL in the user's default browser."""

    def __init__(self, opener: Callable[[str], Any] | None = None):
        self._opener = opener or webbrowser.open

    def present(self, url: str) -> None:
        logger.info("Opening authorization page in external browser")
        self._opener(url)
        return None


class CustomPresenter:
    """Delegates to the loader configured with ``Presentation.custom``."""

    def __init__(self, loader: Callable[[str], Any]):
        self._loader = loader

    def present(self, url: str) -> Any:
        return self._loader(url)


def presenter_for(
    presentation: Presentation, presenter: AuthorizationPresenter | None = None
) -> AuthorizationPresenter:
    """
    Resolve the presenter for a presentation mode.

    A host-supplied presenter always wins.

    Raises:
        PresenterUnavailableError: If the mode needs a host presenter and
            none was given
    """
    if presenter is not None:
        return presenter

    if presentation.mode is PresentationMode.EXTERNAL_BROWSER:
        return ExternalBrowserPresenter()
    if presentation.mode is PresentationMode.CUSTOM and presentation.loader is not None:
        return CustomPresenter(presentation.loader)

    raise PresenterUnavailableError(
        f"Presentation mode '{presentation.mode.value}' requires a host presenter"
    )
