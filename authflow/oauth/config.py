"""
OAuth2 client configuration.

Each OAuth2Module is bound to one immutable OAuthConfig. Configuration can be
built directly or loaded from environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Callable


logger = logging.getLogger(__name__)

ACCOUNT_ID_PREFIX = "ACCOUNT_FOR_CLIENTID_"


class PresentationMode(str, Enum):
    """How the authorization URL is shown to the user."""

    EMBEDDED = "embedded"
    EXTERNAL_BROWSER = "external_browser"
    CUSTOM = "custom"
    SYSTEM_BROWSER = "system_browser"


@dataclass(frozen=True)
class Presentation:
    """
    Presentation mode selected by configuration.

    ``loader`` is only used by the custom mode: it receives the authorization
    URL and returns the element the host should display.
    """

    mode: PresentationMode = PresentationMode.EXTERNAL_BROWSER
    loader: Callable[[str], Any] | None = None

    def __post_init__(self) -> None:
        if self.mode is PresentationMode.CUSTOM and self.loader is None:
            raise ValueError("Custom presentation requires a loader")

    @classmethod
    def embedded(cls) -> "Presentation":
        return cls(mode=PresentationMode.EMBEDDED)

    @classmethod
    def external_browser(cls) -> "Presentation":
        return cls(mode=PresentationMode.EXTERNAL_BROWSER)

    @classmethod
    def custom(cls, loader: Callable[[str], Any]) -> "Presentation":
        return cls(mode=PresentationMode.CUSTOM, loader=loader)

    @classmethod
    def system_browser(cls) -> "Presentation":
        return cls(mode=PresentationMode.SYSTEM_BROWSER)

    @property
    def uses_ui_hooks(self) -> bool:
        """External browser hands off to another process, so no UI hooks run."""
        return self.mode is not PresentationMode.EXTERNAL_BROWSER


@dataclass(frozen=True)
class OAuthConfig:
    """
    OAuth2 client settings.

    Endpoints may be paths relative to ``base_url`` or absolute URLs.
    ``account_id`` identifies the stored session and defaults to a value
    derived from the client id.
    """

    base_url: str
    client_id: str
    redirect_url: str
    authz_endpoint: str = ""
    access_token_endpoint: str = ""
    refresh_token_endpoint: str | None = None
    revoke_token_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    scopes: list[str] = field(default_factory=list)
    client_secret: str | None = None
    audience_id: str | None = None
    account_id: str | None = None
    is_openid_connect: bool = False
    presentation: Presentation = field(default_factory=Presentation)

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ValueError("client_id is required")
        if not self.account_id:
            object.__setattr__(
                self, "account_id", f"{ACCOUNT_ID_PREFIX}{self.client_id}"
            )
        if self.refresh_token_endpoint is None:
            object.__setattr__(
                self, "refresh_token_endpoint", self.access_token_endpoint
            )
        if self.is_openid_connect and "openid" not in self.scopes:
            object.__setattr__(self, "scopes", ["openid", *self.scopes])

    @property
    def scope(self) -> str:
        """Space-separated scope string sent to the authorization server."""
        return " ".join(self.scopes)

    @classmethod
    def from_env(cls, prefix: str = "OAUTH_") -> "OAuthConfig":
        """Load configuration from environment variables."""

        def env(name: str) -> str | None:
            return os.getenv(f"{prefix}{name}") or None

        raw_scopes = env("SCOPES") or ""
        scopes = [s for s in raw_scopes.replace(",", " ").split() if s]

        mode = env("PRESENTATION") or PresentationMode.EXTERNAL_BROWSER.value
        try:
            presentation = Presentation(mode=PresentationMode(mode))
        except ValueError:
            logger.warning(
                f"Unsupported presentation mode '{mode}', using external browser"
            )
            presentation = Presentation.external_browser()

        return cls(
            base_url=env("BASE_URL") or "",
            client_id=env("CLIENT_ID") or "",
            redirect_url=env("REDIRECT_URL") or "",
            authz_endpoint=env("AUTHZ_ENDPOINT") or "",
            access_token_endpoint=env("TOKEN_ENDPOINT") or "",
            refresh_token_endpoint=env("REFRESH_TOKEN_ENDPOINT"),
            revoke_token_endpoint=env("REVOKE_TOKEN_ENDPOINT"),
            userinfo_endpoint=env("USERINFO_ENDPOINT"),
            scopes=scopes,
            client_secret=env("CLIENT_SECRET"),
            audience_id=env("AUDIENCE_ID"),
            account_id=env("ACCOUNT_ID"),
            is_openid_connect=(env("OPENID_CONNECT") or "false").lower() == "true",
            presentation=presentation,
        )

    def get_environment_summary(self) -> dict[str, Any]:
        """Summary of the configuration, excluding secrets."""
        return {
            "base_url": self.base_url,
            "client_id": self.client_id,
            "redirect_url": self.redirect_url,
            "scope": self.scope,
            "account_id": self.account_id,
            "has_client_secret": self.client_secret is not None,
            "revocation_enabled": self.revoke_token_endpoint is not None,
            "userinfo_enabled": self.userinfo_endpoint is not None,
            "presentation": self.presentation.mode.value,
        }


@lru_cache()
def get_oauth_config() -> OAuthConfig:
    """Get OAuth configuration singleton."""
    return OAuthConfig.from_env()
