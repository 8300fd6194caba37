"""
OAuth2 session model.

Holds the tokens issued for one account and the bookkeeping needed to tell
whether they are still usable. Persistence is delegated to an optional
SessionStore bound to the session.
"""

import logging
from datetime import datetime, timedelta, UTC
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

if TYPE_CHECKING:
    from authflow.session.store import SessionStore


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _expiry_from(seconds: int | None) -> datetime | None:
    if seconds is None:
        return None
    return _now() + timedelta(seconds=seconds)


class Session(BaseModel):
    """
    Tokens held for an account.

    A missing expiry means the token does not expire. Writes are
    last-write-wins: concurrent token calls that complete out of order simply
    overwrite each other.
    """

    account_id: str = Field(description="Account the tokens belong to")
    access_token: str | None = Field(default=None, description="OAuth2 access token")
    refresh_token: str | None = Field(
        default=None, description="OAuth2 refresh token for token renewal"
    )
    id_token: str | None = Field(default=None, description="OpenID Connect id_token")
    access_token_expires_at: datetime | None = Field(
        default=None, description="When the access token expires"
    )
    refresh_token_expires_at: datetime | None = Field(
        default=None, description="When the refresh token expires"
    )

    model_config = ConfigDict(extra="forbid")

    _store: Any = PrivateAttr(default=None)

    @classmethod
    def restore(cls, account_id: str, store: "SessionStore | None" = None) -> "Session":
        """
        Load the session for an account, or start an empty one.

        The returned session is bound to ``store`` so later writes persist.
        """
        session = store.load(account_id) if store is not None else None
        if session is None:
            session = cls(account_id=account_id)
        else:
            logger.info(f"Restored session for account {account_id}")
        session.bind(store)
        return session

    def bind(self, store: "SessionStore | None") -> None:
        """Attach the storage collaborator used by save/clear_tokens."""
        self._store = store

    def token_is_not_expired(self) -> bool:
        """Check if the access token is present and still valid."""
        if self.access_token is None:
            return False
        if self.access_token_expires_at is None:
            return True
        return _now() < self.access_token_expires_at

    def refresh_token_is_not_expired(self) -> bool:
        """Check if the refresh token is present and still valid."""
        if self.refresh_token is None:
            return False
        if self.refresh_token_expires_at is None:
            return True
        return _now() < self.refresh_token_expires_at

    def save(
        self,
        access_token: str,
        refresh_token: str | None = None,
        access_token_expires_in: int | None = None,
        refresh_token_expires_in: int | None = None,
        id_token: str | None = None,
    ) -> None:
        """
        Store freshly issued tokens.

        Expiry times are computed from now. Without a new refresh lifetime,
        an unchanged refresh token keeps its previous expiry.
        """
        if refresh_token_expires_in is not None:
            refresh_expires_at = _expiry_from(refresh_token_expires_in)
        elif refresh_token is not None and refresh_token == self.refresh_token:
            refresh_expires_at = self.refresh_token_expires_at
        else:
            refresh_expires_at = None

        self.access_token = access_token
        self.refresh_token = refresh_token
        self.id_token = id_token
        self.access_token_expires_at = _expiry_from(access_token_expires_in)
        self.refresh_token_expires_at = refresh_expires_at

        logger.debug(
            f"Saved tokens for account {self.account_id}",
            extra={
                "account_id": self.account_id,
                "has_refresh_token": refresh_token is not None,
            },
        )
        self._persist()

    def clear_tokens(self) -> None:
        """Wipe every token field."""
        self.access_token = None
        self.refresh_token = None
        self.id_token = None
        self.access_token_expires_at = None
        self.refresh_token_expires_at = None

        logger.info(f"Cleared tokens for account {self.account_id}")
        self._persist()

    def _persist(self) -> None:
        if self._store is not None:
            self._store.persist(self.account_id, self)
