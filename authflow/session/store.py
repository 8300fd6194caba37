"""
Session storage interface and implementations.

Defines the port for session persistence, an in-memory implementation for
tests and short-lived clients, and an encrypted file store whose sessions
survive process restarts.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Protocol

from authflow.infrastructure.encryption import TokenCipher, is_encryption_configured
from authflow.session.models import Session


logger = logging.getLogger(__name__)

CREDENTIALS_DIR_ENV = "AUTHFLOW_CREDENTIALS_DIR"

_TOKEN_FIELDS = ("access_token", "refresh_token", "id_token")


class SessionStore(Protocol):
    """
    Protocol defining the session storage interface.

    Sessions are keyed by the account id from OAuthConfig.
    """

    def load(self, account_id: str) -> Session | None:
        """
        Load the stored session for an account.

        Returns:
            Session if one was stored, None otherwise
        """
        ...

    def persist(self, account_id: str, session: Session) -> None:
        """Store the session, replacing any previous one (last write wins)."""
        ...

    def delete(self, account_id: str) -> bool:
        """
        Remove the stored session.

        Returns:
            True if deleted, False if not found
        """
        ...


class InMemorySessionStore(SessionStore):
    """
    In-memory implementation of SessionStore.

    Data is lost when the process exits.
    """

    def __init__(self):
        self._sessions: dict[str, dict[str, Any]] = {}

    def load(self, account_id: str) -> Session | None:
        data = self._sessions.get(account_id)
        if data is None:
            return None
        return Session.model_validate(data)

    def persist(self, account_id: str, session: Session) -> None:
        self._sessions[account_id] = session.model_dump()
        logger.debug(f"Persisted session for account {account_id}")

    def delete(self, account_id: str) -> bool:
        return self._sessions.pop(account_id, None) is not None


class EncryptedFileSessionStore(SessionStore):
    """
    File-backed SessionStore with encrypted tokens.

    One JSON document per account. Token values are Fernet-encrypted with
    TOKEN_ENCRYPTION_KEY; expiry timestamps are stored in clear.
    """

    def __init__(self, directory: str | Path, cipher: TokenCipher | None = None):
        self._directory = Path(directory).expanduser()
        self._cipher = cipher or TokenCipher.from_env()
        self._lock = threading.RLock()

    def _path_for(self, account_id: str) -> Path:
        safe_name = re.sub(r"[^A-Za-z0-9_-]", "_", account_id)
        return self._directory / f"{safe_name}.json"

    def load(self, account_id: str) -> Session | None:
        path = self._path_for(account_id)
        with self._lock:
            if not path.exists():
                return None
            with open(path, "r") as f:
                data = json.load(f)

        for name in _TOKEN_FIELDS:
            data[name] = self._cipher.decrypt(data.get(name))
        logger.debug(f"Loaded session for account {account_id} from {path}")
        return Session.model_validate(data)

    def persist(self, account_id: str, session: Session) -> None:
        data = session.model_dump(mode="json")
        for name in _TOKEN_FIELDS:
            data[name] = self._cipher.encrypt(data.get(name))

        path = self._path_for(account_id)
        with self._lock:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            with open(tmp_path, "w") as f:
                json.dump(data, f)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        logger.debug(f"Persisted session for account {account_id} to {path}")

    def delete(self, account_id: str) -> bool:
        path = self._path_for(account_id)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
        logger.info(f"Deleted stored session for account {account_id}")
        return True


def _is_file_store_configured() -> bool:
    return os.getenv(CREDENTIALS_DIR_ENV) is not None and is_encryption_configured()


_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """
    Get the session store singleton.

    Returns EncryptedFileSessionStore if AUTHFLOW_CREDENTIALS_DIR and
    TOKEN_ENCRYPTION_KEY are set, InMemorySessionStore otherwise.
    """
    global _store
    if _store is None:
        if _is_file_store_configured():
            directory = os.environ[CREDENTIALS_DIR_ENV]
            _store = EncryptedFileSessionStore(directory)
            logger.info(f"Using encrypted file session store at {directory}")
        else:
            logger.info("Using in-memory session store")
            _store = InMemorySessionStore()
    return _store


def set_session_store(store: SessionStore) -> None:
    """Set the session store implementation."""
    global _store
    _store = store


def reset_session_store() -> None:
    """
    Reset the session store singleton.

    Useful for testing to ensure clean state between tests.
    """
    global _store
    _store = None
