# diffmerge/client/auth.py
"""Bearer credential storage shared by every client in the process."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV_VAR = "DIFFMERGE_AUTH_TOKEN"
DEFAULT_CREDENTIALS_PATH = "~/.diffmerge/credentials.json"


def _try_load_token_from_file(creds_path: Path) -> Optional[str]:
    """Try to load the access token from a credentials file."""
    if not creds_path.exists():
        return None

    try:
        with open(creds_path) as f:
            creds = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.debug("Failed to read %s: %s", creds_path, e)
        return None

    if not isinstance(creds, dict):
        return None
    token = creds.get("access_token")
    if token:
        logger.debug("Found access token in %s", creds_path)
        return token
    return None


class CredentialStore:
    """
    Hold the bearer token attached to authenticated requests.

    Priority when loading:
    1. The configured environment variable (explicit override)
    2. The credentials file written by a previous login

    Once invalidated (a 401 was seen) the environment variable is no longer
    consulted; only an explicit save() restores a credential.
    """

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        token_env_var: str = DEFAULT_TOKEN_ENV_VAR,
    ):
        self.credentials_path = Path(credentials_path or DEFAULT_CREDENTIALS_PATH).expanduser()
        self.token_env_var = token_env_var
        self._token: Optional[str] = None
        self._loaded = False
        self._invalidated = False

    @property
    def token(self) -> Optional[str]:
        if not self._loaded:
            self._token = self._load()
            self._loaded = True
        return self._token

    @property
    def has_token(self) -> bool:
        return self.token is not None

    def _load(self) -> Optional[str]:
        if not self._invalidated:
            token = os.getenv(self.token_env_var)
            if token:
                logger.debug("Using access token from %s env var", self.token_env_var)
                return token
        return _try_load_token_from_file(self.credentials_path)

    def save(self, token: str) -> None:
        """Store a new token in memory and in the credentials file."""
        self._token = token
        self._loaded = True
        self._invalidated = False

        self.credentials_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.credentials_path, "w") as f:
            json.dump({"access_token": token}, f)
        try:
            os.chmod(self.credentials_path, 0o600)
        except OSError as e:
            logger.debug("Could not restrict permissions on %s: %s", self.credentials_path, e)
        logger.info("Stored access token in %s", self.credentials_path)

    def invalidate(self) -> None:
        """Forget the current token, e.g. after the service answered 401."""
        had_token = self._token is not None
        self._token = None
        self._loaded = True
        self._invalidated = True

        if self.credentials_path.exists():
            try:
                self.credentials_path.unlink()
            except OSError as e:
                logger.warning("Failed to remove %s: %s", self.credentials_path, e)
        if had_token:
            logger.warning("Access token invalidated; re-authentication required")


_default_store: Optional[CredentialStore] = None


def get_credential_store() -> CredentialStore:
    """Return the process-wide credential store."""
    global _default_store
    if _default_store is None:
        _default_store = CredentialStore()
    return _default_store


def set_credential_store(store: Optional[CredentialStore]) -> None:
    """Replace the process-wide credential store (None restores the default)."""
    global _default_store
    _default_store = store
