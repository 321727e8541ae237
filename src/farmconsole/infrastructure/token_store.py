"""Bearer token storage.

The client reads the token through the ``TokenStore`` interface on every
request, so tests can hand it an in-memory store while the CLI persists the
token to a file that outlives the process.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from farmconsole.domain.models.token import AuthToken

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Abstract holder of at most one bearer token"""

    @abstractmethod
    def get(self) -> Optional[AuthToken]:
        """Return the current token, or None when signed out"""

    @abstractmethod
    def set(self, token: str, ttl_days: Optional[float] = None) -> AuthToken:
        """Replace the current token

        Args:
            token: Opaque bearer token
            ttl_days: Lifetime hint in days (None = no expiry hint)

        Returns:
            The stored token
        """

    @abstractmethod
    def clear(self) -> None:
        """Drop the current token. Clearing an empty store is a no-op."""

    def get_value(self) -> Optional[str]:
        """Return just the token string, if any"""
        token = self.get()
        return token.value if token else None


class InMemoryTokenStore(TokenStore):
    """Process-local store"""

    def __init__(self, token: Optional[AuthToken] = None):
        self._token = token

    def get(self) -> Optional[AuthToken]:
        return self._token

    def set(self, token: str, ttl_days: Optional[float] = None) -> AuthToken:
        self._token = AuthToken.issue(token, ttl_days)
        return self._token

    def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """Durable store backed by a small JSON file.

    Behaves like a browser cookie: the record is replaced atomically, and a
    record past its expiry reads as absent.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def get(self) -> Optional[AuthToken]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                token = AuthToken.from_dict(json.load(f))
            expired = token.is_expired()
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

        if expired:
            logger.debug(f"Stored token in {self.path} has expired")
            self.clear()
            return None
        return token

    def set(self, token: str, ttl_days: Optional[float] = None) -> AuthToken:
        auth_token = AuthToken.issue(token, ttl_days)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".token-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(auth_token.to_dict(), f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Stored token in {self.path}")
        return auth_token

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
