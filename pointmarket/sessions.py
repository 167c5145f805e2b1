"""In-memory session registry.

Sessions live for the lifetime of the process; a restart logs everyone out.
"""

import logging
import secrets
import threading

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps opaque bearer tokens to usernames."""

    def __init__(self, token_bytes: int = 24):
        self.token_bytes = token_bytes
        self._sessions: dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, username: str) -> str:
        token = secrets.token_hex(self.token_bytes)
        with self._lock:
            self._sessions[token] = username
        logger.debug(f"Opened session for {username}")
        return token

    def resolve(self, token: str | None) -> str | None:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def revoke(self, token: str | None) -> None:
        """Drop a session. Unknown tokens are ignored."""
        if not token:
            return
        with self._lock:
            username = self._sessions.pop(token, None)
        if username is not None:
            logger.debug(f"Closed session for {username}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
