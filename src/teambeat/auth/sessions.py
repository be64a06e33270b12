"""
In-memory login sessions.

Sessions live in process memory and are lost on restart. The store takes a
clock callable so expiry can be tested without sleeping.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class SessionData:
    """A logged-in user's session."""

    user_id: str
    email: str
    expires_at: float  # epoch seconds


class SessionStore:
    """
    Token -> SessionData map with expiry.

    Example:
        >>> store = SessionStore(ttl_days=7)
        >>> token = store.create("user-1", "ada@example.com")
        >>> store.get(token).user_id
        'user-1'
    """

    def __init__(self, ttl_days: int = 7, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_days * SECONDS_PER_DAY
        self.clock = clock
        self._sessions: Dict[str, SessionData] = {}

    def create(self, user_id: str, email: str) -> str:
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = SessionData(
            user_id=user_id,
            email=email,
            expires_at=self.clock() + self.ttl_seconds,
        )
        return session_id

    def get(self, session_id: Optional[str]) -> Optional[SessionData]:
        """
        Look up a session, dropping it if it has expired.

        Args:
            session_id: Session token from the cookie

        Returns:
            SessionData, or None if unknown or expired
        """
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expires_at < self.clock():
            del self._sessions[session_id]
            return None
        return session

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def delete_user_sessions(self, user_id: str) -> int:
        """Drop every session belonging to a user (e.g. after a password reset)."""
        doomed = [sid for sid, s in self._sessions.items() if s.user_id == user_id]
        for session_id in doomed:
            del self._sessions[session_id]
        return len(doomed)

    def cleanup(self) -> int:
        """
        Remove all expired sessions.

        Returns:
            Number of sessions removed
        """
        now = self.clock()
        expired = [sid for sid, s in self._sessions.items() if s.expires_at < now]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.debug(f"Removed {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
