"""
In-process presence store.

Tracks which users are active on which boards. Entries are refreshed by
board API calls and SSE pings, expire after the presence timeout and are
swept by a periodic task.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Users idle for this fraction of the timeout get a presence ping
NEAR_TIMEOUT_RATIO = 0.7


@dataclass
class PresenceEntry:
    user_id: str
    board_id: str
    last_seen: float  # epoch seconds
    current_activity: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "user_id": self.user_id,
            "last_seen": int(self.last_seen * 1000),
            "current_activity": self.current_activity,
        }


class PresenceStore:
    """(user, board) -> PresenceEntry, last write wins."""

    def __init__(self, timeout_seconds: int = 30, clock: Callable[[], float] = time.time):
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._entries: Dict[Tuple[str, str], PresenceEntry] = {}

    def update(
        self, user_id: str, board_id: str, activity: Optional[str] = None
    ) -> PresenceEntry:
        """
        Mark a user as present on a board right now.

        Args:
            user_id: User id
            board_id: Board id
            activity: Optional description of what the user is doing

        Returns:
            The stored entry
        """
        entry = PresenceEntry(
            user_id=user_id,
            board_id=board_id,
            last_seen=self.clock(),
            current_activity=activity,
        )
        self._entries[(user_id, board_id)] = entry
        return entry

    def get_board_presence(self, board_id: str) -> List[PresenceEntry]:
        """Entries for a board that have not timed out, oldest first."""
        threshold = self.clock() - self.timeout_seconds
        return sorted(
            (
                e
                for e in self._entries.values()
                if e.board_id == board_id and e.last_seen >= threshold
            ),
            key=lambda e: e.last_seen,
        )

    def get_active_user_ids(self, board_id: str) -> List[str]:
        return [entry.user_id for entry in self.get_board_presence(board_id)]

    def get_users_nearing_timeout(self, board_id: str) -> List[PresenceEntry]:
        """Entries on a board idle for more than 70% of the timeout."""
        threshold = self.clock() - self.timeout_seconds * NEAR_TIMEOUT_RATIO
        return [
            e
            for e in self._entries.values()
            if e.board_id == board_id and e.last_seen < threshold
        ]

    def remove(self, user_id: str, board_id: str) -> None:
        self._entries.pop((user_id, board_id), None)

    def cleanup(self) -> int:
        """
        Drop entries past the timeout.

        Returns:
            Number of entries removed
        """
        threshold = self.clock() - self.timeout_seconds
        stale = [key for key, e in self._entries.items() if e.last_seen < threshold]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Removed {len(stale)} stale presence entries")
        return len(stale)
