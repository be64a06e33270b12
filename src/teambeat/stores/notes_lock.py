"""
Per-card notes editing locks.

Only one user edits a card's notes at a time. Locks expire on their own
after the lock timeout, so an abandoned editor never blocks others for long.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class NotesLock:
    card_id: str
    user_id: str
    user_name: str
    acquired_at: float  # epoch seconds


@dataclass
class LockResult:
    success: bool
    locked_by: Optional[str] = None
    expires_at: Optional[float] = None


class NotesLockStore:
    """card_id -> NotesLock with expiry."""

    def __init__(self, timeout_seconds: int = 300, clock: Callable[[], float] = time.time):
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._locks: Dict[str, NotesLock] = {}

    def _expired(self, lock: NotesLock) -> bool:
        return self.clock() - lock.acquired_at > self.timeout_seconds

    def acquire(self, card_id: str, user_id: str, user_name: str) -> LockResult:
        """
        Take (or refresh) the notes lock on a card.

        Fails if another user holds an unexpired lock.

        Args:
            card_id: Card id
            user_id: User requesting the lock
            user_name: Name shown to others while the lock is held

        Returns:
            LockResult; on failure, locked_by names the holder
        """
        existing = self._locks.get(card_id)
        if existing and existing.user_id != user_id and not self._expired(existing):
            return LockResult(
                success=False,
                locked_by=existing.user_name,
                expires_at=existing.acquired_at + self.timeout_seconds,
            )
        self._locks[card_id] = NotesLock(
            card_id=card_id,
            user_id=user_id,
            user_name=user_name,
            acquired_at=self.clock(),
        )
        return LockResult(success=True)

    def release(self, card_id: str, user_id: str) -> bool:
        """Release a lock; only its holder can release it."""
        lock = self._locks.get(card_id)
        if lock and lock.user_id == user_id:
            del self._locks[card_id]
            return True
        return False

    def get(self, card_id: str) -> Optional[NotesLock]:
        lock = self._locks.get(card_id)
        if lock is None:
            return None
        if self._expired(lock):
            del self._locks[card_id]
            return None
        return lock

    def cleanup(self) -> int:
        expired = [cid for cid, lock in self._locks.items() if self._expired(lock)]
        for card_id in expired:
            del self._locks[card_id]
        return len(expired)
