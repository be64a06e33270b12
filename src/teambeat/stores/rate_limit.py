"""
Login rate limiting.

Failed logins are counted per key (the lower-cased email) inside a fixed
window. Once the failures reach the limit, the key is hard-blocked until the
window ends.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    reset_at: float  # epoch seconds
    failed_attempts: int = 0


@dataclass
class LoginRateLimitResult:
    allowed: bool
    failed_attempts: int
    attempts_remaining: int
    is_hard_blocked: bool


class LoginRateLimiter:
    """Fixed-window failed-login counter."""

    def __init__(
        self,
        max_attempts: int = 10,
        window_minutes: int = 15,
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_minutes * 60
        self.clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    def check(self, key: str) -> LoginRateLimitResult:
        """
        Check whether a login attempt for this key may proceed.

        Starts a new window if none is open.
        """
        now = self.clock()
        entry = self._entries.get(key)
        if entry is None or entry.reset_at < now:
            self._entries[key] = RateLimitEntry(reset_at=now + self.window_seconds)
            return LoginRateLimitResult(
                allowed=True,
                failed_attempts=0,
                attempts_remaining=self.max_attempts,
                is_hard_blocked=False,
            )

        attempts = entry.failed_attempts
        if attempts >= self.max_attempts:
            return LoginRateLimitResult(
                allowed=False,
                failed_attempts=attempts,
                attempts_remaining=0,
                is_hard_blocked=True,
            )
        return LoginRateLimitResult(
            allowed=True,
            failed_attempts=attempts,
            attempts_remaining=self.max_attempts - attempts,
            is_hard_blocked=False,
        )

    def record_failure(self, key: str) -> int:
        """
        Count a failed login.

        Returns:
            Failed attempts in the current window
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = RateLimitEntry(reset_at=self.clock() + self.window_seconds)
            self._entries[key] = entry
        entry.failed_attempts += 1
        if entry.failed_attempts >= self.max_attempts:
            logger.warning(f"Login blocked after {entry.failed_attempts} failures: {key}")
        return entry.failed_attempts

    def reset(self, key: str) -> None:
        entry = self._entries.get(key)
        if entry:
            entry.failed_attempts = 0

    def get_attempts(self, key: str) -> int:
        entry = self._entries.get(key)
        return entry.failed_attempts if entry else 0

    def cleanup(self) -> int:
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if entry.reset_at < now]
        for key in expired:
            del self._entries[key]
        return len(expired)
