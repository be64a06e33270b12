"""Tests for the in-process stores: sessions, login limits, notes locks and presence."""

from teambeat.auth.sessions import SECONDS_PER_DAY, SessionStore
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore
from teambeat.stores.rate_limit import LoginRateLimiter


class TestSessionStore:
    """Tests for login sessions and their expiry."""

    def test_create_and_get(self, clock):
        store = SessionStore(ttl_days=7, clock=clock)
        token = store.create("user-1", "ada@example.com")

        session = store.get(token)
        assert session.user_id == "user-1"
        assert session.email == "ada@example.com"

    def test_unknown_or_missing_token(self, clock):
        store = SessionStore(clock=clock)
        assert store.get("nope") is None
        assert store.get(None) is None

    def test_session_expires(self, clock):
        store = SessionStore(ttl_days=7, clock=clock)
        token = store.create("user-1", "ada@example.com")

        clock.advance(7 * SECONDS_PER_DAY - 1)
        assert store.get(token) is not None

        clock.advance(2)
        assert store.get(token) is None
        assert len(store) == 0

    def test_cleanup_removes_only_expired(self, clock):
        store = SessionStore(ttl_days=1, clock=clock)
        old = store.create("user-1", "a@example.com")
        clock.advance(SECONDS_PER_DAY / 2)
        fresh = store.create("user-2", "b@example.com")
        clock.advance(SECONDS_PER_DAY / 2 + 1)

        assert store.cleanup() == 1
        assert store.get(old) is None
        assert store.get(fresh) is not None

    def test_delete_user_sessions(self, clock):
        store = SessionStore(clock=clock)
        store.create("user-1", "a@example.com")
        store.create("user-1", "a@example.com")
        other = store.create("user-2", "b@example.com")

        assert store.delete_user_sessions("user-1") == 2
        assert len(store) == 1
        assert store.get(other) is not None


class TestLoginRateLimiter:
    """Tests for the fixed-window failed-login counter."""

    def test_allows_until_limit(self, clock):
        limiter = LoginRateLimiter(max_attempts=3, window_minutes=15, clock=clock)
        for _ in range(3):
            assert limiter.check("ada@example.com").allowed
            limiter.record_failure("ada@example.com")

        result = limiter.check("ada@example.com")
        assert not result.allowed
        assert result.is_hard_blocked
        assert result.attempts_remaining == 0

    def test_block_lifts_after_window(self, clock):
        limiter = LoginRateLimiter(max_attempts=2, window_minutes=15, clock=clock)
        limiter.check("k")
        limiter.record_failure("k")
        limiter.record_failure("k")
        assert not limiter.check("k").allowed

        clock.advance(15 * 60 + 1)
        result = limiter.check("k")
        assert result.allowed
        assert result.failed_attempts == 0

    def test_reset_after_success(self, clock):
        limiter = LoginRateLimiter(max_attempts=2, clock=clock)
        limiter.check("k")
        limiter.record_failure("k")
        limiter.reset("k")
        assert limiter.get_attempts("k") == 0

    def test_keys_are_independent(self, clock):
        limiter = LoginRateLimiter(max_attempts=1, clock=clock)
        limiter.check("a")
        limiter.record_failure("a")
        assert not limiter.check("a").allowed
        assert limiter.check("b").allowed

    def test_cleanup(self, clock):
        limiter = LoginRateLimiter(window_minutes=1, clock=clock)
        limiter.check("a")
        clock.advance(61)
        assert limiter.cleanup() == 1


class TestNotesLockStore:
    """Tests for per-card notes locks."""

    def test_acquire_and_conflict(self, clock):
        locks = NotesLockStore(timeout_seconds=300, clock=clock)
        assert locks.acquire("card-1", "user-1", "Ada").success

        result = locks.acquire("card-1", "user-2", "Grace")
        assert not result.success
        assert result.locked_by == "Ada"

    def test_holder_can_refresh(self, clock):
        locks = NotesLockStore(clock=clock)
        locks.acquire("card-1", "user-1", "Ada")
        clock.advance(100)
        assert locks.acquire("card-1", "user-1", "Ada").success
        assert locks.get("card-1").acquired_at == clock.now

    def test_expired_lock_can_be_taken(self, clock):
        locks = NotesLockStore(timeout_seconds=300, clock=clock)
        locks.acquire("card-1", "user-1", "Ada")
        clock.advance(301)
        assert locks.acquire("card-1", "user-2", "Grace").success

    def test_only_holder_releases(self, clock):
        locks = NotesLockStore(clock=clock)
        locks.acquire("card-1", "user-1", "Ada")
        assert not locks.release("card-1", "user-2")
        assert locks.release("card-1", "user-1")
        assert locks.get("card-1") is None

    def test_cleanup(self, clock):
        locks = NotesLockStore(timeout_seconds=10, clock=clock)
        locks.acquire("card-1", "user-1", "Ada")
        locks.acquire("card-2", "user-1", "Ada")
        clock.advance(11)
        assert locks.cleanup() == 2


class TestPresenceStore:
    """Tests for board presence tracking."""

    def test_update_and_list(self, clock):
        presence = PresenceStore(timeout_seconds=30, clock=clock)
        presence.update("user-1", "board-1")
        clock.advance(1)
        presence.update("user-2", "board-1", activity="voting")
        presence.update("user-3", "board-2")

        assert presence.get_active_user_ids("board-1") == ["user-1", "user-2"]
        assert presence.get_board_presence("board-1")[1].current_activity == "voting"

    def test_last_write_wins(self, clock):
        presence = PresenceStore(clock=clock)
        presence.update("user-1", "board-1", activity="reading")
        presence.update("user-1", "board-1", activity="writing")
        entries = presence.get_board_presence("board-1")
        assert len(entries) == 1
        assert entries[0].current_activity == "writing"

    def test_timed_out_users_are_hidden_and_cleaned(self, clock):
        presence = PresenceStore(timeout_seconds=30, clock=clock)
        presence.update("user-1", "board-1")
        clock.advance(31)

        assert presence.get_active_user_ids("board-1") == []
        assert presence.cleanup() == 1

    def test_users_nearing_timeout(self, clock):
        presence = PresenceStore(timeout_seconds=30, clock=clock)
        presence.update("user-1", "board-1")
        clock.advance(22)
        presence.update("user-2", "board-1")

        nearing = presence.get_users_nearing_timeout("board-1")
        assert [entry.user_id for entry in nearing] == ["user-1"]

    def test_remove(self, clock):
        presence = PresenceStore(clock=clock)
        presence.update("user-1", "board-1")
        presence.remove("user-1", "board-1")
        assert presence.get_board_presence("board-1") == []

    def test_entry_serializes_last_seen_in_ms(self, clock):
        presence = PresenceStore(clock=clock)
        entry = presence.update("user-1", "board-1")
        assert entry.to_dict()["last_seen"] == int(clock.now * 1000)
