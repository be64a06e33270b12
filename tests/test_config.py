"""
Tests for configuration management.
"""

from pathlib import Path

import pytest

from teambeat.config import Settings, get_xdg_state_dir


@pytest.fixture(autouse=True)
def clear_teambeat_env(monkeypatch):
    """Ensure TEAMBEAT_* overrides from the environment don't affect these tests."""
    for name in ("TEAMBEAT_DATABASE_URL", "TEAMBEAT_LOG_DIR", "TEAMBEAT_LOGIN_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    yield


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///./teambeat.db"
        assert settings.is_sqlite
        assert settings.session_cookie_name == "session"
        assert settings.login_max_attempts == 10
        assert settings.login_window_minutes == 15
        assert settings.presence_timeout_seconds == 30
        assert settings.notes_lock_timeout_seconds == 300

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("TEAMBEAT_DATABASE_URL", "postgresql://u:p@db/teambeat")
        monkeypatch.setenv("TEAMBEAT_LOGIN_MAX_ATTEMPTS", "3")
        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://u:p@db/teambeat"
        assert not settings.is_sqlite
        assert settings.login_max_attempts == 3

    def test_explicit_log_dir(self):
        settings = Settings(_env_file=None, log_dir="~/teambeat-logs")
        assert settings.log_directory == Path("~/teambeat-logs").expanduser()


class TestXdgStateDir:
    def test_uses_xdg_state_home(self, monkeypatch):
        monkeypatch.setenv("XDG_STATE_HOME", "/var/state")
        assert get_xdg_state_dir() == str(Path("/var/state") / "teambeat" / "logs")

    def test_falls_back_to_home(self, monkeypatch):
        monkeypatch.delenv("XDG_STATE_HOME", raising=False)
        monkeypatch.setenv("HOME", "/home/ada")
        assert get_xdg_state_dir() == str(
            Path("/home/ada") / ".local" / "state" / "teambeat" / "logs"
        )

    def test_without_home(self, monkeypatch):
        monkeypatch.delenv("XDG_STATE_HOME", raising=False)
        monkeypatch.delenv("HOME", raising=False)
        assert get_xdg_state_dir() == "./logs"
