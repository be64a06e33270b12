"""
TeamBeat Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables (prefixed with TEAMBEAT_)
and an optional .env file.
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for TeamBeat logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/teambeat if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/teambeat if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "teambeat" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "teambeat" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TEAMBEAT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./teambeat.db"
    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    public_url: str = "http://localhost:5173"  # Used to build reset/verify links

    # Sessions
    session_ttl_days: int = 7
    session_cleanup_interval_seconds: int = 3600
    session_cookie_name: str = "session"

    # Presence
    presence_timeout_seconds: int = 30
    presence_ping_interval_seconds: int = 20
    presence_cleanup_interval_seconds: int = 60

    # Live updates
    sse_heartbeat_interval_seconds: int = 30
    sse_stale_timeout_seconds: int = 300

    # Tokens and locks
    password_reset_ttl_minutes: int = 60
    email_verification_ttl_hours: int = 24
    notes_lock_timeout_seconds: int = 300

    # Login rate limiting
    login_max_attempts: int = 10
    login_window_minutes: int = 15

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Global settings instance
settings = Settings()
