"""
Logging configuration for TeamBeat.

Routes INFO/DEBUG to stdout and WARNING+ to stderr, and optionally writes
a rotating log file per process context (``api.log``, ``cli.log``).
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from teambeat.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured_context: Optional[str] = None


class _MaxLevelFilter(logging.Filter):
    """Only pass records strictly below a level."""

    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def setup_logging(context: str = "api", level: Optional[str] = None) -> None:
    """
    Configure root logging for a process context.

    Calling this more than once for the same context is a no-op, so both the
    FastAPI lifespan and CLI commands can call it unconditionally.

    Args:
        context: Name of the running context, used for the log file name
        level: Override for settings.log_level

    Raises:
        PermissionError: If the log directory cannot be created
    """
    global _configured_context
    if _configured_context == context:
        return

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    if settings.log_console_enabled:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(formatter)
        stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
        root.addHandler(stdout_handler)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # uvicorn access logs are noisy with long-lived SSE streams
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured_context = context
