"""
Startup dependency checks for the TeamBeat server.

Validates the database before the application starts serving requests.
Fails fast with clear, actionable error messages when requirements aren't met.
"""

import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import inspect, text

from teambeat.config import settings
from teambeat.db.connection import SessionLocal, engine

REQUIRED_TABLES = frozenset(
    {"users", "board_series", "series_members", "boards", "scenes", "columns", "cards", "votes"}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StartupMetrics:
    """Metrics collected during startup checks."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    database_check_ms: Optional[float] = None
    schema_check_ms: Optional[float] = None
    checks_passed: bool = False


# Global startup metrics (populated during startup)
startup_metrics = StartupMetrics(started_at=_utcnow())


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\n❌ STARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\n💡 Hint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_database_connection() -> None:
    """
    Verify the database is reachable and answers queries.

    Raises:
        StartupCheckError: If the connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()
        if "unable to open database file" in error_str:
            hint = (
                "SQLite could not open the database file.\n"
                "  - Check that the directory in TEAMBEAT_DATABASE_URL exists\n"
                "  - Check write permissions on that directory"
            )
        elif "could not connect" in error_str or "connection refused" in error_str:
            hint = "The database server is not running or not reachable"
        else:
            hint = f"Check TEAMBEAT_DATABASE_URL in .env\nError: {str(e)}"
        raise StartupCheckError(
            f"Cannot connect to database\nURL: {engine.url.render_as_string(hide_password=True)}",
            hint,
        ) from e


def check_database_schema() -> None:
    """
    Verify the tables exist.

    Raises:
        StartupCheckError: If any required table is missing
    """
    present = set(inspect(engine).get_table_names())
    missing = sorted(REQUIRED_TABLES - present)
    if missing:
        raise StartupCheckError(
            f"Database schema is missing tables: {', '.join(missing)}",
            "Create the schema: teambeat init-db\n  Or run migrations: alembic upgrade head",
        )


def run_all_startup_checks() -> None:
    """
    Execute all startup dependency checks.

    Raises:
        SystemExit: If any check fails, after printing the error
    """
    startup_start = time.time()
    checks = [
        ("Database Connection", check_database_connection, "database_check_ms"),
        ("Database Schema", check_database_schema, "schema_check_ms"),
    ]

    print("\n" + "=" * 70)
    print(f"🚀 Starting TeamBeat ({settings.environment}) - Running Startup Checks")
    print("=" * 70 + "\n")

    for check_name, check_func, metric_name in checks:
        check_start = time.time()
        try:
            print(f"  Checking {check_name}...", end=" ", flush=True)
            check_func()
            check_duration = (time.time() - check_start) * 1000
            setattr(startup_metrics, metric_name, check_duration)
            print(f"✅ PASS ({check_duration:.1f}ms)")
        except StartupCheckError as e:
            check_duration = (time.time() - check_start) * 1000
            setattr(startup_metrics, metric_name, check_duration)
            print(f"❌ FAIL ({check_duration:.1f}ms)")
            print(str(e))
            sys.exit(1)

    startup_metrics.completed_at = _utcnow()
    startup_metrics.total_duration_ms = (time.time() - startup_start) * 1000
    startup_metrics.checks_passed = True

    print("\n" + "=" * 70)
    print(
        f"✅ All startup checks passed - Server is ready ({startup_metrics.total_duration_ms:.1f}ms)"
    )
    print("=" * 70 + "\n")


def check_readiness() -> tuple[bool, dict]:
    """
    Quick readiness check for load balancer probes.

    Returns:
        (is_ready, details) where details holds ready, database,
        startup_completed and uptime_seconds
    """
    db_ready = False
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
            db_ready = True
    except Exception:
        db_ready = False

    is_ready = db_ready and startup_metrics.checks_passed
    return is_ready, {
        "ready": is_ready,
        "database": "healthy" if db_ready else "unhealthy",
        "startup_completed": startup_metrics.checks_passed,
        "uptime_seconds": (_utcnow() - startup_metrics.started_at).total_seconds(),
    }
