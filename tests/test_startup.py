"""Tests for application startup checks and readiness."""

from unittest.mock import MagicMock, patch

import pytest

from teambeat.startup import (
    StartupCheckError,
    check_database_connection,
    check_database_schema,
    check_readiness,
    run_all_startup_checks,
    startup_metrics,
)


def _session_returning(value):
    ctx = MagicMock()
    ctx.__enter__ = MagicMock(return_value=ctx)
    ctx.__exit__ = MagicMock(return_value=False)
    result = MagicMock()
    result.scalar = MagicMock(return_value=value)
    ctx.execute = MagicMock(return_value=result)
    return ctx


class TestDatabaseConnectionCheck:
    def test_success(self):
        with patch("teambeat.startup.SessionLocal", return_value=_session_returning(1)):
            # Should not raise
            check_database_connection()

    def test_unexpected_result(self):
        with patch("teambeat.startup.SessionLocal", return_value=_session_returning(0)):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_connection()
        assert "unexpected result" in str(exc_info.value)

    def test_connection_refused(self):
        with patch(
            "teambeat.startup.SessionLocal",
            side_effect=Exception("Connection refused"),
        ):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_connection()

        assert "Cannot connect" in str(exc_info.value)
        assert "not running" in exc_info.value.hint

    def test_sqlite_file_not_openable(self):
        with patch(
            "teambeat.startup.SessionLocal",
            side_effect=Exception("unable to open database file"),
        ):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_connection()
        assert "TEAMBEAT_DATABASE_URL" in exc_info.value.hint


class TestDatabaseSchemaCheck:
    def test_missing_tables(self):
        inspector = MagicMock()
        inspector.get_table_names.return_value = ["users"]
        with patch("teambeat.startup.inspect", return_value=inspector):
            with pytest.raises(StartupCheckError) as exc_info:
                check_database_schema()
        assert "boards" in exc_info.value.message
        assert "init-db" in exc_info.value.hint

    def test_all_tables_present(self, test_engine):
        with patch("teambeat.startup.engine", test_engine):
            check_database_schema()


class TestRunAllStartupChecks:
    def test_failure_exits(self, monkeypatch):
        monkeypatch.setattr(startup_metrics, "checks_passed", False)
        with patch(
            "teambeat.startup.check_database_connection",
            side_effect=StartupCheckError("Cannot connect to database"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                run_all_startup_checks()
        assert exc_info.value.code == 1
        assert startup_metrics.checks_passed is False

    def test_success_records_metrics(self, monkeypatch):
        monkeypatch.setattr(startup_metrics, "checks_passed", False)
        with patch("teambeat.startup.check_database_connection"), patch(
            "teambeat.startup.check_database_schema"
        ):
            run_all_startup_checks()
        assert startup_metrics.checks_passed is True
        assert startup_metrics.total_duration_ms is not None


class TestReadiness:
    def test_not_ready_without_database(self, monkeypatch):
        monkeypatch.setattr(startup_metrics, "checks_passed", True)
        with patch("teambeat.startup.SessionLocal", side_effect=Exception("down")):
            is_ready, details = check_readiness()
        assert not is_ready
        assert details["database"] == "unhealthy"

    def test_ready(self, monkeypatch):
        monkeypatch.setattr(startup_metrics, "checks_passed", True)
        with patch("teambeat.startup.SessionLocal", return_value=_session_returning(1)):
            is_ready, details = check_readiness()
        assert is_ready
        assert details["startup_completed"] is True
