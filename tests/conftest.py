"""
Pytest configuration and fixtures for TeamBeat tests.

This module provides shared fixtures for testing database models, repositories,
the in-process stores and the API.
"""

from typing import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from teambeat.auth.password import hash_password
from teambeat.db.connection import enable_sqlite_foreign_keys
from teambeat.db.repositories import (
    BoardRepository,
    ColumnRepository,
    SceneRepository,
    SeriesRepository,
    UserRepository,
)
from teambeat.models.db import Base, Board, BoardSeries, Column, Scene, User
from teambeat.permissions import BoardStatus, SeriesRole
from teambeat.scene_flags import SceneMode

TEST_PASSWORD = "correct-horse"


class FakeClock:
    """Manually advanced clock for the in-process stores."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
    )
    # Cascading deletes rely on the database
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test gets a fresh session with a transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection)()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client for FastAPI with database dependency override."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from teambeat.api.app import app, install_stores
    from teambeat.db.connection import get_db

    # Override the get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # Fresh sessions, presence, locks and SSE clients for every test
    install_stores(app)

    # Disable lifespan startup checks for testing
    with patch("teambeat.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def login(api_client) -> Callable[[User], str]:
    """
    Return a helper that logs the test client in as a user.

    The session is created directly in the app's session store, skipping
    bcrypt and the login rate limiter.
    """
    from teambeat.config import settings

    def _login(user: User) -> str:
        token = api_client.app.state.sessions.create(user.id, user.email)
        api_client.cookies.set(settings.session_cookie_name, token)
        return token

    return _login


def _create_user(db_session: Session, email: str, name: str, **kwargs) -> User:
    user = UserRepository(db_session).create_user(
        email=email, password_hash=hash_password(TEST_PASSWORD), name=name, **kwargs
    )
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create the user who runs the sample series (its admin)."""
    return _create_user(db_session, "ada@example.com", "Ada Lovelace")


@pytest.fixture
def sample_member(db_session: Session, sample_series: BoardSeries) -> User:
    """Create a plain member of the sample series."""
    user = _create_user(db_session, "grace@example.com", "Grace Hopper")
    SeriesRepository(db_session).add_member(
        sample_series.id, user.id, SeriesRole.MEMBER.value
    )
    db_session.commit()
    return user


@pytest.fixture
def sample_outsider(db_session: Session) -> User:
    """Create a user who belongs to no series."""
    return _create_user(db_session, "eve@example.com", "Eve Outsider")


@pytest.fixture
def sample_series(db_session: Session, sample_user: User) -> BoardSeries:
    """Create a sample series administered by sample_user."""
    series = SeriesRepository(db_session).create_series(
        name="Platform Team", creator_id=sample_user.id, description="Weekly retro"
    )
    db_session.commit()
    db_session.refresh(series)
    return series


@pytest.fixture
def sample_board(db_session: Session, sample_series: BoardSeries) -> Board:
    """Create an active board in the sample series."""
    boards = BoardRepository(db_session)
    board = boards.create_board(
        series_id=sample_series.id, name="Sprint 42", voting_allocation=3
    )
    boards.update_board_status(board.id, BoardStatus.ACTIVE.value)
    db_session.commit()
    db_session.refresh(board)
    return board


@pytest.fixture
def sample_columns(db_session: Session, sample_board: Board) -> list[Column]:
    """Create two columns on the sample board."""
    columns = ColumnRepository(db_session)
    created = [
        columns.create_column(sample_board.id, "Went well"),
        columns.create_column(sample_board.id, "To improve"),
    ]
    db_session.commit()
    return created


@pytest.fixture
def sample_scene(db_session: Session, sample_board: Board, sample_columns) -> Scene:
    """Create a brainstorming scene and make it the board's current scene."""
    scene = SceneRepository(db_session).create_scene(
        sample_board.id, "Brainstorm", SceneMode.COLUMNS.value
    )
    BoardRepository(db_session).update_board_scene(sample_board.id, scene.id)
    db_session.commit()
    db_session.refresh(sample_board)
    return scene


@pytest.fixture
def make_scene(db_session: Session, sample_board: Board) -> Callable[..., Scene]:
    """Return a helper creating a scene on the sample board, optionally current."""

    def _make(title: str, mode: str, flags=None, current: bool = False) -> Scene:
        scene = SceneRepository(db_session).create_scene(
            sample_board.id, title, mode, flags=flags
        )
        if current:
            BoardRepository(db_session).update_board_scene(sample_board.id, scene.id)
        db_session.commit()
        db_session.refresh(sample_board)
        return scene

    return _make


@pytest.fixture
def user_password() -> str:
    """Plaintext password of every sample user."""
    return TEST_PASSWORD
