"""
Database connection management for TeamBeat.

Provides database session management, connection handling, and transaction support.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from teambeat.config import settings

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ignores ON DELETE CASCADE unless the pragma is set per connection,
    and board deletion relies on the database to remove scenes, columns,
    cards and votes.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Create engine instance (singleton pattern)
if settings.is_sqlite:
    engine = create_engine(
        settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )
    enable_sqlite_foreign_keys(engine)
else:
    engine = create_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    The whole request runs in one transaction: it is committed when the
    route returns and rolled back if the route raises.

    Yields:
        Session: A SQLAlchemy session

    Example (FastAPI):
        >>> @router.get("/boards/{board_id}")
        >>> async def get_board(board_id: str, db: Session = Depends(get_db)):
        >>>     return BoardRepository(db).get(board_id)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Used by the CLI and background tasks.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     user = UserRepository(db).find_by_email("ada@example.com")
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def supports_savepoints(session: Session) -> bool:
    """
    Whether the session's driver handles SAVEPOINT reliably.

    pysqlite manages BEGIN itself, which breaks nested transactions unless
    the driver is reconfigured, so SQLite is treated as unsupported.
    """
    return session.get_bind().dialect.name != "sqlite"


@contextmanager
def with_transaction(session: Session) -> Generator[Session, None, None]:
    """
    Run a multi-statement mutation as atomically as the driver allows.

    On drivers with SAVEPOINT support the block runs in a nested transaction,
    so a failure undoes only the block. Otherwise the statements run
    sequentially in the surrounding transaction and are flushed at the end;
    referential integrity is still enforced by foreign keys.

    Args:
        session: Active SQLAlchemy session

    Yields:
        Session: The same session

    Example:
        >>> with with_transaction(db) as tx:
        >>>     for column_id, seq in orders:
        >>>         tx.query(Column).filter(Column.id == column_id).update({"seq": seq})
    """
    if supports_savepoints(session):
        with session.begin_nested():
            yield session
        return

    logger.debug("Driver without savepoint support; running statements sequentially")
    yield session
    session.flush()


def init_db() -> None:
    """
    Initialize the database.

    This function can be used to create tables programmatically,
    but in production we use Alembic migrations instead.

    Note:
        Prefer using Alembic migrations: `alembic upgrade head`
    """
    from teambeat.models.db import Base

    Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
