"""
Shared FastAPI dependencies and loaders.

The in-process stores live on ``app.state`` and are handed to routes through
the get_* dependencies below. BoardContext bundles what most board routes
check before mutating: the board, its current scene and the caller's role
in the board's series.
"""

from dataclasses import dataclass
from typing import Generator, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from teambeat.auth.sessions import SessionStore
from teambeat.db.connection import get_db
from teambeat.db.repositories import (
    BoardRepository,
    CardRepository,
    ColumnRepository,
    SceneRepository,
    SeriesRepository,
)
from teambeat.models.db import Board, Card, Scene
from teambeat.permissions import can_manage_board, is_allowed, is_series_admin
from teambeat.realtime.broadcast import Broadcaster
from teambeat.realtime.manager import SSEManager
from teambeat.scene_flags import SceneFlag
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore
from teambeat.stores.rate_limit import LoginRateLimiter

# ===== Stores =====


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_presence_store(request: Request) -> PresenceStore:
    return request.app.state.presence


def get_notes_locks(request: Request) -> NotesLockStore:
    return request.app.state.notes_locks


def get_login_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_limiter


def get_sse_manager(request: Request) -> SSEManager:
    return request.app.state.sse_manager


def get_broadcaster(
    db: Session = Depends(get_db),
    manager: SSEManager = Depends(get_sse_manager),
    presence: PresenceStore = Depends(get_presence_store),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
) -> Generator[Broadcaster, None, None]:
    """
    Request-scoped broadcaster.

    Events are held while the route runs. Once it returns, the request's
    transaction is committed and the events are sent; a route that raises
    sends nothing.
    """
    broadcaster = Broadcaster(manager, presence, notes_locks, deferred=True)
    try:
        yield broadcaster
    except Exception:
        broadcaster.discard()
        raise
    db.commit()
    broadcaster.flush()


def get_live_broadcaster(
    manager: SSEManager = Depends(get_sse_manager),
    presence: PresenceStore = Depends(get_presence_store),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
) -> Broadcaster:
    """Broadcaster that sends straight away, for work outside a request transaction."""
    return Broadcaster(manager, presence, notes_locks)


# ===== Board access =====


@dataclass
class BoardContext:
    """A board as seen by one user: its current scene and the user's role."""

    board: Board
    scene: Optional[Scene]
    role: str

    @property
    def is_manager(self) -> bool:
        return can_manage_board(self.role)

    @property
    def is_admin(self) -> bool:
        return is_series_admin(self.role)

    def allows(self, capability: SceneFlag) -> bool:
        return is_allowed(self.scene, self.board.status, capability)

    def require_manager(self, action: str = "perform this action") -> None:
        """
        Raises:
            HTTPException(403): Unless the user is a facilitator or admin
        """
        if not self.is_manager:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only facilitators and admins can {action}",
            )

    def require(self, capability: SceneFlag, detail: str) -> None:
        """
        Raises:
            HTTPException(403): If the current scene does not allow the capability
        """
        if not self.allows(capability):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def load_board_context(db: Session, board_id: str, user_id: str) -> BoardContext:
    """
    Load a board, its current scene and the caller's series role.

    Raises:
        HTTPException(404): If the board does not exist
        HTTPException(403): If the user is not a member of the board's series
    """
    board = BoardRepository(db).find_by_id(board_id)
    if board is None:
        raise not_found("Board")
    role = SeriesRepository(db).get_user_role_in_series(user_id, board.series_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    scene = (
        SceneRepository(db).find_by_id(board.current_scene_id)
        if board.current_scene_id
        else None
    )
    return BoardContext(board=board, scene=scene, role=role)


def load_card_context(db: Session, card_id: str, user_id: str) -> Tuple[Card, BoardContext]:
    """
    Load a card together with its board's context.

    Raises:
        HTTPException(404): If the card does not exist
        HTTPException(403): If the user is not a member of the board's series
    """
    cards = CardRepository(db)
    card = cards.find_by_id(card_id)
    if card is None:
        raise not_found("Card")
    board_id = cards.find_board_id(card_id)
    return card, load_board_context(db, board_id, user_id)


def require_visible_column(db: Session, ctx: BoardContext, column_id: str) -> None:
    """
    Raises:
        HTTPException(400): If the board has no current scene, or the column
            is not one of the board's columns shown in it
    """
    if ctx.scene is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No active scene")
    visible = ColumnRepository(db).get_visible_column_ids(ctx.board.id, ctx.scene.id)
    if column_id not in visible:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Column must be visible in current scene",
        )
