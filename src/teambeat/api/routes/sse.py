"""
Live-update stream routes.

``GET /api/sse`` opens a Server-Sent Events stream. Each stream is
registered with the SSE manager under a fresh client id, backed by an
asyncio queue the manager writes frames into. ``POST /api/sse`` lets a
client move its stream between boards and report presence.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context, resolve_auth
from teambeat.api.deps import (
    get_broadcaster,
    get_live_broadcaster,
    get_presence_store,
    get_session_store,
    get_sse_manager,
    load_board_context,
)
from teambeat.api.schemas import SSEControl
from teambeat.auth.sessions import SessionStore
from teambeat.config import settings
from teambeat.db.connection import db_session, get_db
from teambeat.db.repositories import BoardRepository
from teambeat.models.db import generate_id
from teambeat.realtime.broadcast import Broadcaster
from teambeat.realtime.events import encode_named_event
from teambeat.realtime.manager import SSEClient, SSEManager
from teambeat.stores.presence import PresenceStore

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _announce_departure(
    broadcaster: Broadcaster, presence: PresenceStore, user_id: str, board_id: str
) -> None:
    """Drop the user's presence on a board and tell the others; runs outside a request."""
    presence.remove(user_id, board_id)
    with db_session() as db:
        board = BoardRepository(db).find_by_id(board_id)
        if board is not None:
            broadcaster.user_left(db, board, user_id)


async def _stream(
    queue: "asyncio.Queue[Optional[str]]",
    client_id: str,
    manager: SSEManager,
    presence: PresenceStore,
    broadcaster: Broadcaster,
) -> AsyncIterator[str]:
    yield encode_named_event("connected", {"client_id": client_id})
    try:
        while True:
            frame = await queue.get()
            if frame is None:
                break
            yield frame
    finally:
        client = manager.remove_client(client_id)
        if client is not None and client.board_id and client.user_id:
            try:
                _announce_departure(broadcaster, presence, client.user_id, client.board_id)
            except Exception:
                logger.exception(f"Failed to announce departure of SSE client {client_id}")


@router.get("")
async def open_stream(
    board_id: Optional[str] = Query(None),
    session_id: Optional[str] = Cookie(None, alias=settings.session_cookie_name),
    sessions: SessionStore = Depends(get_session_store),
    manager: SSEManager = Depends(get_sse_manager),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_live_broadcaster),
) -> StreamingResponse:
    """
    Open a live-update stream, optionally attached to a board straight away.

    The first frame is a named ``connected`` event carrying the client id
    that later control requests refer to. The database session used for
    the access check and the join announcement is closed before the stream
    starts; the stream itself holds no connection.

    Raises:
        HTTPException(401): If the caller is not logged in
        HTTPException(404/403): If board_id names a board the caller cannot see
    """
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
    client_id = generate_id()

    with db_session() as db:
        user_id = resolve_auth(db, sessions, session_id).user_id
        ctx = load_board_context(db, board_id, user_id) if board_id else None
        manager.add_client(
            client_id,
            queue.put_nowait,
            user_id=user_id,
            board_id=board_id,
            close=lambda: queue.put_nowait(None),
        )
        if ctx is not None:
            presence.update(user_id, board_id)
            broadcaster.user_joined(db, ctx.board, user_id)

    return StreamingResponse(
        _stream(queue, client_id, manager, presence, broadcaster),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _get_own_client(manager: SSEManager, client_id: str, user_id: str) -> SSEClient:
    client = manager.get_client(client_id)
    if client is None or client.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.post("")
async def control_stream(
    body: SSEControl,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    manager: SSEManager = Depends(get_sse_manager),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Control an open stream.

    Actions:
        join_board: attach the stream to ``board_id`` (leaving any other board)
        leave_board: detach the stream from its board
        presence_update: refresh the caller's presence with an activity

    Raises:
        HTTPException(400): If join_board has no board_id or the stream has no board
        HTTPException(404): If the client id is unknown or not the caller's
    """
    client = _get_own_client(manager, body.client_id, auth.user_id)

    if body.action == "join_board":
        if not body.board_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="board_id is required"
            )
        ctx = load_board_context(db, body.board_id, auth.user_id)
        previous = client.board_id
        manager.update_client_board(client.client_id, body.board_id, auth.user_id)
        if previous and previous != body.board_id:
            presence.remove(auth.user_id, previous)
            previous_board = BoardRepository(db).find_by_id(previous)
            if previous_board is not None:
                broadcaster.user_left(db, previous_board, auth.user_id)
        presence.update(auth.user_id, body.board_id)
        broadcaster.user_joined(db, ctx.board, auth.user_id)
        return {"success": True, "board_id": body.board_id}

    if body.action == "leave_board":
        board_id = manager.leave_board(client.client_id)
        if board_id:
            presence.remove(auth.user_id, board_id)
            board = BoardRepository(db).find_by_id(board_id)
            if board is not None:
                broadcaster.user_left(db, board, auth.user_id)
        return {"success": True, "board_id": board_id}

    if not client.board_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Stream is not attached to a board"
        )
    ctx = load_board_context(db, client.board_id, auth.user_id)
    presence.update(auth.user_id, client.board_id, body.activity)
    broadcaster.presence_update(db, ctx.board, auth.user_id, body.activity)
    return {"success": True, "board_id": client.board_id}
