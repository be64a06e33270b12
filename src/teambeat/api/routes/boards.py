"""
Board API routes.

Board CRUD, setting a board up from a template or another board,
switching the current scene, the meeting timer, presence,
present-mode data and facilitator vote controls.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import (
    BoardContext,
    get_broadcaster,
    get_notes_locks,
    get_presence_store,
    load_board_context,
    not_found,
)
from teambeat.api.payloads import board_payload, columns_payload, scene_payload
from teambeat.api.schemas import (
    BoardClone,
    BoardCreate,
    BoardUpdate,
    IncreaseAllocation,
    PresenceUpdate,
    SceneChange,
    TemplateSetup,
    TimerExtend,
    TimerStart,
)
from teambeat.db.connection import get_db
from teambeat.db.repositories import (
    BoardRepository,
    SceneRepository,
    SeriesRepository,
    VoteRepository,
)
from teambeat.permissions import can_manage_board, votes_visible
from teambeat.realtime.broadcast import Broadcaster
from teambeat.services.board_templates import get_template_by_id
from teambeat.services.cards import build_all_cards_data
from teambeat.services.present_mode import build_present_mode_data
from teambeat.services.presence import build_presence_data
from teambeat.services.voting import build_complete_voting_response, build_voting_stats
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_board(
    body: BoardCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Create a draft board in a series.

    Raises:
        HTTPException(404): If the series does not exist
        HTTPException(403): Unless the caller facilitates or administers the series
    """
    series_repo = SeriesRepository(db)
    if series_repo.find_by_id(body.series_id) is None:
        raise not_found("Series")
    role = series_repo.get_user_role_in_series(auth.user_id, body.series_id)
    if not can_manage_board(role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only facilitators and admins can create boards",
        )
    board = BoardRepository(db).create_board(
        series_id=body.series_id,
        name=body.name,
        meeting_date=body.meeting_date,
        blame_free_mode=body.blame_free_mode,
        voting_allocation=body.voting_allocation,
    )
    logger.info(f"Board {board.id} created in series {body.series_id}")
    return {"success": True, "board": board_payload(board)}


@router.get("/{board_id}")
async def get_board(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
) -> dict[str, Any]:
    """
    Get a board with everything the board screen needs.

    ``columns`` holds the columns visible in the current scene and
    ``all_columns`` every column. Cards carry vote totals only while the
    current scene reveals votes.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    details = BoardRepository(db).get_board_with_details(board_id)
    presence.update(auth.user_id, board_id)

    board = details.board
    scene = details.current_scene
    return {
        "success": True,
        "board": board_payload(board),
        "columns": columns_payload(details.columns),
        "all_columns": columns_payload(details.all_columns),
        "scenes": [scene_payload(s) for s in details.scenes],
        "current_scene": scene_payload(scene) if scene else None,
        "hidden_columns_by_scene": details.hidden_columns_by_scene,
        "cards": build_all_cards_data(db, board, scene),
        "timer": BoardRepository.timer_state(board),
        "user_role": ctx.role,
    }


@router.put("/{board_id}")
async def update_board(
    board_id: str,
    body: BoardUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Update board settings and/or status (facilitators and admins)."""
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("update board settings")

    boards = BoardRepository(db)
    fields = body.model_dump(exclude_unset=True, exclude={"status"})
    board = ctx.board
    if fields:
        board = boards.update_board_settings(board_id, **fields)
    if body.status is not None:
        board = boards.update_board_status(board_id, body.status.value)

    payload = board_payload(board)
    broadcaster.board_updated(board_id, payload)
    return {"success": True, "board": payload}


@router.delete("/{board_id}")
async def delete_board(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Delete a board; its scenes, columns, cards and votes go with it."""
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("delete boards")
    BoardRepository(db).delete_board(board_id)
    logger.info(f"Board {board_id} deleted by {auth.user_id}")
    return {"success": True}


# ===== Configuration =====


def _require_empty(boards: BoardRepository, board_id: str, detail: str) -> None:
    if boards.has_configuration(board_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _publish_configuration(
    ctx: BoardContext, columns: list, scenes: list, broadcaster: Broadcaster
) -> dict[str, Any]:
    board = ctx.board
    payload = {
        "success": True,
        "board": board_payload(board),
        "columns": columns_payload(columns),
        "scenes": [scene_payload(scene) for scene in scenes],
    }
    broadcaster.columns_updated(board.id, payload["columns"])
    broadcaster.board_updated(board.id, payload["board"])
    return payload


@router.post("/{board_id}/setup-template")
async def setup_template(
    board_id: str,
    body: TemplateSetup,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Configure an empty board from a template's columns and scenes.

    Raises:
        HTTPException(404): If the template does not exist
        HTTPException(400): If the board already has columns or scenes
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("set up boards")
    template = get_template_by_id(body.template)
    if template is None:
        raise not_found("Template")
    boards = BoardRepository(db)
    _require_empty(boards, board_id, "Board already has configuration")

    columns, scenes = boards.apply_template(board_id, template)
    db.refresh(ctx.board)
    logger.info(f"Board {board_id} set up from template {template.id}")
    return _publish_configuration(ctx, columns, scenes, broadcaster)


@router.post("/{board_id}/clone")
async def clone_board(
    board_id: str,
    body: BoardClone,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Copy another board's columns and scenes into an empty board.

    Raises:
        HTTPException(404): If the source board does not exist
        HTTPException(403): If the caller cannot see the source board
        HTTPException(400): If the target board already has columns or scenes
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("set up boards")
    boards = BoardRepository(db)
    source = boards.find_by_id(body.source_id)
    if source is None:
        raise not_found("Source board")
    if SeriesRepository(db).get_user_role_in_series(auth.user_id, source.series_id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to source board"
        )
    _require_empty(boards, board_id, "Target board already has configuration")

    columns, scenes = boards.clone_configuration(source.id, board_id)
    db.refresh(ctx.board)
    logger.info(f"Board {board_id} cloned from {source.id}")
    return _publish_configuration(ctx, columns, scenes, broadcaster)


@router.get("/{board_id}/clone-sources")
async def get_clone_sources(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Boards whose configuration the caller could copy into this one."""
    ctx = load_board_context(db, board_id, auth.user_id)
    series_ids = [s["id"] for s in SeriesRepository(db).find_series_by_user(auth.user_id)]
    return {
        "success": True,
        **BoardRepository(db).find_clone_sources(ctx.board, series_ids),
    }


# ===== Current scene =====


@router.put("/{board_id}/scene")
async def change_scene(
    board_id: str,
    body: SceneChange,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Switch the board's current scene.

    Everyone is told about the switch; if the new scene reveals votes, the
    vote totals follow right after.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("change scenes")

    scene = SceneRepository(db).find_by_id(body.scene_id)
    if scene is None or scene.board_id != board_id:
        raise not_found("Scene")

    board = BoardRepository(db).update_board_scene(board_id, scene.id)
    payload = scene_payload(scene)
    broadcaster.scene_changed(db, board, scene, payload)
    if votes_visible(scene, board.status):
        broadcaster.vote_updates_for_scene(db, board, scene)
    return {"success": True, "board": board_payload(board), "scene": payload}


# ===== Timer =====


def _timer_response(board, broadcaster: Broadcaster) -> dict[str, Any]:
    timer = BoardRepository.timer_state(board)
    broadcaster.timer_update(board.id, timer)
    return {"success": True, **timer}


@router.post("/{board_id}/timer")
async def start_timer(
    board_id: str,
    body: TimerStart,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("control the timer")
    board = BoardRepository(db).start_timer(board_id, body.duration)
    return _timer_response(board, broadcaster)


@router.put("/{board_id}/timer")
async def extend_timer(
    board_id: str,
    body: TimerExtend,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Add or remove time on the running timer.

    Raises:
        HTTPException(400): If no timer is running
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("control the timer")
    board = BoardRepository(db).extend_timer(board_id, body.add_seconds)
    if board is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No timer is running"
        )
    return _timer_response(board, broadcaster)


@router.delete("/{board_id}/timer")
async def stop_timer(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("control the timer")
    board = BoardRepository(db).stop_timer(board_id)
    return _timer_response(board, broadcaster)


# ===== Presence =====


@router.post("/{board_id}/presence")
async def update_presence(
    board_id: str,
    body: PresenceUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    presence.update(auth.user_id, board_id, body.activity)
    broadcaster.presence_update(db, ctx.board, auth.user_id, body.activity)
    return {"success": True}


@router.get("/{board_id}/presence")
async def get_presence(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    return {"success": True, **build_presence_data(db, ctx.board, presence)}


# ===== Present mode =====


@router.get("/{board_id}/present-data")
async def get_present_data(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
) -> dict[str, Any]:
    """
    The caller's present-mode view.

    Raises:
        HTTPException(404): If the board has no current scene
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    if ctx.scene is None:
        raise not_found("Current scene")
    data = build_present_mode_data(db, board_id, auth.user_id, notes_locks)
    return {"success": True, **data}


# ===== Votes =====


@router.get("/{board_id}/user-votes")
async def get_user_votes(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
) -> dict[str, Any]:
    """The caller's votes and board voting stats, plus totals when revealed."""
    ctx = load_board_context(db, board_id, auth.user_id)
    data = build_complete_voting_response(
        db,
        ctx.board,
        auth.user_id,
        presence,
        include_all_votes=votes_visible(ctx.scene, ctx.board.status),
    )
    return {"success": True, **data}


@router.post("/{board_id}/votes/clear")
async def clear_votes(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Delete every vote on the board and set the allocation to zero.

    Facilitators then hand out votes again with increase-allocation.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("clear votes")

    cleared = VoteRepository(db).clear_board_votes(board_id)
    board = BoardRepository(db).update_board_settings(board_id, voting_allocation=0)
    stats = build_voting_stats(db, board, presence)

    payload = board_payload(board)
    broadcaster.board_updated(board_id, payload)
    broadcaster.emit(board_id, "voting_stats_updated", voting_stats=stats, votes_cleared=True)
    logger.info(f"Cleared {cleared} votes on board {board_id}")
    return {"success": True, "votes_cleared": cleared, "board": payload, "voting_stats": stats}


@router.post("/{board_id}/votes/increase-allocation")
async def increase_allocation(
    board_id: str,
    body: IncreaseAllocation,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("change the vote allocation")

    board = BoardRepository(db).update_board_settings(
        board_id, voting_allocation=ctx.board.voting_allocation + body.amount
    )
    stats = build_voting_stats(db, board, presence)
    payload = board_payload(board)
    broadcaster.board_updated(board_id, payload)
    broadcaster.emit(board_id, "voting_stats_updated", voting_stats=stats)
    return {"success": True, "board": payload, "voting_stats": stats}


@router.get("/{board_id}/voting-stats")
async def get_voting_stats(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    return {"success": True, "voting_stats": build_voting_stats(db, ctx.board, presence)}
