"""
Column API routes, including per-scene column visibility.

All column changes are made by facilitators and admins and are followed by
a columns_updated broadcast carrying the board's full column list.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import get_broadcaster, load_board_context, not_found
from teambeat.api.payloads import columns_payload
from teambeat.api.schemas import (
    ColumnCreate,
    ColumnReorder,
    ColumnResponse,
    ColumnUpdate,
    SceneColumnsUpdate,
)
from teambeat.db.connection import get_db
from teambeat.db.repositories import ColumnRepository, SceneRepository
from teambeat.realtime.broadcast import Broadcaster

router = APIRouter()


def _broadcast_columns(db: Session, board_id: str, broadcaster: Broadcaster) -> list:
    columns = columns_payload(ColumnRepository(db).find_by_board(board_id))
    broadcaster.columns_updated(board_id, columns)
    return columns


def _get_board_column(db: Session, board_id: str, column_id: str):
    column = ColumnRepository(db).find_by_id(column_id)
    if column is None or column.board_id != board_id:
        raise not_found("Column")
    return column


@router.post("/{board_id}/columns", status_code=status.HTTP_201_CREATED)
async def create_column(
    board_id: str,
    body: ColumnCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage columns")
    column = ColumnRepository(db).create_column(
        board_id=board_id,
        title=body.title,
        description=body.description,
        default_appearance=body.default_appearance,
    )
    columns = _broadcast_columns(db, board_id, broadcaster)
    return {
        "success": True,
        "column": ColumnResponse.model_validate(column).model_dump(),
        "columns": columns,
    }


@router.put("/{board_id}/columns/reorder")
async def reorder_columns(
    board_id: str,
    body: ColumnReorder,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Renumber columns in the given order, starting at 1."""
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage columns")
    ColumnRepository(db).reorder_columns(
        board_id, [(column_id, seq) for seq, column_id in enumerate(body.column_ids, start=1)]
    )
    return {"success": True, "columns": _broadcast_columns(db, board_id, broadcaster)}


@router.put("/{board_id}/columns/{column_id}")
async def update_column(
    board_id: str,
    column_id: str,
    body: ColumnUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage columns")
    _get_board_column(db, board_id, column_id)
    column = ColumnRepository(db).update_column(
        column_id, **body.model_dump(exclude_unset=True)
    )
    columns = _broadcast_columns(db, board_id, broadcaster)
    return {
        "success": True,
        "column": ColumnResponse.model_validate(column).model_dump(),
        "columns": columns,
    }


@router.delete("/{board_id}/columns/{column_id}")
async def delete_column(
    board_id: str,
    column_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Delete a column and, through the database cascade, its cards."""
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage columns")
    _get_board_column(db, board_id, column_id)
    ColumnRepository(db).delete_column(column_id)
    return {"success": True, "columns": _broadcast_columns(db, board_id, broadcaster)}


@router.put("/{board_id}/scenes/{scene_id}/columns")
async def update_scene_columns(
    board_id: str,
    scene_id: str,
    body: SceneColumnsUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Show or hide columns within one scene.

    Raises:
        HTTPException(404): If the scene or any column is not on this board
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage columns")
    scene = SceneRepository(db).find_by_id(scene_id)
    if scene is None or scene.board_id != board_id:
        raise not_found("Scene")

    column_repo = ColumnRepository(db)
    for entry in body.columns:
        _get_board_column(db, board_id, entry.column_id)
        column_repo.set_scene_visibility(scene_id, entry.column_id, entry.state)

    hidden = column_repo.get_hidden_columns_by_scene([scene_id]).get(scene_id, [])
    broadcaster.scene_updated(board_id, scene_id)
    _broadcast_columns(db, board_id, broadcaster)
    return {"success": True, "scene_id": scene_id, "hidden_column_ids": hidden}
