"""
Scene API routes.

Scenes are the phases of a board's workflow. Facilitators create, edit,
reorder and delete them; the first scene created becomes the board's
current scene.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import get_broadcaster, load_board_context, not_found
from teambeat.api.payloads import scene_payload
from teambeat.api.schemas import SceneCreate, SceneReorder, SceneUpdate, SelectCardRequest
from teambeat.db.connection import get_db
from teambeat.db.repositories import BoardRepository, CardRepository, SceneRepository
from teambeat.permissions import votes_visible
from teambeat.realtime.broadcast import Broadcaster

router = APIRouter()


def _get_board_scene(db: Session, board_id: str, scene_id: str):
    scene = SceneRepository(db).find_by_id(scene_id)
    if scene is None or scene.board_id != board_id:
        raise not_found("Scene")
    return scene


@router.post("/{board_id}/scenes", status_code=status.HTTP_201_CREATED)
async def create_scene(
    board_id: str,
    body: SceneCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Add a scene at the end of the workflow.

    Flags default to the mode's defaults. A board without a current scene
    switches to the new scene straight away.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage scenes")

    scene = SceneRepository(db).create_scene(
        board_id=board_id,
        title=body.title,
        mode=body.mode.value,
        description=body.description,
        flags=body.flags,
    )
    payload = scene_payload(scene)

    became_current = ctx.board.current_scene_id is None
    if became_current:
        board = BoardRepository(db).update_board_scene(board_id, scene.id)
        broadcaster.scene_changed(db, board, scene, payload)
    broadcaster.scene_created(board_id, payload)
    return {"success": True, "scene": payload, "is_current": became_current}


@router.put("/{board_id}/scenes/reorder")
async def reorder_scenes(
    board_id: str,
    body: SceneReorder,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage scenes")
    scenes = SceneRepository(db)
    scenes.reorder_scenes(
        board_id, [(scene_id, seq) for seq, scene_id in enumerate(body.scene_ids, start=1)]
    )
    ordered = [scene_payload(s) for s in scenes.find_by_board(board_id)]
    broadcaster.emit(board_id, "scenes_reordered", scenes=ordered)
    return {"success": True, "scenes": ordered}


@router.put("/{board_id}/scenes/{scene_id}")
async def update_scene(
    board_id: str,
    scene_id: str,
    body: SceneUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Edit a scene's attributes and flag set.

    When the edit reveals votes on the current scene, vote totals are
    broadcast.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage scenes")
    _get_board_scene(db, board_id, scene_id)

    scenes = SceneRepository(db)
    was_visible = votes_visible(ctx.scene, ctx.board.status)
    fields = body.model_dump(exclude_unset=True, exclude={"flags"})
    scene = scenes.update_scene(scene_id, **fields) if fields else scenes.find_by_id(scene_id)
    if body.flags is not None:
        scene = scenes.set_flags(scene_id, body.flags)

    broadcaster.scene_updated(board_id, scene_id)
    if scene_id == ctx.board.current_scene_id:
        if "selected_card_id" in fields:
            broadcaster.update_presentation(db, board_id, card_id=scene.selected_card_id)
        if not was_visible and votes_visible(scene, ctx.board.status):
            broadcaster.vote_updates_for_scene(db, ctx.board, scene)
    return {"success": True, "scene": scene_payload(scene)}


@router.put("/{board_id}/scenes/{scene_id}/selected-card")
async def select_card(
    board_id: str,
    scene_id: str,
    body: SelectCardRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Select (or clear) the card being presented."""
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("select cards")
    _get_board_scene(db, board_id, scene_id)
    if body.card_id is not None and CardRepository(db).find_board_id(body.card_id) != board_id:
        raise not_found("Card")

    scene = SceneRepository(db).update_scene(scene_id, selected_card_id=body.card_id)
    if scene_id == ctx.board.current_scene_id:
        broadcaster.update_presentation(db, board_id, card_id=body.card_id)
    return {"success": True, "scene": scene_payload(scene)}


@router.delete("/{board_id}/scenes/{scene_id}")
async def delete_scene(
    board_id: str,
    scene_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Delete a scene.

    Deleting the current scene moves the board to the first remaining
    scene, or leaves it without one.
    """
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("manage scenes")
    _get_board_scene(db, board_id, scene_id)

    scenes = SceneRepository(db)
    scenes.delete_scene(scene_id)
    broadcaster.emit(board_id, "scene_deleted", scene_id=scene_id)

    if ctx.board.current_scene_id == scene_id:
        remaining = scenes.find_by_board(board_id)
        next_scene = remaining[0] if remaining else None
        board = BoardRepository(db).update_board_scene(
            board_id, next_scene.id if next_scene else None
        )
        if next_scene is not None:
            broadcaster.scene_changed(db, board, next_scene, scene_payload(next_scene))
    return {"success": True}
