"""
Comment API routes.

Comments, emoji reactions and agreement comments on cards. A reaction is a
toggle: posting the same emoji twice removes it again.
"""

from typing import Any, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import (
    BoardContext,
    get_broadcaster,
    load_board_context,
    load_card_context,
    not_found,
    require_visible_column,
)
from teambeat.api.payloads import comment_payload
from teambeat.api.schemas import (
    CommentCreate,
    CommentUpdate,
    CompletionUpdate,
    CopyToCard,
    ToggleAgreement,
)
from teambeat.db.connection import get_db
from teambeat.db.repositories import CardRepository, CommentRepository
from teambeat.models.db import Comment
from teambeat.permissions import is_actionable
from teambeat.realtime.broadcast import Broadcaster
from teambeat.scene_flags import SceneFlag, SceneMode
from teambeat.services.agreements import build_agreements_data
from teambeat.services.cards import enrich_card
from teambeat.services.copy_to_card import agreement_card_content

router = APIRouter()


def _load_comment(db: Session, comment_id: str, user_id: str) -> Tuple[Comment, BoardContext]:
    comments = CommentRepository(db)
    comment = comments.find_by_id(comment_id)
    if comment is None:
        raise not_found("Comment")
    return comment, load_board_context(db, comments.find_board_id(comment_id), user_id)


def _require_author_or_manager(comment: Comment, ctx: BoardContext, auth: AuthContext) -> None:
    if comment.user_id != auth.user_id and not ctx.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author or a facilitator can change this comment",
        )


def _require_open_board(ctx: BoardContext) -> None:
    if not is_actionable(ctx.board.status):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Board is not open for changes"
        )


def _after_change(
    db: Session,
    ctx: BoardContext,
    card_id: str,
    broadcaster: Broadcaster,
    agreements_changed: bool = False,
) -> None:
    """Refresh the card, the presentation and, if touched, the agreement list."""
    card = CardRepository(db).find_by_id(card_id)
    if card is not None:
        broadcaster.card_updated(ctx.board.id, enrich_card(db, card, ctx.board, ctx.scene))
    if ctx.scene is not None and ctx.scene.mode == SceneMode.PRESENT.value:
        broadcaster.update_presentation(db, ctx.board.id, card_id=card_id)
    if agreements_changed:
        broadcaster.agreements_updated(ctx.board.id, build_agreements_data(db, ctx.board))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Comment or react on a card.

    Reacting with an emoji the caller already used on the card removes that
    reaction instead; the response then has ``removed: true``.

    Raises:
        HTTPException(403): If the current scene does not allow comments
    """
    _, ctx = load_card_context(db, body.card_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_COMMENTS, "Comments not allowed in current scene")
    comments = CommentRepository(db)

    if body.is_reaction:
        existing = comments.find_reaction(body.card_id, auth.user_id, body.content)
        if existing is not None:
            comments.delete_comment(existing.id)
            _after_change(db, ctx, body.card_id, broadcaster)
            return {"success": True, "removed": True, "comment": None}

    comment = comments.create_comment(
        card_id=body.card_id,
        user_id=auth.user_id,
        content=body.content,
        is_agreement=body.is_agreement and not body.is_reaction,
        is_reaction=body.is_reaction,
    )
    payload = comment_payload(comment, ctx.board)
    if not body.is_reaction:
        broadcaster.comment_added(ctx.board.id, payload)
    _after_change(db, ctx, body.card_id, broadcaster, agreements_changed=comment.is_agreement)
    return {"success": True, "removed": False, "comment": payload}


@router.put("/{comment_id}")
async def update_comment(
    comment_id: str,
    body: CommentUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    comment, ctx = _load_comment(db, comment_id, auth.user_id)
    _require_author_or_manager(comment, ctx, auth)
    _require_open_board(ctx)

    comment = CommentRepository(db).update_content(comment_id, body.content)
    _after_change(db, ctx, comment.card_id, broadcaster, agreements_changed=comment.is_agreement)
    return {"success": True, "comment": comment_payload(comment, ctx.board)}


@router.put("/{comment_id}/agreement")
async def toggle_agreement(
    comment_id: str,
    body: ToggleAgreement,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Promote a comment to an agreement, or demote it (facilitators and admins)."""
    comment, ctx = _load_comment(db, comment_id, auth.user_id)
    ctx.require_manager("manage agreements")
    _require_open_board(ctx)
    if comment.is_reaction:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reactions cannot be agreements",
        )

    comment = CommentRepository(db).set_agreement(comment_id, body.is_agreement)
    _after_change(db, ctx, comment.card_id, broadcaster, agreements_changed=True)
    return {"success": True, "comment": comment_payload(comment, ctx.board)}


@router.put("/{comment_id}/complete")
async def set_comment_completion(
    comment_id: str,
    body: CompletionUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Mark an agreement comment done or not done. Any member may do this.

    Raises:
        HTTPException(400): If the comment is not an agreement
    """
    comment, ctx = _load_comment(db, comment_id, auth.user_id)
    if not comment.is_agreement:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only agreements can be completed",
        )

    comment = CommentRepository(db).set_completion(comment_id, body.completed, auth.user_id)
    _after_change(db, ctx, comment.card_id, broadcaster, agreements_changed=True)
    return {"success": True, "comment": comment_payload(comment, ctx.board)}


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    comment, ctx = _load_comment(db, comment_id, auth.user_id)
    _require_author_or_manager(comment, ctx, auth)

    card_id, was_agreement = comment.card_id, comment.is_agreement
    CommentRepository(db).delete_comment(comment_id)
    _after_change(db, ctx, card_id, broadcaster, agreements_changed=was_agreement)
    return {"success": True}


@router.post("/{comment_id}/copy-to-card", status_code=status.HTTP_201_CREATED)
async def copy_comment_to_card(
    comment_id: str,
    body: CopyToCard,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Turn an agreement comment into a new card, carrying over the reactions
    on the card it was made on.

    Raises:
        HTTPException(400): If the comment is not an agreement, the board has
            no current scene, or the column is hidden in it
        HTTPException(403): Unless the caller is a facilitator or admin
    """
    comment, ctx = _load_comment(db, comment_id, auth.user_id)
    if not comment.is_agreement:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Comment is not an agreement"
        )
    ctx.require_manager("copy agreements to cards")
    require_visible_column(db, ctx, body.column_id)

    reactions = CommentRepository(db).get_reaction_counts(comment.card_id)
    card = CardRepository(db).create_card(
        column_id=body.column_id,
        user_id=auth.user_id,
        content=agreement_card_content(comment.content, reactions),
    )
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_created(ctx.board.id, data)
    return {"success": True, "card": data}
