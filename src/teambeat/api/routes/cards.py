"""
Card API routes.

Creating, editing, moving and grouping cards, presenter notes and their
editing lock, and voting. Each route checks membership, then the current
scene's capability, then mutates and broadcasts.
"""

import logging
from typing import Any, Iterable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import (
    BoardContext,
    get_broadcaster,
    get_notes_locks,
    get_presence_store,
    load_board_context,
    load_card_context,
    not_found,
)
from teambeat.api.payloads import comment_payload
from teambeat.api.schemas import (
    CardCreate,
    CardGroup,
    CardMove,
    CardUpdate,
    GroupOnto,
    NotesUpdate,
    VoteRequest,
)
from teambeat.db.connection import get_db
from teambeat.db.repositories import (
    CardRepository,
    ColumnRepository,
    CommentRepository,
    VoteRepository,
)
from teambeat.models.db import Card
from teambeat.permissions import is_actionable, is_shown, votes_visible
from teambeat.realtime.broadcast import Broadcaster
from teambeat.scene_flags import SceneFlag, SceneMode
from teambeat.services.cards import enrich_card
from teambeat.services.voting import build_complete_voting_response
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _require_author_or_manager(card: Card, ctx: BoardContext, auth: AuthContext) -> None:
    if card.user_id != auth.user_id and not ctx.is_manager:
        raise _forbidden("Only the author or a facilitator can change this card")


def _broadcast_cards(
    db: Session, ctx: BoardContext, card_ids: Iterable[str], broadcaster: Broadcaster
) -> list:
    cards = CardRepository(db)
    updated = []
    for card_id in dict.fromkeys(card_ids):
        card = cards.find_by_id(card_id)
        if card is not None:
            data = enrich_card(db, card, ctx.board, ctx.scene)
            broadcaster.card_updated(ctx.board.id, data)
            updated.append(data)
    return updated


def _in_present_scene(ctx: BoardContext) -> bool:
    return ctx.scene is not None and ctx.scene.mode == SceneMode.PRESENT.value


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_card(
    body: CardCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    column = ColumnRepository(db).find_by_id(body.column_id)
    if column is None:
        raise not_found("Column")
    ctx = load_board_context(db, column.board_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_ADD_CARDS, "Adding cards not allowed in current scene")

    card = CardRepository(db).create_card(
        column_id=column.id,
        user_id=auth.user_id,
        content=body.content,
        group_id=body.group_id,
    )
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_created(ctx.board.id, data)
    return {"success": True, "card": data}


@router.put("/{card_id}")
async def update_card(
    card_id: str,
    body: CardUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    card, ctx = load_card_context(db, card_id, auth.user_id)
    _require_author_or_manager(card, ctx, auth)
    ctx.require(SceneFlag.ALLOW_EDIT_CARDS, "Editing cards not allowed in current scene")

    card = CardRepository(db).update_card(card_id, content=body.content)
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_updated(ctx.board.id, data)
    return {"success": True, "card": data}


@router.delete("/{card_id}")
async def delete_card(
    card_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Delete a card. Grouped cards are taken out of their group first so the
    group keeps a lead.
    """
    card, ctx = load_card_context(db, card_id, auth.user_id)
    _require_author_or_manager(card, ctx, auth)

    cards = CardRepository(db)
    affected = cards.ungroup_card(card_id) if card.group_id else []
    cards.delete_card(card_id)
    broadcaster.card_deleted(ctx.board.id, card_id)
    _broadcast_cards(db, ctx, affected, broadcaster)
    return {"success": True}


# ===== Moving and grouping =====


@router.put("/{card_id}/move")
async def move_card(
    card_id: str,
    body: CardMove,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Move a card to another column of the same board.

    A group lead takes its whole group along; a grouped member leaves its
    group.
    """
    card, ctx = load_card_context(db, card_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_MOVE_CARDS, "Moving cards not allowed in current scene")
    column = ColumnRepository(db).find_by_id(body.column_id)
    if column is None or column.board_id != ctx.board.id:
        raise not_found("Column")

    cards = CardRepository(db)
    if card.group_id and card.is_group_lead:
        moved = cards.move_group_to_column(card_id, column.id)
    else:
        moved = [card_id] + (cards.ungroup_card(card_id) if card.group_id else [])
        cards.move_card_to_column(card_id, column.id)
    return {"success": True, "cards": _broadcast_cards(db, ctx, moved, broadcaster)}


@router.post("/group")
async def group_cards(
    body: CardGroup,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Group cards together. The first card leads a new group.

    Raises:
        HTTPException(400): If the cards are not all on the same board
    """
    cards = CardRepository(db)
    board_ids = {cards.find_board_id(card_id) for card_id in body.card_ids}
    if None in board_ids:
        raise not_found("Card")
    if len(board_ids) != 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cards must belong to the same board",
        )
    ctx = load_board_context(db, board_ids.pop(), auth.user_id)
    ctx.require(SceneFlag.ALLOW_GROUP_CARDS, "Grouping cards not allowed in current scene")

    group_id, repaired = cards.group_cards(body.card_ids, body.group_id)
    member_ids = [c.id for c in cards.get_group_members(group_id)]
    return {
        "success": True,
        "group_id": group_id,
        "cards": _broadcast_cards(db, ctx, [*member_ids, *repaired], broadcaster),
    }


@router.post("/{card_id}/group-onto")
async def group_onto(
    card_id: str,
    body: GroupOnto,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Drop a card onto another; the target leads the resulting group."""
    _, ctx = load_card_context(db, card_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_GROUP_CARDS, "Grouping cards not allowed in current scene")
    cards = CardRepository(db)
    if cards.find_board_id(body.target_card_id) != ctx.board.id:
        raise not_found("Target card")
    if body.target_card_id == card_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot group a card onto itself",
        )

    group_id, affected = cards.group_card_onto_target(card_id, body.target_card_id)
    changed = [card_id, body.target_card_id, *affected]
    return {
        "success": True,
        "group_id": group_id,
        "cards": _broadcast_cards(db, ctx, changed, broadcaster),
    }


@router.post("/{card_id}/ungroup")
async def ungroup_card(
    card_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = load_card_context(db, card_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_GROUP_CARDS, "Grouping cards not allowed in current scene")
    affected = CardRepository(db).ungroup_card(card_id)
    return {
        "success": True,
        "cards": _broadcast_cards(db, ctx, [card_id, *affected], broadcaster),
    }


# ===== Notes =====


@router.post("/{card_id}/notes-lock")
async def acquire_notes_lock(
    card_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Take the notes editing lock for a card.

    Raises:
        HTTPException(409): If another user holds the lock
    """
    _, ctx = load_card_context(db, card_id, auth.user_id)
    result = notes_locks.acquire(card_id, auth.user_id, auth.user.name or auth.user.email)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Notes are being edited by {result.locked_by}",
        )
    if _in_present_scene(ctx):
        broadcaster.update_presentation(db, ctx.board.id, card_id=card_id)
    return {"success": True, "locked": True}


@router.delete("/{card_id}/notes-lock")
async def release_notes_lock(
    card_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = load_card_context(db, card_id, auth.user_id)
    released = notes_locks.release(card_id, auth.user_id)
    if released and _in_present_scene(ctx):
        broadcaster.update_presentation(db, ctx.board.id, card_id=card_id)
    return {"success": True, "released": released}


@router.put("/{card_id}/notes")
async def update_notes(
    card_id: str,
    body: NotesUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    notes_locks: NotesLockStore = Depends(get_notes_locks),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Save a card's presenter notes.

    Raises:
        HTTPException(409): If another user holds the notes lock
    """
    _, ctx = load_card_context(db, card_id, auth.user_id)
    if not is_actionable(ctx.board.status):
        raise _forbidden("Board is not open for changes")
    lock = notes_locks.get(card_id)
    if lock is not None and lock.user_id != auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Notes are being edited by {lock.user_name}",
        )

    card = CardRepository(db).update_card(card_id, notes=body.notes)
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_updated(ctx.board.id, data)
    if _in_present_scene(ctx):
        broadcaster.update_presentation(db, ctx.board.id, card_id=card_id)
    return {"success": True, "card": data}


# ===== Comments =====


@router.get("/{card_id}/comments")
async def list_card_comments(
    card_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Comments on a card, oldest first, with the reaction tally.

    Raises:
        HTTPException(403): If the current scene hides comments
    """
    _, ctx = load_card_context(db, card_id, auth.user_id)
    if not is_shown(ctx.scene, SceneFlag.SHOW_COMMENTS) and not ctx.is_manager:
        raise _forbidden("Comments are hidden in current scene")
    comments = CommentRepository(db)
    return {
        "success": True,
        "comments": [comment_payload(c, ctx.board) for c in comments.find_by_card(card_id)],
        "reactions": comments.get_reaction_counts(card_id),
    }


# ===== Voting =====


@router.post("/{card_id}/vote")
async def vote(
    card_id: str,
    body: VoteRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Add (delta=1) or remove (delta=-1) one of the caller's votes on a card.

    Votes go on group leads only. Who hears about the vote depends on the
    current scene: with votes revealed the whole board sees the new total;
    under blind voting only the voter does, while everyone else gets the
    updated voting progress.

    Raises:
        HTTPException(400): On a bad delta, no votes left, or none to remove
        HTTPException(403): On a grouped member card, for non-members, or
            when the scene does not allow voting
        HTTPException(404): If the card does not exist
    """
    if body.delta not in (1, -1):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid delta value. Must be 1 or -1",
        )

    cards = CardRepository(db)
    card = cards.find_by_id(card_id)
    if card is None:
        raise not_found("Card")
    if card.is_grouped_subordinate:
        raise _forbidden(
            "Cannot vote on subordinate cards. Vote on the group lead card instead."
        )

    board_id = cards.find_board_id(card_id)
    presence.update(auth.user_id, board_id)
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require(SceneFlag.ALLOW_VOTING, "Voting not allowed in current scene")
    board = ctx.board

    votes = VoteRepository(db)
    if body.delta > 0:
        allocation = votes.check_voting_allocation(
            auth.user_id, board.id, board.voting_allocation
        )
        if not allocation["can_vote"]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="No votes remaining"
            )
    elif votes.get_user_votes_on_card(auth.user_id, card_id) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No votes to remove"
        )

    vote_result = votes.cast_vote(card_id, auth.user_id, body.delta)
    card_data = enrich_card(db, card, board, ctx.scene)
    show_votes = votes_visible(ctx.scene, board.status)
    voting = build_complete_voting_response(
        db, board, auth.user_id, presence, include_all_votes=show_votes
    )

    broadcaster.vote_changed(
        db,
        board,
        ctx.scene,
        card_id,
        card_data["vote_count"],
        auth.user_id,
        voting_stats=voting["voting_stats"],
    )
    broadcaster.vote_updates_for_scene(
        db,
        board,
        ctx.scene,
        triggering_user_id=auth.user_id,
        voting_stats=voting["voting_stats"],
    )
    return {"success": True, "card": card_data, "vote_result": vote_result, **voting}
