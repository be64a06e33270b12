"""
Agreement API routes.

Free-standing agreements recorded against a board. Every change broadcasts
the board's unified agreement list, which also includes agreement comments.
"""

from typing import Any, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import (
    BoardContext,
    get_broadcaster,
    load_board_context,
    not_found,
    require_visible_column,
)
from teambeat.api.schemas import AgreementCreate, AgreementUpdate, CompletionUpdate, CopyToCard
from teambeat.db.connection import get_db
from teambeat.db.repositories import AgreementRepository, CardRepository
from teambeat.models.db import Agreement
from teambeat.permissions import is_actionable
from teambeat.realtime.broadcast import Broadcaster
from teambeat.scene_flags import SceneFlag
from teambeat.services.agreements import build_agreements_data
from teambeat.services.cards import enrich_card
from teambeat.services.copy_to_card import agreement_card_content

router = APIRouter()


def _load_agreement(
    db: Session, agreement_id: str, user_id: str
) -> Tuple[Agreement, BoardContext]:
    agreement = AgreementRepository(db).find_by_id(agreement_id)
    if agreement is None:
        raise not_found("Agreement")
    return agreement, load_board_context(db, agreement.board_id, user_id)


def _publish(db: Session, ctx: BoardContext, broadcaster: Broadcaster) -> list:
    agreements = build_agreements_data(db, ctx.board)
    broadcaster.agreements_updated(ctx.board.id, agreements)
    return agreements


@router.get("/boards/{board_id}/agreements")
async def list_agreements(
    board_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Agreements and agreement comments for the board, oldest first."""
    ctx = load_board_context(db, board_id, auth.user_id)
    return {"success": True, "agreements": build_agreements_data(db, ctx.board)}


@router.post("/boards/{board_id}/agreements", status_code=status.HTTP_201_CREATED)
async def create_agreement(
    board_id: str,
    body: AgreementCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    ctx = load_board_context(db, board_id, auth.user_id)
    ctx.require_manager("record agreements")
    if not is_actionable(ctx.board.status):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Board is not open for changes"
        )
    agreement = AgreementRepository(db).create_agreement(board_id, auth.user_id, body.content)
    return {
        "success": True,
        "agreement_id": agreement.id,
        "agreements": _publish(db, ctx, broadcaster),
    }


@router.put("/agreements/{agreement_id}")
async def update_agreement(
    agreement_id: str,
    body: AgreementUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = _load_agreement(db, agreement_id, auth.user_id)
    ctx.require_manager("edit agreements")
    AgreementRepository(db).update_agreement(agreement_id, body.content)
    return {"success": True, "agreements": _publish(db, ctx, broadcaster)}


@router.put("/agreements/{agreement_id}/complete")
async def set_agreement_completion(
    agreement_id: str,
    body: CompletionUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Mark an agreement done or not done. Any series member may do this."""
    _, ctx = _load_agreement(db, agreement_id, auth.user_id)
    AgreementRepository(db).set_completion(agreement_id, body.completed, auth.user_id)
    return {"success": True, "agreements": _publish(db, ctx, broadcaster)}


@router.delete("/agreements/{agreement_id}")
async def delete_agreement(
    agreement_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = _load_agreement(db, agreement_id, auth.user_id)
    ctx.require_manager("delete agreements")
    AgreementRepository(db).delete_agreement(agreement_id)
    return {"success": True, "agreements": _publish(db, ctx, broadcaster)}


@router.post("/agreements/{agreement_id}/copy-to-card", status_code=status.HTTP_201_CREATED)
async def copy_agreement_to_card(
    agreement_id: str,
    body: CopyToCard,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Raises:
        HTTPException(403): Unless the caller is a facilitator or admin and
            the current scene allows adding cards
        HTTPException(400): If the board has no current scene or the column
            is hidden in it
    """
    agreement, ctx = _load_agreement(db, agreement_id, auth.user_id)
    ctx.require_manager("copy agreements to cards")
    if ctx.scene is not None:
        ctx.require(SceneFlag.ALLOW_ADD_CARDS, "Adding cards is not allowed for this scene")
    require_visible_column(db, ctx, body.column_id)

    card = CardRepository(db).create_card(
        column_id=body.column_id,
        user_id=auth.user_id,
        content=agreement_card_content(agreement.content),
    )
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_created(ctx.board.id, data)
    return {"success": True, "card": data}
