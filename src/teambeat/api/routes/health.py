"""
Health check API routes.

Survey scenes carry a list of questions that participants rate. While a
scene collects responses each user sees only their own ratings; once the
facilitator switches its display mode to results, aggregates are shown and
responses are frozen.
"""

import logging
from typing import Any, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import BoardContext, get_broadcaster, load_board_context, not_found
from teambeat.api.schemas import (
    ApplyPreset,
    CopyToCard,
    HealthQuestionCreate,
    HealthQuestionReorder,
    HealthQuestionResponse,
    HealthQuestionUpdate,
    HealthResponseCreate,
    HealthResponseResponse,
)
from teambeat.db.connection import get_db
from teambeat.db.repositories import (
    CardRepository,
    ColumnRepository,
    HealthRepository,
    SceneRepository,
)
from teambeat.exceptions import InvalidRatingError, PresetNotFoundError
from teambeat.models.db import HealthQuestion, Scene
from teambeat.permissions import is_actionable
from teambeat.realtime.broadcast import Broadcaster
from teambeat.services.cards import enrich_card
from teambeat.services.copy_to_card import question_card_content
from teambeat.services.health_presets import get_preset_metadata

logger = logging.getLogger(__name__)

router = APIRouter()

RESULTS_DISPLAY_MODE = "results"


def _load_scene(
    db: Session, board_id: str, scene_id: str, user_id: str
) -> Tuple[Scene, BoardContext]:
    ctx = load_board_context(db, board_id, user_id)
    scene = SceneRepository(db).find_by_id(scene_id)
    if scene is None or scene.board_id != board_id:
        raise not_found("Scene")
    return scene, ctx


def _load_question(
    db: Session, question_id: str, user_id: str
) -> Tuple[HealthQuestion, Scene, BoardContext]:
    question = HealthRepository(db).find_question_by_id(question_id)
    if question is None:
        raise not_found("Question")
    scene = SceneRepository(db).find_by_id(question.scene_id)
    return question, scene, load_board_context(db, scene.board_id, user_id)


def _questions_payload(db: Session, scene_id: str) -> list:
    return [
        HealthQuestionResponse.model_validate(q).model_dump()
        for q in HealthRepository(db).find_questions_by_scene(scene_id)
    ]


def _publish_questions(
    db: Session, board_id: str, scene_id: str, broadcaster: Broadcaster
) -> list:
    questions = _questions_payload(db, scene_id)
    broadcaster.emit(
        board_id, "health_questions_updated", scene_id=scene_id, questions=questions
    )
    return questions


# ===== Presets =====


@router.get("/health-checks/presets")
async def list_presets(auth: AuthContext = Depends(get_auth_context)) -> dict[str, Any]:
    return {"success": True, "presets": get_preset_metadata()}


# ===== Questions =====


@router.get("/boards/{board_id}/scenes/{scene_id}/health-questions")
async def list_questions(
    board_id: str,
    scene_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """A survey scene's questions with the caller's own ratings."""
    _load_scene(db, board_id, scene_id, auth.user_id)
    own = HealthRepository(db).find_responses_by_user_and_scene(auth.user_id, scene_id)
    return {
        "success": True,
        "questions": _questions_payload(db, scene_id),
        "user_responses": [HealthResponseResponse.model_validate(r).model_dump() for r in own],
    }


@router.post(
    "/boards/{board_id}/scenes/{scene_id}/health-questions",
    status_code=status.HTTP_201_CREATED,
)
async def create_question(
    board_id: str,
    scene_id: str,
    body: HealthQuestionCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = _load_scene(db, board_id, scene_id, auth.user_id)
    ctx.require_manager("manage health questions")
    question = HealthRepository(db).create_question(
        scene_id=scene_id,
        question=body.question,
        question_type=body.question_type,
        description=body.description,
    )
    return {
        "success": True,
        "question": HealthQuestionResponse.model_validate(question).model_dump(),
        "questions": _publish_questions(db, board_id, scene_id, broadcaster),
    }


@router.put("/boards/{board_id}/scenes/{scene_id}/health-questions/reorder")
async def reorder_questions(
    board_id: str,
    scene_id: str,
    body: HealthQuestionReorder,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, ctx = _load_scene(db, board_id, scene_id, auth.user_id)
    ctx.require_manager("manage health questions")
    HealthRepository(db).reorder_questions(scene_id, body.question_ids)
    return {
        "success": True,
        "questions": _publish_questions(db, board_id, scene_id, broadcaster),
    }


@router.post("/boards/{board_id}/scenes/{scene_id}/health-questions/preset")
async def apply_preset(
    board_id: str,
    scene_id: str,
    body: ApplyPreset,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Append a preset's questions to the scene.

    Raises:
        HTTPException(404): If the preset does not exist
    """
    _, ctx = _load_scene(db, board_id, scene_id, auth.user_id)
    ctx.require_manager("manage health questions")
    try:
        created = HealthRepository(db).apply_preset(scene_id, body.preset_id)
    except PresetNotFoundError:
        raise not_found("Preset")
    logger.info(f"Applied preset {body.preset_id} to scene {scene_id} ({len(created)} questions)")
    return {
        "success": True,
        "created": len(created),
        "questions": _publish_questions(db, board_id, scene_id, broadcaster),
    }


@router.put("/health-questions/{question_id}")
async def update_question(
    question_id: str,
    body: HealthQuestionUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, scene, ctx = _load_question(db, question_id, auth.user_id)
    ctx.require_manager("manage health questions")
    question = HealthRepository(db).update_question(
        question_id, **body.model_dump(exclude_unset=True)
    )
    return {
        "success": True,
        "question": HealthQuestionResponse.model_validate(question).model_dump(),
        "questions": _publish_questions(db, ctx.board.id, scene.id, broadcaster),
    }


@router.delete("/health-questions/{question_id}")
async def delete_question(
    question_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    _, scene, ctx = _load_question(db, question_id, auth.user_id)
    ctx.require_manager("manage health questions")
    HealthRepository(db).delete_question(question_id)
    return {
        "success": True,
        "questions": _publish_questions(db, ctx.board.id, scene.id, broadcaster),
    }


# ===== Responses =====


@router.post("/health-responses")
async def submit_response(
    body: HealthResponseCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Record the caller's rating for a question, replacing an earlier one.

    Raises:
        HTTPException(403): If the scene is showing results
        HTTPException(400): If the board is closed or the rating is invalid
    """
    _, scene, ctx = _load_question(db, body.question_id, auth.user_id)
    if scene.display_mode == RESULTS_DISPLAY_MODE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Responses are closed while results are shown",
        )
    if not is_actionable(ctx.board.status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Board is not accepting responses",
        )

    health = HealthRepository(db)
    try:
        response = health.upsert_response(body.question_id, auth.user_id, body.rating)
    except InvalidRatingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    completion = health.check_user_completion(scene.id, auth.user_id)
    broadcaster.emit(
        ctx.board.id,
        "health_response_submitted",
        scene_id=scene.id,
        user_id=auth.user_id,
        completed=completion["completed"],
    )
    return {
        "success": True,
        "response": HealthResponseResponse.model_validate(response).model_dump(),
        "completion": completion,
    }


@router.get("/boards/{board_id}/scenes/{scene_id}/health-completion")
async def get_completion(
    board_id: str,
    scene_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _load_scene(db, board_id, scene_id, auth.user_id)
    return {
        "success": True,
        **HealthRepository(db).check_user_completion(scene_id, auth.user_id),
    }


@router.get("/boards/{board_id}/scenes/{scene_id}/health-results")
async def get_results(
    board_id: str,
    scene_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Aggregated ratings per question.

    Members see results only once the scene shows them; facilitators and
    admins may look at any time.

    Raises:
        HTTPException(403): If results are not shown yet
    """
    scene, ctx = _load_scene(db, board_id, scene_id, auth.user_id)
    if scene.display_mode != RESULTS_DISPLAY_MODE and not ctx.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Results are not shown yet"
        )
    return {
        "success": True,
        "results": HealthRepository(db).get_scene_results(scene_id, user_id=auth.user_id),
    }


@router.post(
    "/health-questions/{question_id}/copy-to-card", status_code=status.HTTP_201_CREATED
)
async def copy_question_to_card(
    question_id: str,
    body: CopyToCard,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """
    Summarise a question's responses as a card in one of the board's columns.

    Raises:
        HTTPException(403): Unless the caller is a facilitator or admin
        HTTPException(404): If the column does not exist
        HTTPException(400): If the column belongs to another board
    """
    question, _, ctx = _load_question(db, question_id, auth.user_id)
    if not ctx.is_manager:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    column = ColumnRepository(db).find_by_id(body.column_id)
    if column is None:
        raise not_found("Column")
    if column.board_id != ctx.board.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Column does not belong to this board",
        )

    content = question_card_content(
        question.question,
        question.question_type,
        HealthRepository(db).get_question_ratings(question_id),
        description=question.description,
    )
    card = CardRepository(db).create_card(
        column_id=column.id, user_id=auth.user_id, content=content
    )
    data = enrich_card(db, card, ctx.board, ctx.scene)
    broadcaster.card_created(ctx.board.id, data)
    logger.info(f"Copied question {question_id} to a card on board {ctx.board.id}")
    return {"success": True, "card": data}
