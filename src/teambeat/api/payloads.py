"""
Serializers for ORM rows shared by route responses and broadcasts.

Routes return the same shapes they broadcast, so both go through here.
"""

from typing import Any, Dict, List, Sequence

from teambeat.api.schemas import (
    BoardResponse,
    ColumnResponse,
    CommentResponse,
    SceneResponse,
)
from teambeat.models.db import Board, Column, Comment, Scene
from teambeat.services.display_names import get_user_display_name


def board_payload(board: Board) -> Dict[str, Any]:
    return BoardResponse.model_validate(board).model_dump()


def scene_payload(scene: Scene) -> Dict[str, Any]:
    return SceneResponse.model_validate(scene).model_dump()


def columns_payload(columns: Sequence[Column]) -> List[Dict[str, Any]]:
    return [ColumnResponse.model_validate(column).model_dump() for column in columns]


def comment_payload(comment: Comment, board: Board) -> Dict[str, Any]:
    """Serialize a comment, hiding the author's real name on blame-free boards."""
    data = CommentResponse.model_validate(comment).model_dump()
    data["user_name"] = get_user_display_name(
        data["user_name"], board.id, board.blame_free_mode
    )
    return data
