"""
Unified agreements read model.

A board's agreements come from two places: free-standing agreements and
comments promoted to agreements on cards in the columns visible under the
current scene. Both are merged into one chronologically sorted list.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from teambeat.db.repositories import (
    AgreementRepository,
    ColumnRepository,
    CommentRepository,
)
from teambeat.models.db import Board, User
from teambeat.services.display_names import get_user_display_name


def _user_names(db: Session, user_ids: Iterable[Optional[str]]) -> Dict[str, Optional[str]]:
    ids = {user_id for user_id in user_ids if user_id}
    if not ids:
        return {}
    return dict(db.query(User.id, User.name).filter(User.id.in_(ids)).all())


def build_agreements_data(db: Session, board: Board) -> List[Dict[str, Any]]:
    """
    Build the unified agreement list for a board.

    Args:
        db: Database session
        board: Board to build for (its current scene decides which columns
            contribute comment agreements)

    Returns:
        Agreement dicts sorted by created_at. Each carries source
        ("agreement" or "comment"), user and completer names with their
        display names; comment agreements also carry card_id,
        card_content, column_id, column_title and reactions.
    """
    free_form = AgreementRepository(db).find_by_board(board.id)
    comment_agreements: List[Dict[str, Any]] = []
    if board.current_scene_id:
        column_ids = ColumnRepository(db).get_visible_column_ids(
            board.id, board.current_scene_id
        )
        comment_agreements = AgreementRepository(db).find_comment_agreements_by_columns(
            column_ids
        )

    names = _user_names(
        db,
        [a.user_id for a in free_form]
        + [a.completed_by_user_id for a in free_form]
        + [row["comment"].user_id for row in comment_agreements]
        + [row["comment"].completed_by_user_id for row in comment_agreements],
    )
    reactions = CommentRepository(db).get_reaction_counts_for_cards(
        [row["comment"].card_id for row in comment_agreements]
    )

    def people(user_id: Optional[str], completed_by_user_id: Optional[str]) -> Dict[str, Any]:
        user_name = names.get(user_id) if user_id else None
        completed_by = names.get(completed_by_user_id) if completed_by_user_id else None
        return {
            "user_name": user_name,
            "display_name": (
                get_user_display_name(user_name, board.id, board.blame_free_mode)
                if user_name
                else None
            ),
            "completed_by_user_name": completed_by,
            "completed_by_display_name": (
                get_user_display_name(completed_by, board.id, board.blame_free_mode)
                if completed_by
                else None
            ),
        }

    items: List[Dict[str, Any]] = []
    for agreement in free_form:
        items.append(
            {
                "id": agreement.id,
                "source": "agreement",
                "board_id": agreement.board_id,
                "user_id": agreement.user_id,
                "content": agreement.content,
                "completed": agreement.completed,
                "completed_by_user_id": agreement.completed_by_user_id,
                "completed_at": agreement.completed_at,
                "created_at": agreement.created_at,
                "updated_at": agreement.updated_at,
                **people(agreement.user_id, agreement.completed_by_user_id),
            }
        )
    for row in comment_agreements:
        comment = row["comment"]
        items.append(
            {
                "id": comment.id,
                "source": "comment",
                "card_id": comment.card_id,
                "card_content": row["card_content"],
                "column_id": row["column_id"],
                "column_title": row["column_title"],
                "user_id": comment.user_id,
                "content": comment.content,
                "completed": comment.completed,
                "completed_by_user_id": comment.completed_by_user_id,
                "completed_at": comment.completed_at,
                "created_at": comment.created_at,
                "updated_at": comment.updated_at,
                "reactions": reactions.get(comment.card_id, {}),
                **people(comment.user_id, comment.completed_by_user_id),
            }
        )

    items.sort(key=lambda item: _sort_key(item["created_at"]))
    return items


def _sort_key(created_at):
    # SQLite returns naive datetimes; compare everything as naive UTC
    return created_at.replace(tzinfo=None) if created_at.tzinfo else created_at
