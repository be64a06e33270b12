"""
Agreement repository.

Board-level agreements live in their own table; agreements promoted from
comments are read from the comments table through
find_comment_agreements_by_columns().
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import Agreement, Card, Column, Comment, utcnow


class AgreementRepository(BaseRepository[Agreement]):
    """Repository for Agreement model."""

    def __init__(self, session: Session):
        super().__init__(Agreement, session)

    def create_agreement(self, board_id: str, user_id: str, content: str) -> Agreement:
        return self.create(board_id=board_id, user_id=user_id, content=content)

    def find_by_id(self, agreement_id: str) -> Optional[Agreement]:
        return self.get(agreement_id)

    def update_agreement(self, agreement_id: str, content: str) -> Optional[Agreement]:
        return self.update(agreement_id, content=content)

    def set_completion(
        self, agreement_id: str, completed: bool, completed_by_user_id: str
    ) -> Optional[Agreement]:
        """
        Mark an agreement complete or incomplete.

        Args:
            agreement_id: Agreement id
            completed: New completion state
            completed_by_user_id: User toggling the state

        Returns:
            Updated Agreement or None if not found
        """
        return self.update(
            agreement_id,
            completed=completed,
            completed_by_user_id=completed_by_user_id if completed else None,
            completed_at=utcnow() if completed else None,
        )

    def delete_agreement(self, agreement_id: str) -> bool:
        deleted = (
            self.session.query(Agreement)
            .filter(Agreement.id == agreement_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def find_by_board(self, board_id: str) -> List[Agreement]:
        """
        Get a board's agreements, oldest first.

        Args:
            board_id: Board id

        Returns:
            List of agreements
        """
        return (
            self.session.query(Agreement)
            .filter(Agreement.board_id == board_id)
            .order_by(Agreement.created_at)
            .all()
        )

    def find_incomplete_by_board(self, board_id: str) -> List[Agreement]:
        return (
            self.session.query(Agreement)
            .filter(Agreement.board_id == board_id, Agreement.completed.is_(False))
            .order_by(Agreement.created_at)
            .all()
        )

    def find_comment_agreements_by_columns(
        self, column_ids: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """
        Get agreement comments on cards in the given columns.

        Args:
            column_ids: Columns to search (usually those visible in the scene)

        Returns:
            List of dicts with the comment plus its card content, column id
            and column title, oldest first
        """
        if not column_ids:
            return []
        rows = (
            self.session.query(Comment, Card.content, Column.id, Column.title)
            .join(Card, Card.id == Comment.card_id)
            .join(Column, Column.id == Card.column_id)
            .filter(
                Comment.is_agreement.is_(True),
                Card.column_id.in_(list(column_ids)),
            )
            .order_by(Comment.created_at)
            .all()
        )
        return [
            {
                "comment": comment,
                "card_content": card_content,
                "column_id": column_id,
                "column_title": column_title,
            }
            for comment, card_content, column_id, column_title in rows
        ]
