"""
Comment repository.

Comments, emoji reactions and promoted agreements share one table and are
told apart by the is_reaction and is_agreement flags.
"""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import Card, Column, Comment, utcnow


class CommentRepository(BaseRepository[Comment]):
    """Repository for Comment model."""

    def __init__(self, session: Session):
        super().__init__(Comment, session)

    def create_comment(
        self,
        card_id: str,
        user_id: str,
        content: str,
        is_agreement: bool = False,
        is_reaction: bool = False,
    ) -> Comment:
        """
        Create a comment, reaction or agreement on a card.

        Args:
            card_id: Card being commented on
            user_id: Author
            content: Comment text (the emoji for reactions)
            is_agreement: Whether the comment is an agreement
            is_reaction: Whether the comment is an emoji reaction

        Returns:
            Created Comment
        """
        return self.create(
            card_id=card_id,
            user_id=user_id,
            content=content,
            is_agreement=is_agreement,
            is_reaction=is_reaction,
        )

    def find_by_id(self, comment_id: str) -> Optional[Comment]:
        return self.get(comment_id)

    def find_by_card(self, card_id: str, include_reactions: bool = False) -> List[Comment]:
        """
        Get comments on a card, oldest first.

        Args:
            card_id: Card id
            include_reactions: Include emoji reactions

        Returns:
            List of comments
        """
        query = self.session.query(Comment).filter(Comment.card_id == card_id)
        if not include_reactions:
            query = query.filter(Comment.is_reaction.is_(False))
        return query.order_by(Comment.created_at).all()

    def find_board_id(self, comment_id: str) -> Optional[str]:
        row = (
            self.session.query(Column.board_id)
            .join(Card, Card.column_id == Column.id)
            .join(Comment, Comment.card_id == Card.id)
            .filter(Comment.id == comment_id)
            .first()
        )
        return row[0] if row else None

    def find_reaction(self, card_id: str, user_id: str, emoji: str) -> Optional[Comment]:
        return (
            self.session.query(Comment)
            .filter(
                Comment.card_id == card_id,
                Comment.user_id == user_id,
                Comment.content == emoji,
                Comment.is_reaction.is_(True),
            )
            .first()
        )

    def get_reaction_counts(self, card_id: str) -> Dict[str, int]:
        """
        Tally reactions on a card by emoji.

        Args:
            card_id: Card id

        Returns:
            Dict of emoji -> count
        """
        rows = (
            self.session.query(Comment.content, func.count(Comment.id))
            .filter(Comment.card_id == card_id, Comment.is_reaction.is_(True))
            .group_by(Comment.content)
            .all()
        )
        return {emoji: count for emoji, count in rows}

    def get_reaction_counts_for_cards(
        self, card_ids: Sequence[str]
    ) -> Dict[str, Dict[str, int]]:
        """Tally reactions for several cards at once; cards without any are omitted."""
        if not card_ids:
            return {}
        rows = (
            self.session.query(Comment.card_id, Comment.content, func.count(Comment.id))
            .filter(Comment.card_id.in_(list(card_ids)), Comment.is_reaction.is_(True))
            .group_by(Comment.card_id, Comment.content)
            .all()
        )
        result: Dict[str, Dict[str, int]] = {}
        for card_id, emoji, count in rows:
            result.setdefault(card_id, {})[emoji] = count
        return result

    def get_comment_count(self, card_id: str) -> int:
        return (
            self.session.query(Comment)
            .filter(Comment.card_id == card_id, Comment.is_reaction.is_(False))
            .count()
        )

    def get_comment_counts_for_cards(self, card_ids: Sequence[str]) -> Dict[str, int]:
        if not card_ids:
            return {}
        rows = (
            self.session.query(Comment.card_id, func.count(Comment.id))
            .filter(Comment.card_id.in_(list(card_ids)), Comment.is_reaction.is_(False))
            .group_by(Comment.card_id)
            .all()
        )
        return {card_id: count for card_id, count in rows}

    def update_content(self, comment_id: str, content: str) -> Optional[Comment]:
        return self.update(comment_id, content=content)

    def set_agreement(self, comment_id: str, is_agreement: bool) -> Optional[Comment]:
        """
        Promote a comment to an agreement or demote it back.

        Demoting also clears any completion state.
        """
        fields = {"is_agreement": is_agreement}
        if not is_agreement:
            fields.update(completed=False, completed_by_user_id=None, completed_at=None)
        return self.update(comment_id, **fields)

    def set_completion(
        self, comment_id: str, completed: bool, completed_by_user_id: str
    ) -> Optional[Comment]:
        """
        Mark an agreement comment complete or incomplete.

        Args:
            comment_id: Comment id
            completed: New completion state
            completed_by_user_id: User toggling the state

        Returns:
            Updated Comment or None if not found
        """
        return self.update(
            comment_id,
            completed=completed,
            completed_by_user_id=completed_by_user_id if completed else None,
            completed_at=utcnow() if completed else None,
        )

    def delete_comment(self, comment_id: str) -> bool:
        deleted = (
            self.session.query(Comment)
            .filter(Comment.id == comment_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0
