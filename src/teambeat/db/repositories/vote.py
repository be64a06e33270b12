"""
Vote repository.
"""

from typing import Any, Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.repositories.base import BaseRepository
from teambeat.exceptions import InvalidVoteDeltaError
from teambeat.models.db import Card, Column, User, Vote


class VoteRepository(BaseRepository[Vote]):
    """Repository for Vote model."""

    def __init__(self, session: Session):
        super().__init__(Vote, session)

    def _board_votes(self, board_id: str):
        return (
            self.session.query(Vote)
            .join(Card, Card.id == Vote.card_id)
            .join(Column, Column.id == Card.column_id)
            .filter(Column.board_id == board_id)
        )

    def cast_vote(self, card_id: str, user_id: str, delta: int) -> Dict[str, Any]:
        """
        Add or remove one vote on a card.

        Adding always inserts a new vote. Removing deletes the user's most
        recent vote on the card, or does nothing if there is none.

        Args:
            card_id: Card id
            user_id: Voting user
            delta: 1 to add, -1 to remove

        Returns:
            {"action": "added"|"removed", "vote_id": ...} or
            {"action": "none", "reason": "No votes to remove"}

        Raises:
            InvalidVoteDeltaError: If delta is not 1 or -1
        """
        if delta == 1:
            vote = self.create(card_id=card_id, user_id=user_id)
            return {"action": "added", "vote_id": vote.id}

        if delta == -1:
            existing = (
                self.session.query(Vote)
                .filter(Vote.card_id == card_id, Vote.user_id == user_id)
                .order_by(Vote.created_at.desc())
                .first()
            )
            if existing is None:
                return {"action": "none", "reason": "No votes to remove"}
            vote_id = existing.id
            self.session.delete(existing)
            self.session.flush()
            return {"action": "removed", "vote_id": vote_id}

        raise InvalidVoteDeltaError(delta)

    def get_card_votes(self, card_id: str) -> List[Vote]:
        return self.session.query(Vote).filter(Vote.card_id == card_id).all()

    def get_user_votes_for_board(self, user_id: str, board_id: str) -> List[Vote]:
        return self._board_votes(board_id).filter(Vote.user_id == user_id).all()

    def get_all_votes_for_board(self, board_id: str) -> List[Vote]:
        return self._board_votes(board_id).all()

    def get_user_vote_count(self, user_id: str, board_id: str) -> int:
        """
        Count a user's votes across all cards on a board.

        Args:
            user_id: User id
            board_id: Board id

        Returns:
            Number of votes
        """
        return self._board_votes(board_id).filter(Vote.user_id == user_id).count()

    def get_user_votes_on_card(self, user_id: str, card_id: str) -> int:
        return (
            self.session.query(Vote)
            .filter(Vote.card_id == card_id, Vote.user_id == user_id)
            .count()
        )

    def get_user_votes_by_card(self, user_id: str, board_id: str) -> Dict[str, int]:
        """
        Map card ids to the number of votes a user cast on them.

        Cards the user has not voted on are omitted.
        """
        rows = (
            self.session.query(Vote.card_id, func.count(Vote.id))
            .join(Card, Card.id == Vote.card_id)
            .join(Column, Column.id == Card.column_id)
            .filter(Column.board_id == board_id, Vote.user_id == user_id)
            .group_by(Vote.card_id)
            .all()
        )
        return {card_id: count for card_id, count in rows}

    def get_vote_counts_by_card(self, board_id: str) -> Dict[str, int]:
        """
        Map card ids to their total vote count.

        Cards without votes are omitted.
        """
        rows = (
            self.session.query(Vote.card_id, func.count(Vote.id))
            .join(Card, Card.id == Vote.card_id)
            .join(Column, Column.id == Card.column_id)
            .filter(Column.board_id == board_id)
            .group_by(Vote.card_id)
            .all()
        )
        return {card_id: count for card_id, count in rows}

    def get_board_voting_stats(
        self, board_id: str, user_ids: Iterable[str]
    ) -> List[Dict[str, Any]]:
        """
        Per-user voting stats for a set of users (usually those present).

        Args:
            board_id: Board id
            user_ids: Users to report on

        Returns:
            List of dicts with user_id, user_name, vote_count, has_voted
        """
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return []
        names = dict(
            self.session.query(User.id, User.name).filter(User.id.in_(user_ids)).all()
        )
        counts = dict(
            self.session.query(Vote.user_id, func.count(Vote.id))
            .join(Card, Card.id == Vote.card_id)
            .join(Column, Column.id == Card.column_id)
            .filter(Column.board_id == board_id, Vote.user_id.in_(user_ids))
            .group_by(Vote.user_id)
            .all()
        )
        stats = []
        for user_id in user_ids:
            vote_count = counts.get(user_id, 0)
            stats.append(
                {
                    "user_id": user_id,
                    "user_name": names.get(user_id) or "Unknown User",
                    "vote_count": vote_count,
                    "has_voted": vote_count > 0,
                }
            )
        return stats

    def check_voting_allocation(
        self, user_id: str, board_id: str, voting_allocation: int
    ) -> Dict[str, Any]:
        """
        Report how many votes a user has used and has left on a board.

        Args:
            user_id: User id
            board_id: Board id
            voting_allocation: Max votes per user on the board

        Returns:
            Dict with current_votes, max_votes, remaining_votes, can_vote
        """
        current = self.get_user_vote_count(user_id, board_id)
        return {
            "current_votes": current,
            "max_votes": voting_allocation,
            "remaining_votes": max(0, voting_allocation - current),
            "can_vote": current < voting_allocation,
        }

    def clear_board_votes(self, board_id: str) -> int:
        """
        Delete every vote on a board.

        Returns:
            Number of votes deleted
        """
        card_ids = [
            row[0]
            for row in self.session.query(Card.id)
            .join(Column, Column.id == Card.column_id)
            .filter(Column.board_id == board_id)
            .all()
        ]
        if not card_ids:
            return 0
        return (
            self.session.query(Vote)
            .filter(Vote.card_id.in_(card_ids))
            .delete(synchronize_session="fetch")
        )
