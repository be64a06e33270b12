"""
Voting read models shared by the vote routes and vote broadcasts.
"""

from typing import Any, Dict

from sqlalchemy.orm import Session

from teambeat.db.repositories import SeriesRepository, VoteRepository
from teambeat.models.db import Board
from teambeat.stores.presence import PresenceStore


def build_user_voting_data(db: Session, board_id: str, user_id: str) -> Dict[str, Any]:
    """A user's own votes on a board, as {"votes_by_card": {card_id: count}}."""
    return {"votes_by_card": VoteRepository(db).get_user_votes_by_card(user_id, board_id)}


def build_voting_stats(db: Session, board: Board, presence: PresenceStore) -> Dict[str, Any]:
    """
    Aggregate voting progress for a board.

    Totals are computed over the series members; ``active_users`` counts the
    members currently present on the board.

    Args:
        db: Database session
        board: Board to report on
        presence: Presence store used to find active users

    Returns:
        Dict with total_users, active_users, users_who_voted,
        users_who_havent_voted, total_votes_cast, max_possible_votes,
        remaining_votes and max_votes_per_user
    """
    member_ids = SeriesRepository(db).get_member_user_ids(board.series_id)
    per_user = VoteRepository(db).get_board_voting_stats(board.id, member_ids)
    active_ids = set(presence.get_active_user_ids(board.id))

    total_users = len(per_user)
    voted = sum(1 for stats in per_user if stats["has_voted"])
    votes_cast = sum(stats["vote_count"] for stats in per_user)
    max_possible = total_users * board.voting_allocation
    return {
        "total_users": total_users,
        "active_users": sum(1 for stats in per_user if stats["user_id"] in active_ids),
        "users_who_voted": voted,
        "users_who_havent_voted": total_users - voted,
        "total_votes_cast": votes_cast,
        "max_possible_votes": max_possible,
        "remaining_votes": max_possible - votes_cast,
        "max_votes_per_user": board.voting_allocation,
    }


def build_complete_voting_response(
    db: Session,
    board: Board,
    user_id: str,
    presence: PresenceStore,
    include_all_votes: bool,
) -> Dict[str, Any]:
    """
    Build the voting payload returned to a user.

    Args:
        db: Database session
        board: Board being voted on
        user_id: Requesting user
        presence: Presence store
        include_all_votes: Add everyone's totals (only when votes are revealed)

    Returns:
        Dict with user_voting_data and voting_stats, plus all_votes_by_card
        when include_all_votes is set
    """
    response: Dict[str, Any] = {
        "user_voting_data": build_user_voting_data(db, board.id, user_id),
        "voting_stats": build_voting_stats(db, board, presence),
    }
    if include_all_votes:
        response["all_votes_by_card"] = VoteRepository(db).get_vote_counts_by_card(board.id)
    return response
