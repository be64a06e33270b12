"""Presence read model."""

from typing import Any, Dict

from sqlalchemy.orm import Session

from teambeat.models.db import Board
from teambeat.services.voting import build_voting_stats
from teambeat.stores.presence import PresenceStore


def build_presence_data(db: Session, board: Board, presence: PresenceStore) -> Dict[str, Any]:
    """
    Who is on a board right now, plus current voting progress.

    Returns:
        Dict with presence (list of entries), connected_users_count and
        voting_stats
    """
    entries = presence.get_board_presence(board.id)
    return {
        "presence": [entry.to_dict() for entry in entries],
        "connected_users_count": len(entries),
        "voting_stats": build_voting_stats(db, board, presence),
    }
