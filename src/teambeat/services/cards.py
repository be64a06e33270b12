"""
Card read model.

Cards are sent to clients with display names applied, their reaction tally
and comment count. Vote totals are only included while the current scene
reveals votes; otherwise ``vote_count`` is None.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from teambeat.db.repositories import CardRepository, CommentRepository
from teambeat.db.repositories.card import card_to_dict
from teambeat.models.db import Board, Card, Scene
from teambeat.permissions import votes_visible
from teambeat.services.display_names import get_user_display_name


def _apply_board_view(
    card: Dict[str, Any],
    board: Board,
    show_votes: bool,
    reactions: Dict[str, int],
    comment_count: int,
) -> Dict[str, Any]:
    card["user_name"] = get_user_display_name(
        card["user_name"], board.id, board.blame_free_mode
    )
    if not show_votes:
        card["vote_count"] = None
    card["reactions"] = reactions
    card["comment_count"] = comment_count
    return card


def build_all_cards_data(
    db: Session, board: Board, scene: Optional[Scene]
) -> List[Dict[str, Any]]:
    """
    Build every card on a board as clients see it under the given scene.

    Args:
        db: Database session
        board: Board the cards belong to
        scene: The board's current scene (decides vote visibility)

    Returns:
        Card dicts ordered by creation time
    """
    cards = CardRepository(db).get_cards_for_board(board.id)
    card_ids = [card["id"] for card in cards]
    comments = CommentRepository(db)
    reactions = comments.get_reaction_counts_for_cards(card_ids)
    comment_counts = comments.get_comment_counts_for_cards(card_ids)
    show_votes = votes_visible(scene, board.status)
    return [
        _apply_board_view(
            card,
            board,
            show_votes,
            reactions.get(card["id"], {}),
            comment_counts.get(card["id"], 0),
        )
        for card in cards
    ]


def enrich_card(
    db: Session, card: Card, board: Board, scene: Optional[Scene]
) -> Dict[str, Any]:
    """Build a single card as clients see it under the given scene."""
    cards = CardRepository(db)
    comments = CommentRepository(db)
    return _apply_board_view(
        card_to_dict(card, cards.get_card_vote_count(card.id)),
        board,
        votes_visible(scene, board.status),
        comments.get_reaction_counts(card.id),
        comments.get_comment_count(card.id),
    )
