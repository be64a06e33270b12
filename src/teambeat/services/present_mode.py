"""
Present-mode read model.

In a present scene the facilitator walks through cards one at a time. Each
participant gets their own view: it marks which cards they voted on and
carries the selected card's discussion and notes lock.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from teambeat.db.repositories import BoardRepository, CommentRepository, VoteRepository
from teambeat.permissions import is_allowed, is_shown, votes_visible
from teambeat.scene_flags import SceneFlag
from teambeat.services.cards import build_all_cards_data
from teambeat.services.display_names import get_user_display_name
from teambeat.stores.notes_lock import NotesLockStore


def order_for_presentation(
    cards: List[Dict[str, Any]], sort_by_votes: bool
) -> List[Dict[str, Any]]:
    """
    Order cards for presenting: most-voted first, each group lead followed
    directly by its members.

    Args:
        cards: Card dicts in creation order
        sort_by_votes: Sort by vote_count descending; otherwise keep the
            creation order

    Returns:
        Reordered list
    """
    if sort_by_votes:
        cards = sorted(cards, key=lambda c: c["vote_count"] or 0, reverse=True)

    ordered: List[Dict[str, Any]] = []
    seen = set()
    for card in cards:
        if card["id"] in seen:
            continue
        ordered.append(card)
        seen.add(card["id"])
        if card["is_group_lead"] and card["group_id"]:
            for member in cards:
                if (
                    member["group_id"] == card["group_id"]
                    and not member["is_group_lead"]
                    and member["id"] not in seen
                ):
                    ordered.append(member)
                    seen.add(member["id"])
    return ordered


def build_present_mode_data(
    db: Session, board_id: str, user_id: str, notes_locks: NotesLockStore
) -> Dict[str, Any]:
    """
    Build one participant's present-mode view.

    Args:
        db: Database session
        board_id: Board being presented
        user_id: Participant the view is for
        notes_locks: Notes lock store

    Returns:
        Dict with visible_cards, selected_card, comments, agreements,
        scene_permissions and notes_lock

    Raises:
        LookupError: If the board or its current scene does not exist
    """
    details = BoardRepository(db).get_board_with_details(board_id)
    if details is None:
        raise LookupError(f"Board not found: {board_id}")
    scene = details.current_scene
    if scene is None:
        raise LookupError(f"No current scene set for board {board_id}")
    board = details.board

    visible_column_ids = set(details.visible_column_ids)
    cards = [
        card
        for card in build_all_cards_data(db, board, scene)
        if card["column_id"] in visible_column_ids
    ]
    voted_on = VoteRepository(db).get_user_votes_by_card(user_id, board_id)
    for card in cards:
        card["user_voted"] = card["id"] in voted_on

    visible_cards = order_for_presentation(cards, votes_visible(scene, board.status))
    selected_card: Optional[Dict[str, Any]] = next(
        (c for c in visible_cards if c["id"] == scene.selected_card_id), None
    )

    comments: List[Dict[str, Any]] = []
    agreements: List[Dict[str, Any]] = []
    notes_lock = None
    if selected_card is not None:
        for comment in reversed(CommentRepository(db).find_by_card(selected_card["id"])):
            item = {
                "id": comment.id,
                "card_id": comment.card_id,
                "user_id": comment.user_id,
                "user_name": get_user_display_name(
                    comment.user_name or "Anonymous", board_id, board.blame_free_mode
                ),
                "content": comment.content,
                "is_agreement": comment.is_agreement,
                "created_at": comment.created_at,
            }
            (agreements if comment.is_agreement else comments).append(item)

        lock = notes_locks.get(selected_card["id"])
        notes_lock = {
            "locked": lock is not None,
            "locked_by": lock.user_name if lock else None,
        }

    return {
        "visible_cards": visible_cards,
        "selected_card": selected_card,
        "comments": comments,
        "agreements": agreements,
        "scene_permissions": {
            "allow_comments": is_allowed(scene, board.status, SceneFlag.ALLOW_COMMENTS),
            "allow_voting": is_allowed(scene, board.status, SceneFlag.ALLOW_VOTING),
            "allow_edit_cards": is_allowed(scene, board.status, SceneFlag.ALLOW_EDIT_CARDS),
            "show_votes": is_shown(scene, SceneFlag.SHOW_VOTES),
            "show_comments": is_shown(scene, SceneFlag.SHOW_COMMENTS),
        },
        "notes_lock": notes_lock,
    }
