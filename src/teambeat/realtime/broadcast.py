"""
Broadcast composer.

Builds the payloads for board events and fans them out through the SSE
manager. Most events go to everyone on the board; present-mode views are
rebuilt per user, and vote changes go to whoever
``permissions.vote_audience`` says may see them.

A request-scoped broadcaster is created with ``deferred=True``: events are
queued while the route runs and only sent by ``flush()`` once the route's
transaction has committed. Events from a route that fails are dropped.

Error policy: vote broadcasts log and re-raise so the route fails loudly.
Presence and scene broadcasts log and fall back to a payload without the
enriched data.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from teambeat.db.repositories import VoteRepository
from teambeat.models.db import Board, Scene
from teambeat.permissions import vote_audience
from teambeat.realtime.events import BoardEvent
from teambeat.realtime.manager import SSEManager
from teambeat.scene_flags import SceneMode
from teambeat.services.cards import build_all_cards_data
from teambeat.services.present_mode import build_present_mode_data
from teambeat.services.presence import build_presence_data
from teambeat.services.voting import build_user_voting_data, build_voting_stats
from teambeat.stores.notes_lock import NotesLockStore
from teambeat.stores.presence import PresenceStore

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Composes and sends board events.

    Example:
        >>> broadcaster = Broadcaster(sse_manager, presence, notes_locks)
        >>> broadcaster.card_deleted(board.id, card_id)
    """

    def __init__(
        self,
        manager: SSEManager,
        presence: PresenceStore,
        notes_locks: NotesLockStore,
        deferred: bool = False,
    ):
        self.manager = manager
        self.presence = presence
        self.notes_locks = notes_locks
        self.deferred = deferred
        self._pending: List[Callable[[], int]] = []

    # ===== Delivery =====

    def _deliver(self, send: Callable[[], int]) -> int:
        if self.deferred:
            self._pending.append(send)
            return 0
        return send()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def flush(self) -> int:
        """Send every held event in order; returns clients reached."""
        pending, self._pending = self._pending, []
        return sum(send() for send in pending)

    def discard(self) -> None:
        self._pending.clear()

    # ===== Plain events =====

    def emit(
        self,
        board_id: str,
        event_type: str,
        exclude_user_id: Optional[str] = None,
        **data: Any,
    ) -> int:
        """
        Send one event to everyone on a board.

        Returns:
            Clients reached, or 0 when the event is held until flush()
        """
        event = BoardEvent(event_type, board_id, data)
        return self._deliver(
            lambda: self.manager.broadcast_to_board(
                board_id, event, exclude_user_id=exclude_user_id
            )
        )

    def emit_to_user(self, board_id: str, user_id: str, event_type: str, **data: Any) -> int:
        event = BoardEvent(event_type, board_id, data)
        return self._deliver(lambda: self.manager.broadcast_to_user(board_id, user_id, event))

    def card_created(self, board_id: str, card: Dict[str, Any]) -> int:
        return self.emit(board_id, "card_created", card=card)

    def card_updated(self, board_id: str, card: Dict[str, Any]) -> int:
        return self.emit(board_id, "card_updated", card=card)

    def card_deleted(self, board_id: str, card_id: str) -> int:
        return self.emit(board_id, "card_deleted", card_id=card_id)

    def comment_added(self, board_id: str, comment: Dict[str, Any]) -> int:
        return self.emit(board_id, "comment_added", comment=comment)

    def board_updated(self, board_id: str, board: Dict[str, Any]) -> int:
        return self.emit(board_id, "board_updated", board=board)

    def columns_updated(self, board_id: str, columns: List[Dict[str, Any]]) -> int:
        return self.emit(board_id, "columns_updated", columns=columns)

    def scene_created(self, board_id: str, scene: Dict[str, Any]) -> int:
        return self.emit(board_id, "scene_created", scene=scene)

    def scene_updated(self, board_id: str, scene_id: str) -> int:
        return self.emit(board_id, "scene_updated", scene_id=scene_id)

    def agreements_updated(self, board_id: str, agreements: List[Dict[str, Any]]) -> int:
        return self.emit(board_id, "agreements_updated", agreements=agreements)

    def timer_update(self, board_id: str, timer: Dict[str, Any]) -> int:
        return self.emit(board_id, "timer_update", **timer)

    # ===== Scene changes =====

    def _connected_user_ids(self, board_id: str) -> List[str]:
        return list(
            dict.fromkeys(c["user_id"] for c in self.manager.get_connected_users(board_id))
        )

    def _send_present_views(
        self, db: Session, board_id: str, event_type: str, **data: Any
    ) -> None:
        for user_id in self._connected_user_ids(board_id):
            try:
                view = build_present_mode_data(db, board_id, user_id, self.notes_locks)
            except Exception:
                logger.exception(
                    f"Failed to build present mode data for user {user_id} on board {board_id}"
                )
                self.emit_to_user(board_id, user_id, event_type, **data)
                continue
            self.emit_to_user(
                board_id, user_id, event_type, present_mode_data=view, **data
            )

    def scene_changed(
        self, db: Session, board: Board, scene: Scene, scene_data: Dict[str, Any]
    ) -> None:
        """
        Announce a switch of the board's current scene.

        Switching to a present scene sends every connected user their own
        present-mode view. Any other scene gets one shared payload that
        includes all cards as seen under the new scene.
        """
        if scene.mode == SceneMode.PRESENT.value:
            self._send_present_views(db, board.id, "scene_changed", scene=scene_data)
            return

        try:
            all_cards = build_all_cards_data(db, board, scene)
        except Exception:
            logger.exception(f"Failed to build cards data for scene change on board {board.id}")
            self.emit(board.id, "scene_changed", scene=scene_data)
            return
        self.emit(board.id, "scene_changed", scene=scene_data, all_cards=all_cards)

    def update_presentation(self, db: Session, board_id: str, **update: Any) -> None:
        """Push refreshed present-mode views after the selected card or its discussion changes."""
        self._send_present_views(db, board_id, "update_presentation", **update)

    # ===== Presence =====

    def _presence_event(
        self, db: Session, board: Board, event_type: str, user_id: str, **extra: Any
    ) -> None:
        try:
            presence_data = build_presence_data(db, board, self.presence)
        except Exception:
            logger.exception(f"Failed to build presence data for {event_type} on board {board.id}")
            self.emit(board.id, event_type, user_id=user_id, **extra)
            return
        self.emit(
            board.id, event_type, user_id=user_id, presence_data=presence_data, **extra
        )

    def user_joined(self, db: Session, board: Board, user_id: str) -> None:
        self._presence_event(db, board, "user_joined", user_id)

    def user_left(self, db: Session, board: Board, user_id: str) -> None:
        self._presence_event(db, board, "user_left", user_id)

    def presence_update(
        self, db: Session, board: Board, user_id: str, activity: Optional[str]
    ) -> None:
        self._presence_event(db, board, "presence_update", user_id, activity=activity)

    # ===== Votes =====

    def vote_changed(
        self,
        db: Session,
        board: Board,
        scene: Optional[Scene],
        card_id: str,
        vote_count: Optional[int],
        user_id: str,
        voting_stats: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Announce a vote on a card.

        With votes revealed everyone gets the new total. Under blind voting
        only the voter's own streams hear about it, along with their
        per-card votes.

        Returns:
            Number of clients reached

        Raises:
            Exception: Anything raised while building the payload
        """
        try:
            audience = vote_audience(scene, board.status)
            if audience is None:
                return 0
            stats = voting_stats or build_voting_stats(db, board, self.presence)
            if audience == "board":
                return self.emit(
                    board.id,
                    "vote_changed",
                    card_id=card_id,
                    vote_count=vote_count,
                    voting_stats=stats,
                )
            return self.emit_to_user(
                board.id,
                user_id,
                "vote_changed",
                card_id=card_id,
                vote_count=vote_count,
                user_id=user_id,
                user_voting_data=build_user_voting_data(db, board.id, user_id),
                voting_stats=stats,
            )
        except Exception:
            logger.exception(f"Failed to broadcast vote change on card {card_id}")
            raise

    def vote_updates_for_scene(
        self,
        db: Session,
        board: Board,
        scene: Optional[Scene],
        triggering_user_id: Optional[str] = None,
        votes_cleared: bool = False,
        voting_stats: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Follow a vote change with board-wide vote updates for the current scene.

        With votes revealed, everyone gets ``all_votes_updated`` with every
        card's total. Under blind voting, everyone else gets
        ``voting_stats_updated``; when votes were cleared (or nobody in
        particular triggered the change) everyone gets it.

        Returns:
            Number of clients reached

        Raises:
            Exception: Anything raised while building the payload
        """
        try:
            audience = vote_audience(scene, board.status)
            if audience is None:
                return 0
            stats = voting_stats or build_voting_stats(db, board, self.presence)
            if audience == "board":
                return self.emit(
                    board.id,
                    "all_votes_updated",
                    all_votes_by_card=VoteRepository(db).get_vote_counts_by_card(board.id),
                    voting_stats=stats,
                    votes_cleared=votes_cleared,
                )
            if votes_cleared:
                return self.emit(
                    board.id, "voting_stats_updated", voting_stats=stats, votes_cleared=True
                )
            return self.emit(
                board.id,
                "voting_stats_updated",
                exclude_user_id=triggering_user_id,
                voting_stats=stats,
            )
        except Exception:
            logger.exception(f"Failed to broadcast vote updates on board {board.id}")
            raise
