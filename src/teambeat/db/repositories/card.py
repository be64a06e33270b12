"""
Card repository, including card grouping.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.repositories.base import BaseRepository
from teambeat.exceptions import CardNotFoundError, NotGroupLeadError
from teambeat.models.db import Card, Column, Vote, generate_id

UPDATABLE_FIELDS = frozenset({"content", "notes", "group_id", "is_group_lead", "seq"})


def card_to_dict(card: Card, vote_count: int = 0) -> Dict[str, Any]:
    """Plain representation of a card used by API responses and events."""
    return {
        "id": card.id,
        "column_id": card.column_id,
        "user_id": card.user_id,
        "user_name": card.user_name,
        "content": card.content,
        "notes": card.notes,
        "group_id": card.group_id,
        "is_group_lead": card.is_group_lead,
        "seq": card.seq,
        "created_at": card.created_at,
        "updated_at": card.updated_at,
        "vote_count": vote_count,
    }


class CardRepository(BaseRepository[Card]):
    """Repository for Card model."""

    def __init__(self, session: Session):
        super().__init__(Card, session)

    def create_card(
        self,
        column_id: str,
        user_id: str,
        content: str,
        group_id: Optional[str] = None,
        is_group_lead: bool = False,
    ) -> Card:
        """
        Create a card in a column.

        Args:
            column_id: Column the card belongs to
            user_id: Author
            content: Card text
            group_id: Optional group to join
            is_group_lead: Whether the card leads its group

        Returns:
            Created Card
        """
        return self.create(
            column_id=column_id,
            user_id=user_id,
            content=content,
            group_id=group_id,
            is_group_lead=is_group_lead,
        )

    def find_by_id(self, card_id: str) -> Optional[Card]:
        return self.get(card_id)

    def find_board_id(self, card_id: str) -> Optional[str]:
        """
        Get the id of the board a card lives on.

        Args:
            card_id: Card id

        Returns:
            Board id or None if the card does not exist
        """
        row = (
            self.session.query(Column.board_id)
            .join(Card, Card.column_id == Column.id)
            .filter(Card.id == card_id)
            .first()
        )
        return row[0] if row else None

    def update_card(self, card_id: str, **fields: Any) -> Optional[Card]:
        return self.update(
            card_id, **{k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        )

    def delete_card(self, card_id: str) -> bool:
        deleted = (
            self.session.query(Card)
            .filter(Card.id == card_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def get_card_vote_count(self, card_id: str) -> int:
        return self.session.query(Vote).filter(Vote.card_id == card_id).count()

    def get_cards_for_board(self, board_id: str) -> List[Dict[str, Any]]:
        """
        Get every card on a board with its total vote count.

        Args:
            board_id: Board id

        Returns:
            Card dicts ordered by creation time
        """
        vote_count = func.count(Vote.id).label("vote_count")
        rows = (
            self.session.query(Card, vote_count)
            .join(Column, Column.id == Card.column_id)
            .outerjoin(Vote, Vote.card_id == Card.id)
            .filter(Column.board_id == board_id)
            .group_by(Card.id)
            .order_by(Card.created_at)
            .all()
        )
        return [card_to_dict(card, count) for card, count in rows]

    def get_cards_for_column(self, column_id: str) -> List[Dict[str, Any]]:
        """
        Get a column's cards with their vote counts.

        Args:
            column_id: Column id

        Returns:
            Card dicts ordered by creation time
        """
        vote_count = func.count(Vote.id).label("vote_count")
        rows = (
            self.session.query(Card, vote_count)
            .outerjoin(Vote, Vote.card_id == Card.id)
            .filter(Card.column_id == column_id)
            .group_by(Card.id)
            .order_by(Card.created_at)
            .all()
        )
        return [card_to_dict(card, count) for card, count in rows]

    def get_group_members(self, group_id: str) -> List[Card]:
        return (
            self.session.query(Card)
            .filter(Card.group_id == group_id)
            .order_by(Card.is_group_lead.desc(), Card.created_at)
            .all()
        )

    def group_cards(
        self, card_ids: Sequence[str], group_id: Optional[str] = None
    ) -> Tuple[str, List[str]]:
        """
        Put cards into one group.

        Reusing the same group id is idempotent: the group's membership is the
        same after a repeated call. If the group has no lead afterwards, the
        first card becomes the lead. A card taken out of another group leaves
        that group repaired the way ungroup_card() repairs it.

        Args:
            card_ids: Cards to group
            group_id: Existing group id to join, or None to start a new group

        Returns:
            (group id, ids of cards outside the group whose grouping changed)
        """
        target_group_id = group_id or generate_id()
        cards = self.session.query(Card).filter(Card.id.in_(list(card_ids))).all()
        by_id = {card.id: card for card in cards}
        repaired: List[str] = []
        for card_id in card_ids:
            card = by_id.get(card_id)
            if card is None or card.group_id == target_group_id:
                continue
            if card.group_id:
                repaired.extend(self.ungroup_card(card.id))
            card.group_id = target_group_id
            card.is_group_lead = False
        self.session.flush()

        members = self.get_group_members(target_group_id)
        if members and not any(card.is_group_lead for card in members):
            lead = by_id.get(card_ids[0]) or members[0]
            lead.is_group_lead = True
            self.session.flush()
        member_ids = {card.id for card in members}
        return target_group_id, [
            card_id for card_id in dict.fromkeys(repaired) if card_id not in member_ids
        ]

    def ungroup_card(self, card_id: str) -> List[str]:
        """
        Remove a card from its group and repair what is left.

        A group left with a single card is dissolved; a group left without a
        lead gets its oldest remaining card promoted.

        Args:
            card_id: Card to remove from its group

        Returns:
            Ids of other cards whose grouping changed
        """
        card = self.get(card_id)
        if card is None or not card.group_id:
            return []

        original_group_id = card.group_id
        card.group_id = None
        card.is_group_lead = False
        self.session.flush()

        remaining = self.get_group_members(original_group_id)
        affected: List[str] = []
        if len(remaining) == 1:
            remaining[0].group_id = None
            remaining[0].is_group_lead = False
            affected.append(remaining[0].id)
        elif len(remaining) > 1 and not any(c.is_group_lead for c in remaining):
            remaining[0].is_group_lead = True
            affected.append(remaining[0].id)
        self.session.flush()
        return affected

    def move_card_to_column(self, card_id: str, column_id: str) -> Optional[Card]:
        return self.update(card_id, column_id=column_id)

    def group_card_onto_target(
        self, dragged_card_id: str, target_card_id: str
    ) -> Tuple[str, List[str]]:
        """
        Drop one card onto another to group them.

        The target becomes the group lead if it was ungrouped. Dropping a
        group lead moves its whole group under the target's group. Dropping
        a card onto a member of its own group changes nothing.

        Args:
            dragged_card_id: Card being dropped
            target_card_id: Card it is dropped onto

        Returns:
            (group id, ids of other cards whose grouping changed)

        Raises:
            CardNotFoundError: If either card does not exist
        """
        dragged = self.get(dragged_card_id)
        target = self.get(target_card_id)
        if dragged is None:
            raise CardNotFoundError(dragged_card_id)
        if target is None:
            raise CardNotFoundError(target_card_id)
        if dragged.group_id and dragged.group_id == target.group_id:
            return target.group_id, []

        target_group_id = target.group_id or generate_id()
        if not target.group_id:
            target.group_id = target_group_id
            target.is_group_lead = True

        if dragged.group_id and dragged.is_group_lead:
            moved = (
                self.session.query(Card).filter(Card.group_id == dragged.group_id).all()
            )
            for card in moved:
                card.column_id = target.column_id
                card.group_id = target_group_id
                card.is_group_lead = False
            self.session.flush()
            return target_group_id, [c.id for c in moved if c.id != dragged.id]

        affected: List[str] = []
        if dragged.group_id:
            affected = self.ungroup_card(dragged.id)
        dragged.column_id = target.column_id
        dragged.group_id = target_group_id
        dragged.is_group_lead = False
        self.session.flush()
        return target_group_id, affected

    def move_group_to_column(self, lead_card_id: str, column_id: str) -> List[str]:
        """
        Move a group lead and all of its group members to another column.

        Returns:
            Ids of the moved cards

        Raises:
            NotGroupLeadError: If the card does not lead a group
        """
        lead = self.get(lead_card_id)
        if lead is None or not lead.group_id or not lead.is_group_lead:
            raise NotGroupLeadError(lead_card_id)
        members = self.get_group_members(lead.group_id)
        for card in members:
            card.column_id = column_id
        self.session.flush()
        return [card.id for card in members]
