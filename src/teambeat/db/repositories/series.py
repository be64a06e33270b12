"""
Board series repository.
"""

import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from teambeat.db.connection import with_transaction
from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import Board, BoardSeries, SeriesMember, User, generate_id
from teambeat.permissions import MANAGER_ROLES, BoardStatus, SeriesRole


def slugify(name: str) -> str:
    """Lower-case a name and replace every non-alphanumeric character with '-'."""
    return re.sub(r"[^a-z0-9]", "-", name.lower())


class SeriesRepository(BaseRepository[BoardSeries]):
    """Repository for BoardSeries and SeriesMember models."""

    def __init__(self, session: Session):
        super().__init__(BoardSeries, session)

    def create_series(
        self,
        name: str,
        creator_id: str,
        description: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> BoardSeries:
        """
        Create a series and make its creator an admin.

        The stored slug is the base slug plus the first 8 characters of the
        series id, so two series with the same name never collide.

        Args:
            name: Series name
            creator_id: User creating the series
            description: Optional description
            slug: Optional base slug (defaults to the slugified name)

        Returns:
            Created BoardSeries
        """
        series_id = generate_id()
        base_slug = slug or slugify(name)
        with with_transaction(self.session):
            series = BoardSeries(
                id=series_id,
                name=name,
                slug=f"{base_slug}-{series_id[:8]}",
                description=description,
            )
            self.session.add(series)
            self.session.flush()
            self.session.add(
                SeriesMember(
                    series_id=series_id,
                    user_id=creator_id,
                    role=SeriesRole.ADMIN.value,
                )
            )
        self.session.flush()
        return series

    def find_by_id(self, series_id: str) -> Optional[BoardSeries]:
        return self.get(series_id)

    def find_series_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Get all series a user belongs to, with the user's role.

        Args:
            user_id: User id

        Returns:
            List of dicts with id, name, slug, description, created_at, role
        """
        rows = (
            self.session.query(BoardSeries, SeriesMember.role)
            .join(SeriesMember, SeriesMember.series_id == BoardSeries.id)
            .filter(SeriesMember.user_id == user_id)
            .order_by(BoardSeries.name)
            .all()
        )
        return [
            {
                "id": series.id,
                "name": series.name,
                "slug": series.slug,
                "description": series.description,
                "created_at": series.created_at,
                "role": role,
            }
            for series, role in rows
        ]

    def find_series_with_boards_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Get a user's series with their boards.

        Draft boards are only listed for facilitators and admins.

        Args:
            user_id: User id

        Returns:
            List of series dicts, each with a "boards" list
        """
        result = []
        for series in self.find_series_by_user(user_id):
            query = (
                self.session.query(Board)
                .filter(Board.series_id == series["id"])
                .order_by(Board.created_at.desc())
            )
            if series["role"] not in MANAGER_ROLES:
                query = query.filter(Board.status != BoardStatus.DRAFT.value)
            boards = query.all()
            current = next(
                (b for b in boards if b.status == BoardStatus.ACTIVE.value), None
            )
            result.append(
                {
                    **series,
                    "boards": [
                        {
                            "id": board.id,
                            "name": board.name,
                            "status": board.status,
                            "meeting_date": board.meeting_date,
                            "created_at": board.created_at,
                            "updated_at": board.updated_at,
                        }
                        for board in boards
                    ],
                    "current_board_id": current.id if current else None,
                }
            )
        return result

    def get_user_role_in_series(self, user_id: str, series_id: str) -> Optional[str]:
        """
        Get a user's role in a series.

        Site admins are treated as series admins everywhere.

        Args:
            user_id: User id
            series_id: Series id

        Returns:
            Role name, or None if the user is not a member
        """
        user = self.session.get(User, user_id)
        if user is None:
            return None
        if user.is_admin:
            return SeriesRole.ADMIN.value
        membership = self.get_membership(series_id, user_id)
        return membership.role if membership else None

    def get_membership(self, series_id: str, user_id: str) -> Optional[SeriesMember]:
        return self.session.get(SeriesMember, (series_id, user_id))

    def add_member(self, series_id: str, user_id: str, role: str) -> SeriesMember:
        """
        Add a user to a series.

        Raises:
            sqlalchemy.exc.IntegrityError: If the user is already a member
        """
        member = SeriesMember(series_id=series_id, user_id=user_id, role=role)
        self.session.add(member)
        self.session.flush()
        return member

    def update_member_role(
        self, series_id: str, user_id: str, role: str
    ) -> Optional[SeriesMember]:
        membership = self.get_membership(series_id, user_id)
        if membership is None:
            return None
        membership.role = role
        self.session.flush()
        return membership

    def remove_member(self, series_id: str, user_id: str) -> bool:
        deleted = (
            self.session.query(SeriesMember)
            .filter(
                SeriesMember.series_id == series_id,
                SeriesMember.user_id == user_id,
            )
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def get_members(self, series_id: str) -> List[Dict[str, Any]]:
        """
        List members of a series ordered by role, then name.

        Args:
            series_id: Series id

        Returns:
            List of dicts with user_id, user_name, email, role, joined_at
        """
        rows = (
            self.session.query(SeriesMember)
            .join(User, User.id == SeriesMember.user_id)
            .filter(SeriesMember.series_id == series_id)
            .order_by(SeriesMember.role, User.name)
            .all()
        )
        return [
            {
                "user_id": member.user_id,
                "user_name": member.user.name,
                "email": member.user.email,
                "role": member.role,
                "joined_at": member.joined_at,
            }
            for member in rows
        ]

    def get_member_user_ids(self, series_id: str) -> List[str]:
        rows = (
            self.session.query(SeriesMember.user_id)
            .filter(SeriesMember.series_id == series_id)
            .all()
        )
        return [row[0] for row in rows]

    def delete_series(self, series_id: str) -> bool:
        """Delete a series; boards and memberships cascade in the database."""
        deleted = (
            self.session.query(BoardSeries)
            .filter(BoardSeries.id == series_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0
