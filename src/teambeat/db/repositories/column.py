"""
Column repository, including per-scene column visibility.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.connection import with_transaction
from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import Column, SceneColumn


class ColumnRepository(BaseRepository[Column]):
    """Repository for Column and SceneColumn models."""

    def __init__(self, session: Session):
        super().__init__(Column, session)

    def create_column(
        self,
        board_id: str,
        title: str,
        description: Optional[str] = None,
        default_appearance: str = "shown",
        seq: Optional[int] = None,
    ) -> Column:
        """
        Create a column at the end of the board (or at an explicit seq).

        Args:
            board_id: Owning board
            title: Column title
            description: Optional description
            default_appearance: "shown" or "hidden"
            seq: Explicit position; defaults to max(seq) + 1

        Returns:
            Created Column
        """
        if seq is None:
            max_seq = (
                self.session.query(func.max(Column.seq))
                .filter(Column.board_id == board_id)
                .scalar()
            )
            seq = (max_seq or 0) + 1
        return self.create(
            board_id=board_id,
            title=title,
            description=description,
            default_appearance=default_appearance,
            seq=seq,
        )

    def find_by_id(self, column_id: str) -> Optional[Column]:
        return self.get(column_id)

    def find_by_board(self, board_id: str) -> List[Column]:
        """
        Get a board's columns in display order.

        Args:
            board_id: Board id

        Returns:
            Columns ordered by seq
        """
        return (
            self.session.query(Column)
            .filter(Column.board_id == board_id)
            .order_by(Column.seq)
            .all()
        )

    def update_column(self, column_id: str, **fields) -> Optional[Column]:
        allowed = {"title", "description", "default_appearance"}
        return self.update(
            column_id, **{k: v for k, v in fields.items() if k in allowed}
        )

    def delete_column(self, column_id: str) -> bool:
        """Delete a column; its cards cascade in the database."""
        deleted = (
            self.session.query(Column)
            .filter(Column.id == column_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def reorder_columns(self, board_id: str, orders: Sequence[Tuple[str, int]]) -> None:
        """
        Apply new seq values to a board's columns in one transaction.

        Ids that do not belong to the board are ignored.

        Args:
            board_id: Board id
            orders: (column_id, seq) pairs
        """
        with with_transaction(self.session):
            for column_id, seq in orders:
                self.session.query(Column).filter(
                    Column.id == column_id, Column.board_id == board_id
                ).update({"seq": seq}, synchronize_session="fetch")

    def set_scene_visibility(self, scene_id: str, column_id: str, state: str) -> SceneColumn:
        """
        Mark a column visible or hidden within a scene.

        Args:
            scene_id: Scene id
            column_id: Column id
            state: "visible" or "hidden"

        Returns:
            The upserted SceneColumn
        """
        row = self.session.get(SceneColumn, (scene_id, column_id))
        if row is None:
            row = SceneColumn(scene_id=scene_id, column_id=column_id, state=state)
            self.session.add(row)
        else:
            row.state = state
        self.session.flush()
        return row

    def get_hidden_columns_by_scene(self, scene_ids: Sequence[str]) -> Dict[str, List[str]]:
        """
        Map each scene to the columns hidden in it.

        Args:
            scene_ids: Scenes to look up

        Returns:
            Dict of scene_id -> hidden column ids (scenes with none are omitted)
        """
        if not scene_ids:
            return {}
        rows = (
            self.session.query(SceneColumn.scene_id, SceneColumn.column_id)
            .filter(
                SceneColumn.scene_id.in_(list(scene_ids)),
                SceneColumn.state == "hidden",
            )
            .all()
        )
        hidden: Dict[str, List[str]] = {}
        for scene_id, column_id in rows:
            hidden.setdefault(scene_id, []).append(column_id)
        return hidden

    def get_visible_column_ids(self, board_id: str, scene_id: Optional[str]) -> List[str]:
        """
        Get ids of a board's columns that are not hidden in a scene.

        Args:
            board_id: Board id
            scene_id: Scene id, or None to return every column

        Returns:
            Column ids ordered by seq
        """
        columns = self.find_by_board(board_id)
        if scene_id is None:
            return [column.id for column in columns]
        hidden = set(self.get_hidden_columns_by_scene([scene_id]).get(scene_id, []))
        return [column.id for column in columns if column.id not in hidden]
