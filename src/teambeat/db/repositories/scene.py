"""
Scene repository.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from teambeat.db.connection import with_transaction
from teambeat.db.repositories.base import BaseRepository
from teambeat.models.db import Scene, SceneFlagRow
from teambeat.scene_flags import SceneFlag, default_flags_for

UPDATABLE_FIELDS = frozenset(
    {"title", "description", "selected_card_id", "display_mode", "focused_question_id"}
)


class SceneRepository(BaseRepository[Scene]):
    """Repository for Scene model and its capability flags."""

    def __init__(self, session: Session):
        super().__init__(Scene, session)

    def create_scene(
        self,
        board_id: str,
        title: str,
        mode: str,
        description: Optional[str] = None,
        flags: Optional[Iterable[SceneFlag]] = None,
        seq: Optional[int] = None,
    ) -> Scene:
        """
        Create a scene at the end of a board's workflow.

        Args:
            board_id: Owning board
            title: Scene title
            mode: Scene mode (columns, present, review, ...)
            description: Optional description
            flags: Explicit flag set; defaults to the mode's defaults
            seq: Explicit position; defaults to max(seq) + 1

        Returns:
            Created Scene with its flags loaded
        """
        if seq is None:
            max_seq = (
                self.session.query(func.max(Scene.seq))
                .filter(Scene.board_id == board_id)
                .scalar()
            )
            seq = (max_seq or 0) + 1
        flag_set = default_flags_for(mode) if flags is None else frozenset(flags)

        scene = Scene(
            board_id=board_id,
            title=title,
            description=description,
            mode=mode,
            seq=seq,
        )
        scene.flags = [SceneFlagRow(flag=flag.value) for flag in sorted(flag_set)]
        self.session.add(scene)
        self.session.flush()
        return scene

    def find_by_id(self, scene_id: str) -> Optional[Scene]:
        return self.get(scene_id)

    def find_by_board(self, board_id: str) -> List[Scene]:
        """
        Get a board's scenes in workflow order.

        Args:
            board_id: Board id

        Returns:
            Scenes ordered by seq
        """
        return (
            self.session.query(Scene)
            .filter(Scene.board_id == board_id)
            .order_by(Scene.seq)
            .all()
        )

    def update_scene(self, scene_id: str, **fields) -> Optional[Scene]:
        """
        Update scene attributes.

        Only title, description, selected_card_id, display_mode and
        focused_question_id may be changed this way; flags go through
        set_flags().

        Returns:
            Updated Scene or None if not found
        """
        return self.update(
            scene_id, **{k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        )

    def delete_scene(self, scene_id: str) -> bool:
        deleted = (
            self.session.query(Scene)
            .filter(Scene.id == scene_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    def reorder_scenes(self, board_id: str, orders: Sequence[Tuple[str, int]]) -> None:
        """
        Apply new seq values to a board's scenes in one transaction.

        Args:
            board_id: Board id
            orders: (scene_id, seq) pairs
        """
        with with_transaction(self.session):
            for scene_id, seq in orders:
                self.session.query(Scene).filter(
                    Scene.id == scene_id, Scene.board_id == board_id
                ).update({"seq": seq}, synchronize_session="fetch")

    def get_flags(self, scene_id: str) -> frozenset[SceneFlag]:
        scene = self.get(scene_id)
        return scene.flag_set if scene else frozenset()

    def set_flags(self, scene_id: str, flags: Iterable[SceneFlag]) -> Optional[Scene]:
        """
        Replace a scene's flag set.

        Args:
            scene_id: Scene id
            flags: New flag set

        Returns:
            Updated Scene or None if not found
        """
        scene = self.get(scene_id)
        if scene is None:
            return None
        wanted = frozenset(flags)
        scene.flags = [row for row in scene.flags if SceneFlag(row.flag) in wanted]
        existing = scene.flag_set
        for flag in sorted(wanted - existing):
            scene.flags.append(SceneFlagRow(flag=flag.value))
        self.session.flush()
        return scene

    def has_flag(self, scene_id: str, flag: SceneFlag) -> bool:
        return (
            self.session.query(SceneFlagRow)
            .filter(SceneFlagRow.scene_id == scene_id, SceneFlagRow.flag == flag.value)
            .first()
            is not None
        )
