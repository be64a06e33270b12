"""
Board repository.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from teambeat.db.connection import with_transaction
from teambeat.db.repositories.base import BaseRepository
from teambeat.db.repositories.column import ColumnRepository
from teambeat.db.repositories.scene import SceneRepository
from teambeat.models.db import Board, BoardSeries, Column, Scene, utcnow
from teambeat.permissions import BoardStatus
from teambeat.services.board_templates import BoardTemplate

SETTINGS_FIELDS = frozenset(
    {"name", "blame_free_mode", "voting_allocation", "voting_enabled", "meeting_date"}
)

CLONEABLE_STATUSES = (
    BoardStatus.DRAFT.value,
    BoardStatus.ACTIVE.value,
    BoardStatus.COMPLETED.value,
)


@dataclass
class BoardDetails:
    """A board with its scenes and columns, as seen under its current scene."""

    board: Board
    columns: List[Column]
    all_columns: List[Column]
    scenes: List[Scene]
    hidden_columns_by_scene: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def current_scene(self) -> Optional[Scene]:
        if not self.board.current_scene_id:
            return None
        return next(
            (s for s in self.scenes if s.id == self.board.current_scene_id), None
        )

    @property
    def visible_column_ids(self) -> List[str]:
        return [column.id for column in self.columns]

    def find_scene(self, scene_id: str) -> Optional[Scene]:
        return next((s for s in self.scenes if s.id == scene_id), None)


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; treat naive values as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class BoardRepository(BaseRepository[Board]):
    """Repository for Board model."""

    def __init__(self, session: Session):
        super().__init__(Board, session)

    def create_board(
        self,
        series_id: str,
        name: str,
        meeting_date: Optional[str] = None,
        blame_free_mode: bool = False,
        voting_allocation: Optional[int] = None,
    ) -> Board:
        """
        Create an empty draft board in a series.

        Args:
            series_id: Owning series
            name: Board name
            meeting_date: Optional ISO date of the meeting
            blame_free_mode: Hide author names behind generated names
            voting_allocation: Max votes per user (defaults to 3)

        Returns:
            Created Board
        """
        return self.create(
            series_id=series_id,
            name=name,
            meeting_date=meeting_date,
            blame_free_mode=blame_free_mode,
            voting_allocation=voting_allocation if voting_allocation is not None else 3,
            status=BoardStatus.DRAFT.value,
        )

    def find_by_id(self, board_id: str) -> Optional[Board]:
        return self.get(board_id)

    def find_by_series(self, series_id: str) -> List[Board]:
        return (
            self.session.query(Board)
            .filter(Board.series_id == series_id)
            .order_by(Board.created_at.desc())
            .all()
        )

    def get_board_with_details(self, board_id: str) -> Optional[BoardDetails]:
        """
        Load a board with its scenes, columns and per-scene hidden columns.

        ``columns`` only holds columns visible in the current scene, while
        ``all_columns`` keeps every column for configuration screens.

        Args:
            board_id: Board id

        Returns:
            BoardDetails or None if the board does not exist
        """
        board = self.get(board_id)
        if board is None:
            return None

        column_repo = ColumnRepository(self.session)
        all_columns = column_repo.find_by_board(board_id)
        scenes = SceneRepository(self.session).find_by_board(board_id)
        hidden_by_scene = column_repo.get_hidden_columns_by_scene(
            [scene.id for scene in scenes]
        )

        hidden_now = set(hidden_by_scene.get(board.current_scene_id or "", []))
        visible_columns = [c for c in all_columns if c.id not in hidden_now]

        return BoardDetails(
            board=board,
            columns=visible_columns,
            all_columns=all_columns,
            scenes=scenes,
            hidden_columns_by_scene=hidden_by_scene,
        )

    def update_board_scene(self, board_id: str, scene_id: Optional[str]) -> Optional[Board]:
        return self.update(board_id, current_scene_id=scene_id)

    def update_board_status(self, board_id: str, status: str) -> Optional[Board]:
        return self.update(board_id, status=BoardStatus(status).value)

    def update_board_settings(self, board_id: str, **settings: Any) -> Optional[Board]:
        """
        Update board settings.

        Accepts name, blame_free_mode, voting_allocation, voting_enabled and
        meeting_date; anything else is ignored.

        Returns:
            Updated Board or None if not found
        """
        return self.update(
            board_id, **{k: v for k, v in settings.items() if k in SETTINGS_FIELDS}
        )

    def delete_board(self, board_id: str) -> bool:
        """
        Delete a board.

        Scenes, columns, cards, votes, comments and agreements are removed by
        the database's ON DELETE CASCADE constraints.

        Returns:
            True if the board existed
        """
        deleted = (
            self.session.query(Board)
            .filter(Board.id == board_id)
            .delete(synchronize_session="fetch")
        )
        return deleted > 0

    # ===== Configuration =====

    def has_configuration(self, board_id: str) -> bool:
        """Whether the board already has any columns or scenes."""
        return (
            self.session.query(Column.id).filter(Column.board_id == board_id).first()
            is not None
            or self.session.query(Scene.id).filter(Scene.board_id == board_id).first()
            is not None
        )

    def apply_template(
        self, board_id: str, template: BoardTemplate
    ) -> Tuple[List[Column], List[Scene]]:
        """
        Create a template's columns and scenes on a board.

        Scenes that name their visible columns get every other column
        hidden. The first scene becomes the board's current scene.

        Args:
            board_id: Board to configure (expected to be empty)
            template: Template to copy

        Returns:
            (created columns, created scenes) in order
        """
        column_repo = ColumnRepository(self.session)
        scene_repo = SceneRepository(self.session)
        with with_transaction(self.session):
            columns = [
                column_repo.create_column(
                    board_id, column.title, description=column.resolve_description(), seq=seq
                )
                for seq, column in enumerate(template.columns, start=1)
            ]
            scenes = []
            for seq, template_scene in enumerate(template.scenes, start=1):
                scene = scene_repo.create_scene(
                    board_id,
                    template_scene.title,
                    template_scene.mode.value,
                    flags=template_scene.flags,
                    seq=seq,
                )
                if template_scene.visible_columns is not None:
                    for column in columns:
                        if column.title not in template_scene.visible_columns:
                            column_repo.set_scene_visibility(scene.id, column.id, "hidden")
                scenes.append(scene)
            if scenes:
                self.update_board_scene(board_id, scenes[0].id)
        return columns, scenes

    def clone_configuration(
        self, source_board_id: str, target_board_id: str
    ) -> Tuple[List[Column], List[Scene]]:
        """
        Copy another board's columns, scenes, flags and column visibility.

        Cards, votes and comments are not copied. The first cloned scene
        becomes the target's current scene.

        Args:
            source_board_id: Board to copy from
            target_board_id: Board to copy into (expected to be empty)

        Returns:
            (created columns, created scenes) in order
        """
        column_repo = ColumnRepository(self.session)
        scene_repo = SceneRepository(self.session)
        source_scenes = scene_repo.find_by_board(source_board_id)
        hidden_by_scene = column_repo.get_hidden_columns_by_scene(
            [scene.id for scene in source_scenes]
        )
        with with_transaction(self.session):
            column_ids: Dict[str, str] = {}
            columns = []
            for source in column_repo.find_by_board(source_board_id):
                column = column_repo.create_column(
                    target_board_id,
                    source.title,
                    description=source.description,
                    default_appearance=source.default_appearance,
                    seq=source.seq,
                )
                column_ids[source.id] = column.id
                columns.append(column)

            scenes = []
            for source in source_scenes:
                scene = scene_repo.create_scene(
                    target_board_id,
                    source.title,
                    source.mode,
                    description=source.description,
                    flags=source.flag_set,
                    seq=source.seq,
                )
                for column_id in hidden_by_scene.get(source.id, []):
                    if column_id in column_ids:
                        column_repo.set_scene_visibility(
                            scene.id, column_ids[column_id], "hidden"
                        )
                scenes.append(scene)
            if scenes:
                self.update_board_scene(target_board_id, scenes[0].id)
        return columns, scenes

    def find_clone_sources(self, board: Board, series_ids: List[str]) -> Dict[str, Any]:
        """
        Boards a user may copy a configuration from.

        Args:
            board: Board being set up
            series_ids: Series the user belongs to

        Returns:
            Dict with ``current_series`` (every other draft, active or
            completed board in the board's series, oldest first) and
            ``other_series`` (the newest active or completed board of each
            other series)
        """
        rows = (
            self.session.query(Board, BoardSeries.name)
            .join(BoardSeries, BoardSeries.id == Board.series_id)
            .filter(
                Board.series_id.in_(series_ids),
                Board.status.in_(CLONEABLE_STATUSES),
                Board.id != board.id,
            )
            .order_by(Board.created_at)
            .all()
        )
        current_series = []
        latest_by_series: Dict[str, Dict[str, Any]] = {}
        for row, series_name in rows:
            source = {
                "id": row.id,
                "name": row.name,
                "status": row.status,
                "meeting_date": row.meeting_date,
                "created_at": row.created_at,
                "series_id": row.series_id,
                "series_name": series_name,
            }
            if row.series_id == board.series_id:
                current_series.append(source)
            elif row.status != BoardStatus.DRAFT.value:
                latest_by_series[row.series_id] = source
        return {
            "current_series": current_series,
            "other_series": list(latest_by_series.values()),
        }

    # ===== Timer =====

    def start_timer(self, board_id: str, duration_seconds: int) -> Optional[Board]:
        return self.update(
            board_id, timer_started_at=utcnow(), timer_duration=duration_seconds
        )

    def extend_timer(self, board_id: str, add_seconds: int) -> Optional[Board]:
        """
        Add (or with a negative value, remove) time from a running timer.

        The duration never drops below the time already elapsed.

        Returns:
            Updated Board, or None if the board has no running timer
        """
        board = self.get(board_id)
        if board is None or board.timer_started_at is None:
            return None
        elapsed = int((utcnow() - as_utc(board.timer_started_at)).total_seconds())
        new_duration = max(elapsed, (board.timer_duration or 0) + add_seconds)
        return self.update(board_id, timer_duration=new_duration)

    def stop_timer(self, board_id: str) -> Optional[Board]:
        return self.update(board_id, timer_started_at=None, timer_duration=None)

    @staticmethod
    def timer_state(board: Board, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Compute the timer's elapsed/remaining seconds.

        Args:
            board: Board to inspect
            now: Reference time (defaults to the current UTC time)

        Returns:
            Dict with timer_passed, timer_remaining and active
        """
        if board.timer_started_at is None or board.timer_duration is None:
            return {"timer_passed": 0, "timer_remaining": 0, "active": False}
        now = now or utcnow()
        passed = max(0, int((now - as_utc(board.timer_started_at)).total_seconds()))
        remaining = max(0, board.timer_duration - passed)
        return {
            "timer_passed": passed,
            "timer_remaining": remaining,
            "active": remaining > 0,
        }
