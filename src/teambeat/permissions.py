"""
Scene permission evaluation.

Decides whether a capability is currently permitted on a board, based on
the board's lifecycle status and the current scene's flag set, and who
should hear about vote changes under the current scene.
"""

import enum
from typing import Literal, Optional, Protocol

from teambeat.scene_flags import VIEW_ONLY_FLAGS, SceneFlag


class BoardStatus(str, enum.Enum):
    """Board lifecycle states."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class SeriesRole(str, enum.Enum):
    """Roles a user can hold within a board series."""

    ADMIN = "admin"
    FACILITATOR = "facilitator"
    MEMBER = "member"


ACTIONABLE_STATUSES: frozenset[str] = frozenset(
    {BoardStatus.DRAFT.value, BoardStatus.ACTIVE.value}
)
MANAGER_ROLES: frozenset[str] = frozenset(
    {SeriesRole.ADMIN.value, SeriesRole.FACILITATOR.value}
)

VoteAudience = Literal["board", "user"]


class FlaggedScene(Protocol):
    """Anything exposing a scene's capability flags."""

    @property
    def flag_set(self) -> frozenset[SceneFlag]: ...


def _status_value(status: object) -> str:
    return status.value if isinstance(status, enum.Enum) else str(status)


def is_actionable(board_status: object) -> bool:
    """Whether a board in this status accepts changes."""
    return _status_value(board_status) in ACTIONABLE_STATUSES


def is_allowed(
    scene: Optional[FlaggedScene], board_status: object, capability: SceneFlag
) -> bool:
    """
    Check whether a capability is permitted right now.

    A capability is allowed only when the board is actionable (draft or
    active) and the capability is present in the scene's flag set. A missing
    scene allows nothing.

    Args:
        scene: The board's current scene, or None if no scene is set
        board_status: The board's lifecycle status
        capability: Capability to check

    Returns:
        True if the capability is allowed
    """
    if scene is None or capability not in scene.flag_set:
        return False
    return is_actionable(board_status)


def is_shown(scene: Optional[FlaggedScene], capability: SceneFlag) -> bool:
    """
    Check a view-only capability for display purposes.

    Completed and archived boards keep showing votes and comments the way the
    scene was configured, so this ignores the board status.

    Raises:
        ValueError: If the capability changes board content
    """
    if capability not in VIEW_ONLY_FLAGS:
        raise ValueError(f"{capability.value} is not a view-only capability")
    return scene is not None and capability in scene.flag_set


def vote_audience(
    scene: Optional[FlaggedScene], board_status: object
) -> Optional[VoteAudience]:
    """
    Decide who receives vote changes under the current scene.

    Returns:
        "board" when votes are revealed, "user" when voting is blind
        (only the voter hears about their own vote), None when neither
    """
    if scene is None:
        return None
    if SceneFlag.SHOW_VOTES in scene.flag_set:
        return "board"
    if is_allowed(scene, board_status, SceneFlag.ALLOW_VOTING):
        return "user"
    return None


def is_member(role: Optional[str]) -> bool:
    return role is not None


def can_manage_board(role: Optional[str]) -> bool:
    """Facilitators and admins run the meeting: scenes, columns, timers, votes."""
    return role in MANAGER_ROLES


def is_series_admin(role: Optional[str]) -> bool:
    return role == SeriesRole.ADMIN.value


def votes_visible(scene: Optional[FlaggedScene], board_status: object) -> bool:
    """Whether per-card vote totals may be shown to everyone on the board."""
    return vote_audience(scene, board_status) == "board"
