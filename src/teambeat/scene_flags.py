"""
Scene capability flags.

A scene grants capabilities to participants through a set of flags drawn
from a closed registry. Each scene mode has a default flag set that is
copied onto a scene when it is created; facilitators may edit a scene's
flags afterwards.
"""

import enum
from typing import Iterable


class SceneFlag(str, enum.Enum):
    """Capabilities a scene can grant."""

    ALLOW_ADD_CARDS = "allow_add_cards"
    ALLOW_EDIT_CARDS = "allow_edit_cards"
    ALLOW_OBSCURE_CARDS = "allow_obscure_cards"
    ALLOW_MOVE_CARDS = "allow_move_cards"
    ALLOW_GROUP_CARDS = "allow_group_cards"
    ALLOW_SEQUENCE_CARDS = "allow_sequence_cards"
    SHOW_VOTES = "show_votes"
    ALLOW_VOTING = "allow_voting"
    SHOW_COMMENTS = "show_comments"
    ALLOW_COMMENTS = "allow_comments"
    MULTIPLE_VOTES_PER_CARD = "multiple_votes_per_card"


class SceneMode(str, enum.Enum):
    """Scene templates a facilitator can pick from."""

    COLUMNS = "columns"
    PRESENT = "present"
    REVIEW = "review"
    AGREEMENTS = "agreements"
    SCORECARD = "scorecard"
    STATIC = "static"
    SURVEY = "survey"


SCENE_MODE_FLAGS: dict[str, frozenset[SceneFlag]] = {
    SceneMode.COLUMNS.value: frozenset(
        {
            SceneFlag.ALLOW_ADD_CARDS,
            SceneFlag.ALLOW_EDIT_CARDS,
            SceneFlag.ALLOW_OBSCURE_CARDS,
            SceneFlag.ALLOW_MOVE_CARDS,
            SceneFlag.ALLOW_GROUP_CARDS,
            SceneFlag.ALLOW_SEQUENCE_CARDS,
            SceneFlag.ALLOW_VOTING,
            SceneFlag.SHOW_VOTES,
            SceneFlag.SHOW_COMMENTS,
            SceneFlag.ALLOW_COMMENTS,
        }
    ),
    SceneMode.PRESENT.value: frozenset(
        {SceneFlag.SHOW_VOTES, SceneFlag.SHOW_COMMENTS, SceneFlag.ALLOW_COMMENTS}
    ),
    SceneMode.REVIEW.value: frozenset(
        {
            SceneFlag.ALLOW_VOTING,
            SceneFlag.SHOW_VOTES,
            SceneFlag.MULTIPLE_VOTES_PER_CARD,
            SceneFlag.SHOW_COMMENTS,
            SceneFlag.ALLOW_COMMENTS,
        }
    ),
    SceneMode.AGREEMENTS.value: frozenset({SceneFlag.ALLOW_ADD_CARDS}),
    SceneMode.SCORECARD.value: frozenset(
        {SceneFlag.SHOW_COMMENTS, SceneFlag.ALLOW_COMMENTS}
    ),
    SceneMode.STATIC.value: frozenset(),
    SceneMode.SURVEY.value: frozenset({SceneFlag.ALLOW_ADD_CARDS}),
}

FLAG_LABELS: dict[SceneFlag, str] = {
    SceneFlag.ALLOW_ADD_CARDS: "Allow adding cards",
    SceneFlag.ALLOW_EDIT_CARDS: "Allow editing cards",
    SceneFlag.ALLOW_OBSCURE_CARDS: "Obscure others' cards",
    SceneFlag.ALLOW_MOVE_CARDS: "Allow moving cards",
    SceneFlag.ALLOW_GROUP_CARDS: "Allow grouping cards",
    SceneFlag.ALLOW_SEQUENCE_CARDS: "Allow manual card ordering",
    SceneFlag.SHOW_VOTES: "Show vote counts",
    SceneFlag.ALLOW_VOTING: "Allow voting",
    SceneFlag.SHOW_COMMENTS: "Show comments",
    SceneFlag.ALLOW_COMMENTS: "Allow adding comments",
    SceneFlag.MULTIPLE_VOTES_PER_CARD: "Allow multiple votes per card",
}

# Flags that only change what participants see, never what they can change
VIEW_ONLY_FLAGS: frozenset[SceneFlag] = frozenset(
    {SceneFlag.SHOW_VOTES, SceneFlag.SHOW_COMMENTS, SceneFlag.ALLOW_OBSCURE_CARDS}
)


def default_flags_for(mode: str) -> frozenset[SceneFlag]:
    """
    Get the default flag set for a scene mode.

    Args:
        mode: Scene mode name (e.g. "columns", "present")

    Returns:
        Frozen set of flags; empty for unknown modes
    """
    if isinstance(mode, SceneMode):
        mode = mode.value
    return SCENE_MODE_FLAGS.get(mode, frozenset())


def parse_flags(values: Iterable[str]) -> frozenset[SceneFlag]:
    """
    Convert raw flag strings to SceneFlag members.

    Raises:
        ValueError: If any value is not a known flag
    """
    return frozenset(SceneFlag(value) for value in values)
