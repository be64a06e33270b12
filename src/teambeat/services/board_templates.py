"""
Board templates.

A template is a ready-made board configuration: a set of columns and a
workflow of scenes with their capability flags. Setting up a board from a
template copies both into independent rows; a scene that lists
``visible_columns`` hides every other column while it is current.
"""

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from teambeat.scene_flags import SceneFlag, SceneMode

DEFAULT_TEMPLATE_ID = "kafe"

ICEBREAKER_QUESTIONS = (
    "What's the best piece of advice you've ever received?",
    "If you could instantly become an expert in something, what would it be?",
    "What's the most interesting thing you've learned this week?",
    "What's your go-to productivity hack that works best for you?",
    "If you could have dinner with any historical figure, who would it be and why?",
    "What's one skill you wish they taught in school?",
    "What's the best compliment you've ever received?",
    "If you could solve one world problem, what would it be?",
    "What's your favorite way to unwind after a challenging day?",
    "What's one thing that always makes you smile?",
    "If you could live in any decade, what would it be?",
    "What's the most useful app on your phone?",
    "What's one book that changed your perspective?",
    "If you could master any language overnight, which would you choose?",
    "What's your favorite tradition or ritual?",
    "What's the best gift you've ever given someone?",
    "If you could have any superpower for a day, what would it be?",
    "What's one thing you're grateful for today?",
    "What's your favorite way to learn new things?",
    "If you could ask your future self one question, what would it be?",
    "What's the most beautiful place you've ever seen?",
    "What's one habit you're proud of developing?",
    "If you could attend any event in history, what would it be?",
    "What's your favorite quote or saying?",
    "What's one thing that always motivates you?",
)


def random_icebreaker() -> str:
    return random.choice(ICEBREAKER_QUESTIONS)


@dataclass(frozen=True)
class TemplateColumn:
    title: str
    description: Optional[str] = None
    # Called at setup time; overrides description when set
    describe: Optional[Callable[[], str]] = None

    def resolve_description(self) -> Optional[str]:
        return self.describe() if self.describe is not None else self.description


@dataclass(frozen=True)
class TemplateScene:
    title: str
    mode: SceneMode
    flags: frozenset[SceneFlag] = frozenset()
    # Column titles shown in this scene; None shows every column
    visible_columns: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class BoardTemplate:
    id: str
    name: str
    description: str
    columns: Tuple[TemplateColumn, ...] = field(default_factory=tuple)
    scenes: Tuple[TemplateScene, ...] = field(default_factory=tuple)


def _flags(*flags: SceneFlag) -> frozenset[SceneFlag]:
    return frozenset(flags)


ADD = SceneFlag.ALLOW_ADD_CARDS
EDIT = SceneFlag.ALLOW_EDIT_CARDS
OBSCURE = SceneFlag.ALLOW_OBSCURE_CARDS
MOVE = SceneFlag.ALLOW_MOVE_CARDS
GROUP = SceneFlag.ALLOW_GROUP_CARDS
SHOW_VOTES = SceneFlag.SHOW_VOTES
VOTE = SceneFlag.ALLOW_VOTING
SHOW_COMMENTS = SceneFlag.SHOW_COMMENTS
COMMENT = SceneFlag.ALLOW_COMMENTS

KAFE = BoardTemplate(
    id="kafe",
    name="KAFE (Kvetches, Appreciations, Flaws, Experiments)",
    description=(
        'A "KAFE" retrospective is a structured approach used in project management '
        "and team-building to reflect on the past and plan for the future."
    ),
    columns=(
        TemplateColumn("Kvetches", "What really bothered you?"),
        TemplateColumn("Appreciations", "What/Who really pleased you?"),
        TemplateColumn("Flaws", "What could be improved?"),
        TemplateColumn("Experiments", "What should we try differently?"),
    ),
    scenes=(
        TemplateScene("Gather", SceneMode.COLUMNS, _flags(ADD, EDIT, OBSCURE, MOVE)),
        TemplateScene("Group", SceneMode.COLUMNS, _flags(MOVE, GROUP, SHOW_COMMENTS, COMMENT)),
        TemplateScene(
            "Kvetch",
            SceneMode.PRESENT,
            _flags(SHOW_COMMENTS, COMMENT),
            visible_columns=("Kvetches",),
        ),
        TemplateScene(
            "Vote",
            SceneMode.COLUMNS,
            _flags(VOTE, SHOW_COMMENTS),
            visible_columns=("Flaws", "Experiments"),
        ),
        TemplateScene("Discuss", SceneMode.PRESENT, _flags(SHOW_VOTES, SHOW_COMMENTS, COMMENT)),
        TemplateScene(
            "Appreciate",
            SceneMode.PRESENT,
            _flags(SHOW_COMMENTS, COMMENT),
            visible_columns=("Appreciations",),
        ),
        TemplateScene("Review", SceneMode.REVIEW, _flags(SHOW_VOTES)),
    ),
)

LEAN_COFFEE = BoardTemplate(
    id="leancoffee",
    name="Lean Coffee",
    description=(
        "A democratic discussion format where topics are proposed, discussed, "
        "and decided on."
    ),
    columns=(
        TemplateColumn("Icebreaker", describe=random_icebreaker),
        TemplateColumn("Issues to Discuss"),
    ),
    scenes=(
        TemplateScene(
            "Propose Topics",
            SceneMode.COLUMNS,
            _flags(ADD, EDIT, MOVE, SHOW_VOTES, SHOW_COMMENTS, COMMENT),
        ),
        TemplateScene("Vote on Topics", SceneMode.COLUMNS, _flags(VOTE, SHOW_COMMENTS, COMMENT)),
        TemplateScene(
            "Discuss Topics",
            SceneMode.PRESENT,
            _flags(EDIT, MOVE, SHOW_VOTES, SHOW_COMMENTS, COMMENT),
        ),
    ),
)

TRACTION = BoardTemplate(
    id="traction",
    name="Traction Touchbase",
    description="A structured meeting format to discuss key issues and plan actions.",
    columns=(TemplateColumn("Issues List"),),
    scenes=(
        TemplateScene("To-Do List", SceneMode.AGREEMENTS, _flags(SHOW_COMMENTS, COMMENT)),
        TemplateScene("Scorecard", SceneMode.COLUMNS, _flags(), visible_columns=()),
        TemplateScene(
            "Issue List",
            SceneMode.COLUMNS,
            _flags(ADD, EDIT, MOVE, GROUP, SHOW_COMMENTS, COMMENT),
        ),
        TemplateScene(
            "Identify, Discuss, Solve (IDS)", SceneMode.PRESENT, _flags(SHOW_COMMENTS, COMMENT)
        ),
        TemplateScene("Close", SceneMode.REVIEW, _flags(SHOW_COMMENTS, COMMENT)),
    ),
)

START_STOP_CONTINUE = BoardTemplate(
    id="startstop",
    name="Start, Stop, Continue",
    description="Focus on behaviors to start, stop, and continue for the next iteration.",
    columns=(
        TemplateColumn("Start", "(What should we begin doing?)"),
        TemplateColumn("Stop", "(What should we cease doing?)"),
        TemplateColumn("Continue", "(What should we keep doing?)"),
    ),
    scenes=(
        TemplateScene(
            "Brainstorm", SceneMode.COLUMNS, _flags(ADD, EDIT, MOVE, SHOW_VOTES, SHOW_COMMENTS)
        ),
        TemplateScene(
            "Discuss", SceneMode.PRESENT, _flags(SHOW_VOTES, VOTE, SHOW_COMMENTS, COMMENT)
        ),
        TemplateScene("Plan Actions", SceneMode.REVIEW, _flags(SHOW_VOTES, SHOW_COMMENTS, COMMENT)),
    ),
)

MAD_SAD_GLAD = BoardTemplate(
    id="madsadglad",
    name="Mad, Sad, Glad",
    description="An emotional retrospective focusing on feelings and reactions.",
    columns=(
        TemplateColumn("Mad", "(What frustrated us?)"),
        TemplateColumn("Sad", "(What disappointed us?)"),
        TemplateColumn("Glad", "(What made us happy?)"),
    ),
    scenes=(
        TemplateScene(
            "Share Feelings", SceneMode.COLUMNS, _flags(ADD, EDIT, MOVE, SHOW_VOTES, SHOW_COMMENTS)
        ),
        TemplateScene("Explore Together", SceneMode.PRESENT, _flags(SHOW_COMMENTS, COMMENT)),
        TemplateScene(
            "Find Solutions",
            SceneMode.REVIEW,
            _flags(ADD, EDIT, MOVE, GROUP, SHOW_VOTES, VOTE, SHOW_COMMENTS, COMMENT),
        ),
    ),
)

FOUR_LS = BoardTemplate(
    id="fourls",
    name="4 L's (Liked, Learned, Lacked, Longed for)",
    description="A comprehensive reflection on the four L's of team experience.",
    columns=(
        TemplateColumn("Liked", "(What did we enjoy?)"),
        TemplateColumn("Learned", "(What did we discover?)"),
        TemplateColumn("Lacked", "(What was missing?)"),
        TemplateColumn("Longed for", "(What did we wish for?)"),
    ),
    scenes=(
        TemplateScene(
            "Reflect", SceneMode.COLUMNS, _flags(ADD, EDIT, MOVE, SHOW_VOTES, SHOW_COMMENTS)
        ),
        TemplateScene("Share Insights", SceneMode.PRESENT, _flags(SHOW_COMMENTS, COMMENT)),
        TemplateScene(
            "Prioritize Improvements",
            SceneMode.PRESENT,
            _flags(SHOW_VOTES, VOTE, SHOW_COMMENTS, COMMENT),
        ),
        TemplateScene(
            "Create Action Plan",
            SceneMode.REVIEW,
            _flags(ADD, EDIT, MOVE, GROUP, SHOW_VOTES, SHOW_COMMENTS, COMMENT),
        ),
    ),
)

BOARD_TEMPLATES: Tuple[BoardTemplate, ...] = (
    KAFE,
    LEAN_COFFEE,
    TRACTION,
    START_STOP_CONTINUE,
    MAD_SAD_GLAD,
    FOUR_LS,
)

_TEMPLATES_BY_ID: Dict[str, BoardTemplate] = {t.id: t for t in BOARD_TEMPLATES}


def get_template_by_id(template_id: str) -> Optional[BoardTemplate]:
    return _TEMPLATES_BY_ID.get(template_id)


def get_template_list() -> List[Dict[str, object]]:
    """Summaries for the template picker: id, name, description, column titles, scene count."""
    return [
        {
            "id": template.id,
            "name": template.name,
            "description": template.description,
            "columns": [column.title for column in template.columns],
            "scenes": len(template.scenes),
        }
        for template in BOARD_TEMPLATES
    ]
