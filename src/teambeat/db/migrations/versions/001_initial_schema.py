"""Initial schema: users, series, boards, scenes, columns, cards and feedback

Revision ID: 001_initial
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def _user_fk(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.String(36),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create every table."""
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("email_verification_secret", sa.String(255)),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "board_series",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255)),
        sa.Column("description", sa.Text),
        _timestamp(),
    )
    op.create_index("ix_board_series_slug", "board_series", ["slug"], unique=True)

    op.create_table(
        "series_members",
        sa.Column(
            "series_id",
            sa.String(36),
            sa.ForeignKey("board_series.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        _timestamp("joined_at"),
    )

    op.create_table(
        "boards",
        _id(),
        sa.Column(
            "series_id",
            sa.String(36),
            sa.ForeignKey("board_series.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("current_scene_id", sa.String(36)),
        sa.Column("blame_free_mode", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("voting_allocation", sa.Integer, nullable=False, server_default="3"),
        sa.Column("voting_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("meeting_date", sa.String(32)),
        sa.Column("timer_started_at", sa.DateTime(timezone=True)),
        sa.Column("timer_duration", sa.Integer),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_boards_series_id", "boards", ["series_id"])
    op.create_index("ix_boards_status", "boards", ["status"])

    op.create_table(
        "columns",
        _id(),
        sa.Column(
            "board_id",
            sa.String(36),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("default_appearance", sa.String(20), nullable=False, server_default="shown"),
        _timestamp(),
    )
    op.create_index("ix_columns_board_id", "columns", ["board_id"])

    op.create_table(
        "cards",
        _id(),
        sa.Column(
            "column_id",
            sa.String(36),
            sa.ForeignKey("columns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("group_id", sa.String(36)),
        sa.Column("is_group_lead", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("seq", sa.Integer, nullable=False, server_default="0"),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_cards_column_id", "cards", ["column_id"])
    op.create_index("ix_cards_group_id", "cards", ["group_id"])

    op.create_table(
        "scenes",
        _id(),
        sa.Column(
            "board_id",
            sa.String(36),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("mode", sa.String(20), nullable=False),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column(
            "selected_card_id",
            sa.String(36),
            sa.ForeignKey("cards.id", ondelete="SET NULL"),
        ),
        sa.Column("display_mode", sa.String(20), nullable=False, server_default="collecting"),
        sa.Column("focused_question_id", sa.String(36)),
        _timestamp(),
    )
    op.create_index("ix_scenes_board_id", "scenes", ["board_id"])

    op.create_table(
        "scene_flags",
        sa.Column(
            "scene_id",
            sa.String(36),
            sa.ForeignKey("scenes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("flag", sa.String(50), primary_key=True),
    )

    op.create_table(
        "scenes_columns",
        sa.Column(
            "scene_id",
            sa.String(36),
            sa.ForeignKey("scenes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "column_id",
            sa.String(36),
            sa.ForeignKey("columns.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("state", sa.String(20), nullable=False, server_default="visible"),
    )

    op.create_table(
        "votes",
        _id(),
        sa.Column(
            "card_id",
            sa.String(36),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        _timestamp(),
    )
    op.create_index("ix_votes_card_id", "votes", ["card_id"])
    op.create_index("ix_votes_user_id", "votes", ["user_id"])
    op.create_index("ix_votes_card_user", "votes", ["card_id", "user_id"])

    op.create_table(
        "comments",
        _id(),
        sa.Column(
            "card_id",
            sa.String(36),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("is_agreement", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_reaction", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("completed", sa.Boolean, nullable=False, server_default=sa.false()),
        _user_fk("completed_by_user_id"),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_comments_card_id", "comments", ["card_id"])
    op.create_index(
        "ix_comments_agreement_completed", "comments", ["card_id", "is_agreement", "completed"]
    )

    op.create_table(
        "agreements",
        _id(),
        sa.Column(
            "board_id",
            sa.String(36),
            sa.ForeignKey("boards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("completed", sa.Boolean, nullable=False, server_default=sa.false()),
        _user_fk("completed_by_user_id"),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("ix_agreements_board_id", "agreements", ["board_id"])
    op.create_index("ix_agreements_board_completed", "agreements", ["board_id", "completed"])

    op.create_table(
        "health_questions",
        _id(),
        sa.Column("thread_id", sa.String(36), nullable=False),
        sa.Column(
            "scene_id",
            sa.String(36),
            sa.ForeignKey("scenes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("question_type", sa.String(30), nullable=False),
        sa.Column("seq", sa.Integer, nullable=False),
        _timestamp(),
    )
    op.create_index("ix_health_questions_thread_id", "health_questions", ["thread_id"])
    op.create_index("ix_health_questions_scene_id", "health_questions", ["scene_id"])

    op.create_table(
        "health_responses",
        _id(),
        sa.Column(
            "question_id",
            sa.String(36),
            sa.ForeignKey("health_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        _timestamp(),
        sa.UniqueConstraint("question_id", "user_id", name="uq_health_response_user"),
    )
    op.create_index("ix_health_responses_question_id", "health_responses", ["question_id"])


def downgrade() -> None:
    """Drop every table, children first."""
    for table in (
        "health_responses",
        "health_questions",
        "agreements",
        "comments",
        "votes",
        "scenes_columns",
        "scene_flags",
        "scenes",
        "cards",
        "columns",
        "boards",
        "series_members",
        "board_series",
        "users",
    ):
        op.drop_table(table)
