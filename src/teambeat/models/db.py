"""
SQLAlchemy database models for TeamBeat.

Boards belong to a series; scenes, columns and agreements belong to a board;
cards belong to a column; votes and comments belong to a card. Deleting a
parent cascades at the database level through ON DELETE CASCADE.
"""

import uuid
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from teambeat.scene_flags import SceneFlag


def generate_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class User(Base):
    """Registered user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verification_secret: Mapped[Optional[str]] = mapped_column(String(255))
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"


class BoardSeries(Base):
    """A recurring retrospective (e.g. one team's sprint retros)."""

    __tablename__ = "board_series"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<BoardSeries(id={self.id}, name={self.name!r})>"


class SeriesMember(Base):
    """Membership of a user in a series, with their role."""

    __tablename__ = "series_members"

    series_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("board_series.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # admin/facilitator/member
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<SeriesMember(series_id={self.series_id}, user_id={self.user_id}, "
            f"role={self.role!r})>"
        )


class Board(Base):
    """A single retrospective session."""

    __tablename__ = "boards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    series_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("board_series.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft", index=True
    )  # draft/active/completed/archived
    current_scene_id: Mapped[Optional[str]] = mapped_column(String(36))
    blame_free_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voting_allocation: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    voting_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    meeting_date: Mapped[Optional[str]] = mapped_column(String(32))

    # Timer
    timer_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    timer_duration: Mapped[Optional[int]] = mapped_column(Integer)  # seconds

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    series: Mapped["BoardSeries"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Board(id={self.id}, name={self.name!r}, status={self.status!r})>"


class Column(Base):
    """A named bucket of cards on a board."""

    __tablename__ = "columns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    board_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    default_appearance: Mapped[str] = mapped_column(
        String(20), nullable=False, default="shown"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Column(id={self.id}, title={self.title!r}, seq={self.seq})>"


class Scene(Base):
    """One phase of a board's workflow."""

    __tablename__ = "scenes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    board_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_card_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="SET NULL")
    )
    display_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default="collecting"
    )  # collecting/results, survey scenes only
    focused_question_id: Mapped[Optional[str]] = mapped_column(String(36))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    flags: Mapped[list["SceneFlagRow"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )

    @property
    def flag_set(self) -> frozenset[SceneFlag]:
        return frozenset(SceneFlag(row.flag) for row in self.flags)

    def __repr__(self) -> str:
        return f"<Scene(id={self.id}, title={self.title!r}, mode={self.mode!r})>"


class SceneFlagRow(Base):
    """Membership of a capability flag in a scene's flag set."""

    __tablename__ = "scene_flags"

    scene_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scenes.id", ondelete="CASCADE"), primary_key=True
    )
    flag: Mapped[str] = mapped_column(String(50), primary_key=True)

    def __repr__(self) -> str:
        return f"<SceneFlagRow(scene_id={self.scene_id}, flag={self.flag!r})>"


class SceneColumn(Base):
    """Visibility of a column within a scene."""

    __tablename__ = "scenes_columns"

    scene_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scenes.id", ondelete="CASCADE"), primary_key=True
    )
    column_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("columns.id", ondelete="CASCADE"), primary_key=True
    )
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="visible")

    def __repr__(self) -> str:
        return (
            f"<SceneColumn(scene_id={self.scene_id}, column_id={self.column_id}, "
            f"state={self.state!r})>"
        )


class Card(Base):
    """User-authored content in a column."""

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    column_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("columns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    group_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    is_group_lead: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped[Optional["User"]] = relationship(lazy="joined")

    @property
    def user_name(self) -> Optional[str]:
        return self.user.name if self.user else None

    @property
    def is_grouped_subordinate(self) -> bool:
        return bool(self.group_id) and not self.is_group_lead

    def __repr__(self) -> str:
        return f"<Card(id={self.id}, column_id={self.column_id}, group_id={self.group_id})>"


class Vote(Base):
    """One vote cast by a user on a card."""

    __tablename__ = "votes"
    __table_args__ = (Index("ix_votes_card_user", "card_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Vote(id={self.id}, card_id={self.card_id}, user_id={self.user_id})>"


class Comment(Base):
    """Comment, emoji reaction or promoted agreement on a card."""

    __tablename__ = "comments"
    __table_args__ = (
        Index(
            "ix_comments_agreement_completed", "card_id", "is_agreement", "completed"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_agreement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_reaction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped[Optional["User"]] = relationship(
        foreign_keys=[user_id], lazy="joined"
    )

    @property
    def user_name(self) -> Optional[str]:
        return self.user.name if self.user else None

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, card_id={self.card_id}, is_reaction={self.is_reaction})>"


class Agreement(Base):
    """Free-standing board-level commitment."""

    __tablename__ = "agreements"
    __table_args__ = (Index("ix_agreements_board_completed", "board_id", "completed"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    board_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped[Optional["User"]] = relationship(
        foreign_keys=[user_id], lazy="joined"
    )
    completed_by: Mapped[Optional["User"]] = relationship(
        foreign_keys=[completed_by_user_id], lazy="joined"
    )

    @property
    def user_name(self) -> Optional[str]:
        return self.user.name if self.user else None

    def __repr__(self) -> str:
        return f"<Agreement(id={self.id}, board_id={self.board_id}, completed={self.completed})>"


class HealthQuestion(Base):
    """Survey question attached to a survey scene."""

    __tablename__ = "health_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    thread_id: Mapped[str] = mapped_column(
        String(36), nullable=False, index=True, default=generate_id
    )  # Links the same question across boards in a series
    scene_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scenes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    question_type: Mapped[str] = mapped_column(String(30), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<HealthQuestion(id={self.id}, type={self.question_type!r}, seq={self.seq})>"


class HealthResponse(Base):
    """A user's rating for a health question."""

    __tablename__ = "health_responses"
    __table_args__ = (
        UniqueConstraint("question_id", "user_id", name="uq_health_response_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    question_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("health_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<HealthResponse(question_id={self.question_id}, rating={self.rating})>"
