"""
API schemas for TeamBeat.

Pydantic models for request/response validation. Response models are also
used to serialize ORM rows into SSE event payloads.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from teambeat.permissions import BoardStatus, SeriesRole
from teambeat.scene_flags import SceneFlag, SceneMode

QuestionType = Literal["boolean", "range1to5", "agreetodisagree", "redyellowgreen"]


# ===== Auth Schemas =====


class RegisterRequest(BaseModel):
    """Request schema for registering a user."""

    email: EmailStr
    name: Optional[str] = Field(None, max_length=255)
    password: str = Field(..., min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=100)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=100)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Response schema for User. Never includes the password hash."""

    class Config:
        from_attributes = True

    id: str
    email: str
    name: Optional[str] = None
    email_verified: bool
    is_admin: bool
    created_at: datetime


# ===== Series Schemas =====


class SeriesCreate(BaseModel):
    """Request schema for creating a board series."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class SeriesResponse(BaseModel):
    class Config:
        from_attributes = True

    id: str
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class MemberAdd(BaseModel):
    """Request schema for adding a user to a series by email."""

    email: EmailStr
    role: SeriesRole = SeriesRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: SeriesRole


# ===== Board Schemas =====


class BoardCreate(BaseModel):
    """Request schema for creating a board."""

    series_id: str
    name: str = Field(..., min_length=1, max_length=100)
    meeting_date: Optional[str] = Field(None, max_length=32)
    blame_free_mode: bool = False
    voting_allocation: Optional[int] = Field(None, ge=0, le=100)


class BoardUpdate(BaseModel):
    """Request schema for board settings; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[BoardStatus] = None
    blame_free_mode: Optional[bool] = None
    voting_allocation: Optional[int] = Field(None, ge=0, le=100)
    voting_enabled: Optional[bool] = None
    meeting_date: Optional[str] = Field(None, max_length=32)


class BoardResponse(BaseModel):
    """Response schema for Board."""

    class Config:
        from_attributes = True

    id: str
    series_id: str
    name: str
    status: str
    current_scene_id: Optional[str] = None
    blame_free_mode: bool
    voting_allocation: int
    voting_enabled: bool
    meeting_date: Optional[str] = None
    timer_started_at: Optional[datetime] = None
    timer_duration: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class SceneChange(BaseModel):
    scene_id: str


class TemplateSetup(BaseModel):
    template: str = "kafe"


class BoardClone(BaseModel):
    source_id: str


# ===== Column Schemas =====


class ColumnCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    default_appearance: Literal["shown", "hidden"] = "shown"


class ColumnUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    default_appearance: Optional[Literal["shown", "hidden"]] = None


class ColumnReorder(BaseModel):
    """Column ids in their new order."""

    column_ids: list[str] = Field(..., min_length=1)


class ColumnResponse(BaseModel):
    class Config:
        from_attributes = True

    id: str
    board_id: str
    title: str
    description: Optional[str] = None
    seq: int
    default_appearance: str


class SceneColumnState(BaseModel):
    column_id: str
    state: Literal["visible", "hidden"]


class SceneColumnsUpdate(BaseModel):
    columns: list[SceneColumnState] = Field(..., min_length=1)


# ===== Scene Schemas =====


class SceneCreate(BaseModel):
    """Request schema for creating a scene; flags default to the mode's defaults."""

    title: str = Field(..., min_length=1, max_length=100)
    mode: SceneMode
    description: Optional[str] = Field(None, max_length=1000)
    flags: Optional[list[SceneFlag]] = None


class SceneUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    flags: Optional[list[SceneFlag]] = None
    selected_card_id: Optional[str] = None
    display_mode: Optional[Literal["collecting", "results"]] = None
    focused_question_id: Optional[str] = None


class SceneReorder(BaseModel):
    scene_ids: list[str] = Field(..., min_length=1)


class SelectCardRequest(BaseModel):
    card_id: Optional[str] = None


class SceneResponse(BaseModel):
    """Response schema for Scene, with its flag set as sorted strings."""

    class Config:
        from_attributes = True

    id: str
    board_id: str
    title: str
    description: Optional[str] = None
    mode: str
    seq: int
    selected_card_id: Optional[str] = None
    display_mode: str
    focused_question_id: Optional[str] = None
    flags: list[str] = Field(default_factory=list)

    @field_validator("flags", mode="before")
    @classmethod
    def _flag_names(cls, value: Any) -> list[str]:
        names = [getattr(item, "flag", item) for item in value or []]
        return sorted(name.value if isinstance(name, SceneFlag) else str(name) for name in names)


# ===== Timer / Presence Schemas =====


class TimerStart(BaseModel):
    duration: int = Field(..., gt=0, le=24 * 60 * 60)


class TimerExtend(BaseModel):
    add_seconds: int


class PresenceUpdate(BaseModel):
    activity: Optional[str] = Field(None, max_length=255)


# ===== Card Schemas =====


class CardCreate(BaseModel):
    column_id: str
    content: str = Field(..., min_length=1, max_length=1000)
    group_id: Optional[str] = None


class CardUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class NotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=10000)


class CardMove(BaseModel):
    column_id: str


class CardGroup(BaseModel):
    card_ids: list[str] = Field(..., min_length=2)
    group_id: Optional[str] = None

    @field_validator("card_ids")
    @classmethod
    def _distinct_cards(cls, value: list[str]) -> list[str]:
        card_ids = list(dict.fromkeys(value))
        if len(card_ids) < 2:
            raise ValueError("At least two distinct cards are required")
        return card_ids


class GroupOnto(BaseModel):
    target_card_id: str


class VoteRequest(BaseModel):
    delta: int


class IncreaseAllocation(BaseModel):
    amount: int = Field(1, ge=1, le=100)


# ===== Comment / Agreement Schemas =====


class CommentCreate(BaseModel):
    card_id: str
    content: str = Field(..., min_length=1, max_length=1000)
    is_agreement: bool = False
    is_reaction: bool = False


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class ToggleAgreement(BaseModel):
    is_agreement: bool


class CompletionUpdate(BaseModel):
    completed: bool


class CommentResponse(BaseModel):
    class Config:
        from_attributes = True

    id: str
    card_id: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    content: str
    is_agreement: bool
    is_reaction: bool
    completed: bool
    completed_by_user_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AgreementCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class AgreementUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CopyToCard(BaseModel):
    """Target column for a card copied from an agreement or a survey question."""

    column_id: str


# ===== Health Check Schemas =====


class HealthQuestionCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    question_type: QuestionType


class HealthQuestionUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    question_type: Optional[QuestionType] = None


class HealthQuestionReorder(BaseModel):
    question_ids: list[str] = Field(..., min_length=1)


class ApplyPreset(BaseModel):
    preset_id: str


class HealthResponseCreate(BaseModel):
    question_id: str
    rating: int


class HealthQuestionResponse(BaseModel):
    class Config:
        from_attributes = True

    id: str
    thread_id: str
    scene_id: str
    question: str
    description: Optional[str] = None
    question_type: str
    seq: int


class HealthResponseResponse(BaseModel):
    class Config:
        from_attributes = True

    id: str
    question_id: str
    user_id: str
    rating: int
    created_at: datetime


# ===== SSE Schemas =====


class SSEControl(BaseModel):
    """Control message sent by a client about its open stream."""

    action: Literal["join_board", "leave_board", "presence_update"]
    client_id: str
    board_id: Optional[str] = None
    activity: Optional[str] = Field(None, max_length=255)


# ===== Service Health =====


class ServiceHealthResponse(BaseModel):
    """Service health check response."""

    status: str
    database: str
