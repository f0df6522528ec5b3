"""
DevFocus - Pydantic Schemas
===========================

Request and response schemas for API validation.
Field names are snake_case in Python and camelCase on the wire;
requests accept either form.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from devfocus.core.config import settings
from devfocus.core.enums import TaskPriority


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )


class TimestampSchema(BaseSchema):
    """Schema with timestamp fields."""

    created_at: datetime
    updated_at: datetime


def validate_password_strength(v: str) -> str:
    """Validate password strength against configured rules."""
    if len(v) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )
    if settings.PASSWORD_REQUIRE_UPPERCASE and not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if settings.PASSWORD_REQUIRE_LOWERCASE and not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if settings.PASSWORD_REQUIRE_DIGIT and not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


# ==========================================================================
# Auth Schemas
# ==========================================================================

class UserCreate(BaseSchema):
    """Schema for user registration."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class RegisterResponse(BaseSchema):
    """Registration accepted; a verification code was emailed."""

    email: EmailStr
    requires_verification: bool = True
    message: str


class OTPVerify(BaseSchema):
    """Schema for presenting a one-time code."""

    email: EmailStr
    otp: str = Field(min_length=4, max_length=10, pattern=r"^\d+$")


class EmailRequest(BaseSchema):
    """Schema for endpoints that only take an email (resend, forgot)."""

    email: EmailStr


class UserLogin(BaseSchema):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(TimestampSchema):
    """Schema for user in responses (no password, no code)."""

    id: UUID
    name: str
    email: EmailStr
    is_verified: bool
    total_pomodoros: int
    current_streak: int
    longest_streak: int
    last_active_date: Optional[datetime] = None


class TokenResponse(BaseSchema):
    """Schema for an issued access token."""

    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until token expires
    user: UserResponse


class PasswordReset(BaseSchema):
    """Schema for password reset with a one-time code."""

    email: EmailStr
    otp: str = Field(min_length=4, max_length=10, pattern=r"^\d+$")
    new_password: str = Field(max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class PasswordChange(BaseSchema):
    """Schema for changing password while logged in."""

    current_password: str
    new_password: str = Field(max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


# ==========================================================================
# Task Schemas
# ==========================================================================

class BreakdownItem(BaseSchema):
    """One session-sized subtask of an AI breakdown."""

    index: int = Field(
        ge=1,
        validation_alias=AliasChoices("index", "pomodoroNumber", "pomodoro_number"),
    )
    subtask: str = Field(min_length=1, max_length=500)
    steps: list[str] = Field(default_factory=list)
    difficulty: Literal[1, 2, 3]
    completed: bool = False


class TaskCreate(BaseSchema):
    """Schema for creating a task."""

    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = None
    category: str = Field("general", min_length=1, max_length=100)
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_pomodoros: Optional[int] = Field(None, ge=1, le=100)
    ai_breakdown: Optional[list[BreakdownItem]] = None


class TaskUpdate(BaseSchema):
    """Schema for updating a task (partial)."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    priority: Optional[TaskPriority] = None
    estimated_pomodoros: Optional[int] = Field(None, ge=1, le=100)
    completed_pomodoros: Optional[int] = Field(None, ge=0)
    ai_breakdown: Optional[list[BreakdownItem]] = None


class TaskResponse(TimestampSchema):
    """Schema for task in responses."""

    id: UUID
    user_id: UUID
    title: str
    description: Optional[str]
    category: str
    priority: TaskPriority
    estimated_pomodoros: int
    completed_pomodoros: int
    is_completed: bool
    ai_generated: bool
    ai_breakdown: Optional[list[BreakdownItem]] = None


class TaskListResponse(BaseSchema):
    count: int
    tasks: list[TaskResponse]


# ==========================================================================
# Focus Session Schemas
# ==========================================================================

class SessionCreate(BaseSchema):
    """Schema for opening a focus session."""

    task_id: UUID
    duration: int = Field(settings.DEFAULT_SESSION_MINUTES, ge=1, le=180)


class SessionComplete(BaseSchema):
    """Schema for completing a focus session."""

    notes: Optional[str] = Field(None, max_length=2000)


class SessionTaskSummary(BaseSchema):
    id: UUID
    title: str
    category: str
    priority: TaskPriority


class SessionResponse(BaseSchema):
    """Schema for focus session in responses."""

    id: UUID
    user_id: UUID
    task_id: Optional[UUID]
    task: Optional[SessionTaskSummary] = None
    duration: int
    completed: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class SessionListResponse(BaseSchema):
    count: int
    sessions: list[SessionResponse]


class UserCounters(BaseSchema):
    total_pomodoros: int
    current_streak: int
    longest_streak: int


class SessionCompleteResponse(BaseSchema):
    """Result of completing a session (or of repeating the call)."""

    session: SessionResponse
    user: UserCounters
    task: Optional[TaskResponse] = None
    already_completed: bool = False


class DayCount(BaseSchema):
    day: str  # short weekday name, e.g. "Mon"
    date: str  # ISO date
    pomodoros: int


class StatsResponse(BaseSchema):
    """Dashboard/analytics statistics."""

    total_pomodoros: int
    today_pomodoros: int
    week_pomodoros: int
    current_streak: int
    longest_streak: int
    total_focus_time: int  # minutes
    total_focus_hours: float
    last7_days: list[DayCount]


# ==========================================================================
# AI Schemas
# ==========================================================================

class BreakdownRequest(BaseSchema):
    title: str = Field(min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)


class BreakdownResponse(BaseSchema):
    breakdown: list[BreakdownItem]


class BreakSuggestionRequest(BaseSchema):
    session_count: int = Field(1, ge=0, le=100)
    time_of_day: Optional[str] = Field(None, max_length=50)


class BreakSuggestionResponse(BaseSchema):
    suggestion: str


# ==========================================================================
# Common Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: Literal["healthy", "degraded"]
    version: str
    environment: str
    database: str
