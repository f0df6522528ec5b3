"""
DevFocus - Database Models
==========================

SQLAlchemy models for users, tasks and focus sessions.

Invariants kept by the models themselves:

- ``Task.is_completed`` always equals ``completed_pomodoros >= estimated_pomodoros``.
  Every mutation of either counter goes through :meth:`Task.set_progress`.
- ``FocusSession.completed_at`` is set if and only if ``completed`` is true.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from devfocus.core.clock import utc_now
from devfocus.core.database import Base
from devfocus.core.enums import TaskPriority
from devfocus.core.exceptions import ValidationError


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class User(Base, TimestampMixin):
    """User account with verification state and focus counters."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # One-time code, stored as a sha256 hex digest
    otp_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Focus counters (mutated only by session completion)
    total_pomodoros: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    current_streak: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    longest_streak: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    last_active_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def clear_otp(self) -> None:
        self.otp_hash = None
        self.otp_expires_at = None


class Task(Base, TimestampMixin):
    """A unit of work the user runs focus sessions against."""

    __tablename__ = "tasks"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    category: Mapped[str] = mapped_column(
        String(100),
        default="general",
        nullable=False,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority),
        default=TaskPriority.MEDIUM,
        nullable=False,
    )
    estimated_pomodoros: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )
    completed_pomodoros: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    is_completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    ai_generated: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    # Ordered list of {index, subtask, steps, difficulty, completed}
    ai_breakdown: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON,
        nullable=True,
    )

    def set_progress(
        self,
        completed: Optional[int] = None,
        estimated: Optional[int] = None,
    ) -> None:
        """
        Update the pomodoro counters and re-derive ``is_completed``.

        Args:
            completed: New completed count (unchanged if None)
            estimated: New estimated count (unchanged if None)

        Raises:
            ValidationError: If a count is out of range
        """
        if completed is None:
            completed = self.completed_pomodoros or 0
        if estimated is None:
            estimated = self.estimated_pomodoros or 1

        if completed < 0:
            raise ValidationError("Completed pomodoros cannot be negative")
        if estimated < 1:
            raise ValidationError("Estimated pomodoros must be at least 1")

        self.completed_pomodoros = completed
        self.estimated_pomodoros = estimated
        self.is_completed = completed >= estimated


class FocusSession(Base, TimestampMixin):
    """One timed work interval associated with a task."""

    __tablename__ = "focus_sessions"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # Nulled when the task is deleted; the session stays in the history
    task_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        default=25,
        nullable=False,
    )  # minutes
    completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        index=True,
        nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    task: Mapped[Optional[Task]] = relationship(lazy="joined")
