"""
Session Lifecycle Manager
=========================

Opens focus sessions against a task and completes them.

Completion is a single unit of work: the session's open -> completed
transition, the owner's counters and the task's progress are written in the
caller's transaction. The transition is a compare-and-swap
(``UPDATE ... WHERE completed = false``), so a retried or duplicated request
finds nothing to update and returns the stored state without counting the
session twice.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devfocus.core.clock import utc_now
from devfocus.core.config import settings
from devfocus.core.exceptions import ForbiddenError, NotFoundError
from devfocus.core.focus.progress import get_task_for_user, increment_progress
from devfocus.core.focus.streaks import apply_completion
from devfocus.core.models import FocusSession, Task, User

logger = structlog.get_logger()


@dataclass
class CompletionResult:
    """Outcome of a complete-session call."""
    session: FocusSession
    task: Optional[Task]
    already_completed: bool


async def get_session_for_user(
    db: AsyncSession,
    session_id: UUID,
    user: User,
) -> FocusSession:
    """
    Get a focus session by ID, checking ownership.

    Raises:
        NotFoundError: If the session does not exist
        ForbiddenError: If the session belongs to another user
    """
    focus = await db.get(FocusSession, session_id)

    if focus is None:
        raise NotFoundError("Session not found")

    if focus.user_id != user.id:
        raise ForbiddenError("Not authorized to update this session")

    return focus


async def open_session(
    db: AsyncSession,
    user: User,
    task_id: UUID,
    duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> FocusSession:
    """
    Start a focus session on one of the user's tasks.

    Args:
        db: Database session
        user: Session owner
        task_id: Task the session works on
        duration: Planned length in minutes
        now: Start time (defaults to the current time)

    Returns:
        The open FocusSession
    """
    task = await get_task_for_user(db, task_id, user)

    focus = FocusSession(
        id=uuid4(),
        user_id=user.id,
        task_id=task.id,
        duration=duration or settings.DEFAULT_SESSION_MINUTES,
        completed=False,
        started_at=now or utc_now(),
        completed_at=None,
    )
    focus.task = task
    db.add(focus)
    await db.flush()

    logger.info(
        "focus_session_opened",
        session_id=str(focus.id),
        user_id=str(user.id),
        task_id=str(task.id),
        duration=focus.duration,
    )
    return focus


async def complete_session(
    db: AsyncSession,
    user: User,
    session_id: UUID,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CompletionResult:
    """
    Complete a focus session, update the owner's counters and the task.

    Calling this again for a completed session changes nothing and returns
    the stored state with ``already_completed=True``.
    """
    focus = await get_session_for_user(db, session_id, user)

    if focus.completed:
        logger.info("focus_session_already_completed", session_id=str(focus.id))
        return CompletionResult(session=focus, task=focus.task, already_completed=True)

    now = now or utc_now()
    values: dict = {"completed": True, "completed_at": now}
    if notes:
        values["notes"] = notes

    result = await db.execute(
        update(FocusSession)
        .where(
            FocusSession.id == focus.id,
            FocusSession.user_id == user.id,
            FocusSession.completed.is_(False),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(focus)

    if result.rowcount == 0:
        # A concurrent request completed it first
        logger.info("focus_session_completion_lost_race", session_id=str(focus.id))
        return CompletionResult(session=focus, task=focus.task, already_completed=True)

    # Counters may have moved since the request loaded the user
    await db.refresh(user, with_for_update=True)
    apply_completion(user, now)

    task = None
    if focus.task_id is not None:
        task = await db.get(Task, focus.task_id)
        if task is not None and task.user_id == user.id:
            increment_progress(task)

    await db.flush()

    logger.info(
        "focus_session_completed",
        session_id=str(focus.id),
        user_id=str(user.id),
        total_pomodoros=user.total_pomodoros,
        current_streak=user.current_streak,
    )
    return CompletionResult(session=focus, task=task, already_completed=False)


async def list_sessions(db: AsyncSession, user: User) -> list[FocusSession]:
    """All of a user's sessions, newest first."""
    result = await db.execute(
        select(FocusSession)
        .where(FocusSession.user_id == user.id)
        .order_by(FocusSession.started_at.desc())
    )
    return list(result.scalars().all())


async def list_completed_sessions(db: AsyncSession, user: User) -> list[FocusSession]:
    result = await db.execute(
        select(FocusSession).where(
            FocusSession.user_id == user.id,
            FocusSession.completed.is_(True),
        )
    )
    return list(result.scalars().all())
