"""
Task Progress Tracker
=====================

Ownership-checked task lookup and progress mutations. Every path that
changes a task's pomodoro counters ends in ``Task.set_progress`` so the
completion flag is re-derived at the call site.
"""

from collections.abc import Sequence
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from devfocus.core.exceptions import ForbiddenError, NotFoundError
from devfocus.core.models import Task, User
from devfocus.core.schemas import BreakdownItem

logger = structlog.get_logger()


async def get_task_for_user(db: AsyncSession, task_id: UUID, user: User) -> Task:
    """
    Get a task by ID, checking ownership.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the task belongs to another user
    """
    task = await db.get(Task, task_id)

    if task is None:
        raise NotFoundError("Task not found")

    if task.user_id != user.id:
        raise ForbiddenError("Not authorized to access this task")

    return task


def increment_progress(task: Task) -> Task:
    """Count one more completed pomodoro against a task."""
    task.set_progress(completed=(task.completed_pomodoros or 0) + 1)
    logger.info(
        "task_progress_incremented",
        task_id=str(task.id),
        completed=task.completed_pomodoros,
        estimated=task.estimated_pomodoros,
        is_completed=task.is_completed,
    )
    return task


async def increment_task(db: AsyncSession, task_id: UUID, user: User) -> Task:
    """Ownership-checked increment of a task's completed pomodoros."""
    task = await get_task_for_user(db, task_id, user)
    increment_progress(task)
    await db.flush()
    return task


def apply_breakdown(
    task: Task,
    items: Sequence[BreakdownItem],
    estimated: Optional[int] = None,
) -> None:
    """
    Attach an AI breakdown to a task.

    Unless an explicit estimate is given, the estimate becomes the number of
    subtasks (one focus session each).
    """
    ordered = sorted(items, key=lambda item: item.index)
    task.ai_breakdown = [item.model_dump() for item in ordered]
    task.ai_generated = bool(ordered)
    if estimated is None and ordered:
        estimated = len(ordered)
    task.set_progress(estimated=estimated)
