"""
DevFocus - Tasks API
====================

Task CRUD and progress endpoints. Every endpoint that takes a task ID checks
ownership: a missing task is a 404, another user's task is a 403.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, Query, status
from sqlalchemy import select, update

from devfocus.api.deps import CurrentUser, DbSession
from devfocus.core.focus import apply_breakdown, get_task_for_user, increment_task
from devfocus.core.models import FocusSession, Task
from devfocus.core.schemas import (
    MessageResponse,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
    responses={
        201: {"description": "Task created"},
        400: {"description": "Validation error"},
        401: {"description": "Not authenticated"},
    },
)
async def create_task(
    data: TaskCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> TaskResponse:
    """
    Create a new task.

    When an AI breakdown is supplied without an explicit estimate, the
    estimate is the number of subtasks.
    """
    task = Task(
        id=uuid4(),
        user_id=current_user.id,
        title=data.title,
        description=data.description,
        category=data.category,
        priority=data.priority,
        ai_generated=False,
    )
    task.set_progress(completed=0, estimated=data.estimated_pomodoros or 1)
    if data.ai_breakdown:
        apply_breakdown(task, data.ai_breakdown, estimated=data.estimated_pomodoros)

    db.add(task)
    await db.commit()
    await db.refresh(task)

    logger.info("task_created", task_id=str(task.id), user_id=str(current_user.id))
    return TaskResponse.model_validate(task)


@router.get(
    "",
    response_model=TaskListResponse,
    summary="List tasks",
    responses={
        200: {"description": "User's tasks, newest first"},
        401: {"description": "Not authenticated"},
    },
)
async def list_tasks(
    current_user: CurrentUser,
    db: DbSession,
    completed: Optional[bool] = Query(None, description="Filter by completion"),
) -> TaskListResponse:
    query = select(Task).where(Task.user_id == current_user.id)

    if completed is not None:
        query = query.where(Task.is_completed.is_(completed))

    result = await db.execute(query.order_by(Task.created_at.desc()))
    tasks = result.scalars().all()

    return TaskListResponse(
        count=len(tasks),
        tasks=[TaskResponse.model_validate(task) for task in tasks],
    )


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get task",
    responses={
        200: {"description": "Task details"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
async def get_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> TaskResponse:
    task = await get_task_for_user(db, task_id, current_user)
    return TaskResponse.model_validate(task)


@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update task",
    responses={
        200: {"description": "Task updated"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> TaskResponse:
    """
    Update a task (partial update).

    Progress fields and the AI breakdown go through the task's progress
    setter, so ``isCompleted`` is re-derived on every update.
    """
    task = await get_task_for_user(db, task_id, current_user)

    update_data = data.model_dump(exclude_unset=True)
    estimated = update_data.pop("estimated_pomodoros", None)
    completed = update_data.pop("completed_pomodoros", None)
    breakdown_set = "ai_breakdown" in update_data
    update_data.pop("ai_breakdown", None)

    for field, value in update_data.items():
        if value is None and field in ("title", "category", "priority"):
            continue
        setattr(task, field, value)

    if breakdown_set:
        if data.ai_breakdown:
            apply_breakdown(task, data.ai_breakdown, estimated=estimated)
        else:
            task.ai_breakdown = None
            task.ai_generated = False

    task.set_progress(completed=completed, estimated=estimated)

    await db.commit()
    await db.refresh(task)

    return TaskResponse.model_validate(task)


@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    summary="Delete task",
    responses={
        200: {"description": "Task deleted"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
async def delete_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> MessageResponse:
    """Delete a task. Its focus sessions stay in the history without a task."""
    task = await get_task_for_user(db, task_id, current_user)

    await db.execute(
        update(FocusSession)
        .where(FocusSession.task_id == task.id)
        .values(task_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(task)
    await db.commit()

    logger.info("task_deleted", task_id=str(task_id), user_id=str(current_user.id))
    return MessageResponse(message="Task deleted successfully")


@router.put(
    "/{task_id}/increment",
    response_model=TaskResponse,
    summary="Increment completed pomodoros",
    responses={
        200: {"description": "Task progress incremented"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
async def increment_pomodoro(
    task_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> TaskResponse:
    """
    Count one completed pomodoro against a task.

    Completing a focus session already does this; the endpoint is for manual
    progress tracking.
    """
    task = await increment_task(db, task_id, current_user)
    await db.commit()
    await db.refresh(task)
    return TaskResponse.model_validate(task)
