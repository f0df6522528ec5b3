"""
DevFocus - Focus Sessions API
=============================

Open, list and complete focus sessions; dashboard statistics.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, status

from devfocus.api.deps import CurrentUser, DbSession
from devfocus.core.clock import utc_now
from devfocus.core.focus import (
    complete_session,
    compute_stats,
    list_completed_sessions,
    list_sessions,
    open_session,
)
from devfocus.core.schemas import (
    SessionComplete,
    SessionCompleteResponse,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    StatsResponse,
    TaskResponse,
    UserCounters,
)

router = APIRouter(prefix="/sessions", tags=["Focus Sessions"])


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a focus session",
    responses={
        201: {"description": "Session opened"},
        403: {"description": "Task belongs to another user"},
        404: {"description": "Task not found"},
    },
)
async def create_session(
    data: SessionCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionResponse:
    focus = await open_session(db, current_user, data.task_id, data.duration)
    await db.commit()
    await db.refresh(focus)
    return SessionResponse.model_validate(focus)


@router.get(
    "",
    response_model=SessionListResponse,
    summary="List focus sessions",
    responses={
        200: {"description": "User's sessions, newest first"},
    },
)
async def get_sessions(
    current_user: CurrentUser,
    db: DbSession,
) -> SessionListResponse:
    sessions = await list_sessions(db, current_user)
    return SessionListResponse(
        count=len(sessions),
        sessions=[SessionResponse.model_validate(s) for s in sessions],
    )


@router.get(
    "/stats",
    response_model=StatsResponse,
    summary="Get stats and analytics",
    responses={
        200: {"description": "Counts, focus time, streaks and last 7 days"},
    },
)
async def get_stats(
    current_user: CurrentUser,
    db: DbSession,
) -> StatsResponse:
    sessions = await list_completed_sessions(db, current_user)
    return compute_stats(current_user, sessions, utc_now())


@router.put(
    "/{session_id}/complete",
    response_model=SessionCompleteResponse,
    summary="Complete a focus session",
    responses={
        200: {"description": "Session completed (or was already completed)"},
        403: {"description": "Session belongs to another user"},
        404: {"description": "Session not found"},
    },
)
async def complete(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    data: Optional[SessionComplete] = Body(None),
) -> SessionCompleteResponse:
    """
    Complete a focus session.

    Session, user counters and task progress are committed together. Calling
    it again for the same session returns the stored state and does not
    count the session twice.
    """
    result = await complete_session(
        db,
        current_user,
        session_id,
        notes=data.notes if data else None,
    )
    await db.commit()
    await db.refresh(result.session)
    if result.task is not None:
        await db.refresh(result.task)

    return SessionCompleteResponse(
        session=SessionResponse.model_validate(result.session),
        user=UserCounters.model_validate(current_user),
        task=TaskResponse.model_validate(result.task) if result.task else None,
        already_completed=result.already_completed,
    )
