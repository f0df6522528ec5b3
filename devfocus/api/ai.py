"""
DevFocus - AI API
=================

Task breakdown and break suggestion endpoints.
"""

from datetime import datetime

from fastapi import APIRouter

from devfocus.api.deps import AssistantDep, CurrentUser
from devfocus.core.assistant import raise_for_breakdown
from devfocus.core.schemas import (
    BreakdownRequest,
    BreakdownResponse,
    BreakSuggestionRequest,
    BreakSuggestionResponse,
)

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post(
    "/breakdown",
    response_model=BreakdownResponse,
    summary="Break a task into focus sessions",
    responses={
        200: {"description": "Validated breakdown"},
        502: {"description": "AI provider failed or returned malformed output"},
    },
)
async def breakdown_task(
    data: BreakdownRequest,
    current_user: CurrentUser,
    assistant: AssistantDep,
) -> BreakdownResponse:
    """Ask the AI for a breakdown; failures surface as 502, never as an empty list."""
    result = await assistant.breakdown_task(data.title, data.description)
    return BreakdownResponse(breakdown=raise_for_breakdown(result))


@router.post(
    "/suggest-break",
    response_model=BreakSuggestionResponse,
    summary="Suggest a break activity",
)
async def suggest_break(
    data: BreakSuggestionRequest,
    current_user: CurrentUser,
    assistant: AssistantDep,
) -> BreakSuggestionResponse:
    """Suggest a break activity; falls back to a generic tip on failure."""
    time_of_day = data.time_of_day or datetime.now().strftime("%I:%M %p").lstrip("0")
    suggestion = await assistant.suggest_break(data.session_count, time_of_day)
    return BreakSuggestionResponse(suggestion=suggestion)
