"""
AI Breakdown / Break Suggestion Adapter
=======================================

Two stateless operations on top of the completion client:

- ``breakdown_task`` fails loudly: the result is tagged and anything but
  ``BreakdownOk`` becomes an AIServiceError at the API boundary.
- ``suggest_break`` fails quietly: any failure yields FALLBACK_SUGGESTION.
"""

from typing import Optional

import structlog

from devfocus.core.assistant.client import CompletionClient
from devfocus.core.assistant.parser import (
    BreakdownParseError,
    BreakdownResult,
    BreakdownTransportError,
    parse_breakdown,
)
from devfocus.core.exceptions import AIServiceError

logger = structlog.get_logger()

FALLBACK_SUGGESTION = (
    "Stand up, stretch your arms and legs, and look at something 20 feet "
    "away for 20 seconds to rest your eyes."
)

MAX_SUGGESTION_CHARS = 400


# ==========================================================================
# Prompts
# ==========================================================================

BREAKDOWN_PROMPT = """\
You are a productivity expert helping developers break down coding tasks into focused 25-minute Pomodoro sessions.

Task Title: {title}
Task Description: {description}

Break this task down into 4-6 specific Pomodoro sessions. Each session should:
1. Be completable in 25 minutes
2. Have a clear, actionable goal
3. Include 2-4 specific steps to accomplish
4. Have a difficulty rating (1=Easy, 2=Medium, 3=Hard)

Return ONLY a valid JSON array (no markdown, no backticks, no explanation) with this exact structure:
[
  {{
    "index": 1,
    "subtask": "Brief title of what to accomplish",
    "steps": ["Step 1", "Step 2", "Step 3"],
    "difficulty": 2
  }}
]

Keep subtasks focused and realistic for 25-minute sessions. Return ONLY the JSON array, nothing else."""

BREAK_PROMPT = """\
You are a wellness coach helping a developer take an effective break after completing {session_count} Pomodoro session(s).

Current time: {time_of_day}

Suggest ONE specific, actionable 5-minute break activity that will help them rest their eyes, move their body, reset their mind and prepare for the next session.

Keep it under 40 words. Be specific and encouraging. Return ONLY the suggestion text (no formatting, no prefix like "Here's a suggestion:")."""


def build_breakdown_prompt(title: str, description: Optional[str]) -> str:
    return BREAKDOWN_PROMPT.format(
        title=title,
        description=description or "No additional description provided",
    )


def build_break_prompt(session_count: int, time_of_day: str) -> str:
    return BREAK_PROMPT.format(session_count=session_count, time_of_day=time_of_day)


# ==========================================================================
# Assistant
# ==========================================================================

class Assistant:
    """Breakdown and break-suggestion operations."""

    def __init__(self, client: Optional[CompletionClient] = None):
        self.client = client or CompletionClient()

    async def close(self) -> None:
        await self.client.close()

    async def breakdown_task(
        self,
        title: str,
        description: Optional[str] = None,
    ) -> BreakdownResult:
        """Ask the provider for a session-sized breakdown of a task."""
        try:
            text = await self.client.complete(
                build_breakdown_prompt(title, description),
                temperature=0.7,
                max_tokens=2000,
            )
        except AIServiceError as e:
            logger.warning("ai_breakdown_transport_failed", reason=e.detail)
            return BreakdownTransportError(reason=e.detail)

        result = parse_breakdown(text)
        if isinstance(result, BreakdownParseError):
            logger.warning(
                "ai_breakdown_parse_failed",
                reason=result.reason,
                raw=result.raw[:500],
            )
        else:
            logger.info("ai_breakdown_generated", subtasks=len(result.items))
        return result

    async def suggest_break(self, session_count: int, time_of_day: str) -> str:
        """Suggest a short break activity, falling back to a fixed tip."""
        try:
            text = await self.client.complete(
                build_break_prompt(session_count, time_of_day),
                temperature=0.8,
                max_tokens=150,
            )
        except AIServiceError as e:
            logger.warning("ai_break_suggestion_fallback", reason=e.detail)
            return FALLBACK_SUGGESTION

        suggestion = text.strip().strip('"').strip()
        if not suggestion:
            logger.warning("ai_break_suggestion_fallback", reason="empty response")
            return FALLBACK_SUGGESTION
        return suggestion[:MAX_SUGGESTION_CHARS]


def raise_for_breakdown(result: BreakdownResult):
    """Return the items of a successful breakdown, raise AIServiceError otherwise."""
    if isinstance(result, BreakdownTransportError):
        raise AIServiceError(f"Failed to generate AI breakdown: {result.reason}")
    if isinstance(result, BreakdownParseError):
        raise AIServiceError("Failed to generate AI breakdown: malformed provider response")
    return result.items


_assistant: Optional[Assistant] = None


def get_assistant() -> Assistant:
    """FastAPI dependency returning the process-wide assistant."""
    global _assistant
    if _assistant is None:
        _assistant = Assistant()
    return _assistant


async def close_assistant() -> None:
    """Close the process-wide assistant's HTTP client, if one was created."""
    global _assistant
    if _assistant is not None:
        await _assistant.close()
        _assistant = None
