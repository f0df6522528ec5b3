"""
DevFocus - Focus Sessions
=========================

Session lifecycle, streak/stat aggregation and task progress tracking.
"""

from devfocus.core.focus.lifecycle import (
    CompletionResult,
    complete_session,
    get_session_for_user,
    list_completed_sessions,
    list_sessions,
    open_session,
)
from devfocus.core.focus.progress import (
    apply_breakdown,
    get_task_for_user,
    increment_progress,
    increment_task,
)
from devfocus.core.focus.streaks import (
    StreakState,
    advance_streak,
    apply_completion,
    compute_stats,
)

__all__ = [
    "CompletionResult",
    "StreakState",
    "advance_streak",
    "apply_breakdown",
    "apply_completion",
    "complete_session",
    "compute_stats",
    "get_session_for_user",
    "get_task_for_user",
    "increment_progress",
    "increment_task",
    "list_completed_sessions",
    "list_sessions",
    "open_session",
]
