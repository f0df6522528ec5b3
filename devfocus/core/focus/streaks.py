"""
Streak & Stats Aggregator
=========================

Pure functions over a user's counters and completed focus sessions.

- ``advance_streak`` runs once per completed session and decides the new
  consecutive-day streak from the gap between the last active calendar day
  and today.
- ``compute_stats`` derives today/week/all-time numbers on read, so the
  dashboard stays correct even if a counter was ever missed.

Calendar days are evaluated in the configured timezone.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from devfocus.core.clock import as_utc, day_bounds, local_date, local_midnight
from devfocus.core.config import settings
from devfocus.core.models import FocusSession, User
from devfocus.core.schemas import DayCount, StatsResponse

logger = structlog.get_logger()

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def stats_timezone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


# ==========================================================================
# Streaks
# ==========================================================================

@dataclass(frozen=True)
class StreakState:
    """Snapshot of the streak-related user counters."""
    current_streak: int
    longest_streak: int
    last_active_date: Optional[datetime]


def day_gap(last_active: datetime, now: datetime, tz: ZoneInfo) -> int:
    """Whole calendar days between the last active day and today."""
    return (local_date(now, tz) - local_date(last_active, tz)).days


def advance_streak(state: StreakState, now: datetime, tz: ZoneInfo) -> StreakState:
    """
    Apply one completed session to the streak.

    - no previous activity: streak starts at 1
    - same day: unchanged
    - next day: +1
    - gap of more than a day: back to 1
    - negative gap (clock skew, backdated completion): unchanged, and the
      last active date is not moved backwards
    """
    current = state.current_streak
    last_active = state.last_active_date
    new_last_active = now

    if last_active is None:
        current = 1
    else:
        gap = day_gap(last_active, now, tz)
        if gap == 1:
            current += 1
        elif gap > 1:
            current = 1
        elif gap < 0:
            logger.warning(
                "streak_negative_day_gap",
                gap=gap,
                last_active=as_utc(last_active).isoformat(),
                now=as_utc(now).isoformat(),
            )
            new_last_active = as_utc(last_active)
        # An active day always counts towards the streak
        if current < 1:
            current = 1

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_active_date=new_last_active,
    )


def apply_completion(user: User, now: datetime, tz: Optional[ZoneInfo] = None) -> None:
    """Update a user's counters for exactly one completed session."""
    state = advance_streak(
        StreakState(
            current_streak=user.current_streak or 0,
            longest_streak=user.longest_streak or 0,
            last_active_date=user.last_active_date,
        ),
        now,
        tz or stats_timezone(),
    )
    user.total_pomodoros = (user.total_pomodoros or 0) + 1
    user.current_streak = state.current_streak
    user.longest_streak = state.longest_streak
    user.last_active_date = state.last_active_date


# ==========================================================================
# Stats
# ==========================================================================

def compute_stats(
    user: User,
    sessions: Iterable[FocusSession],
    now: datetime,
    tz: Optional[ZoneInfo] = None,
) -> StatsResponse:
    """
    Aggregate statistics for the dashboard and analytics pages.

    Args:
        user: Owner of the sessions (supplies streak and total counters)
        sessions: The user's sessions; open ones are ignored
        now: Reference time
        tz: Timezone that defines calendar days

    Returns:
        StatsResponse
    """
    tz = tz or stats_timezone()
    now = as_utc(now)
    today = local_date(now, tz)
    today_start = local_midnight(today, tz)
    week_start = now - timedelta(days=7)

    completed_at: list[datetime] = []
    total_minutes = 0
    for focus in sessions:
        if not focus.completed or focus.completed_at is None:
            continue
        completed_at.append(as_utc(focus.completed_at))
        total_minutes += focus.duration

    today_count = sum(1 for ts in completed_at if today_start <= ts < now)
    week_count = sum(1 for ts in completed_at if week_start <= ts < now)

    last7_days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        start, end = day_bounds(day, tz)
        last7_days.append(
            DayCount(
                day=WEEKDAY_LABELS[day.weekday()],
                date=day.isoformat(),
                pomodoros=sum(1 for ts in completed_at if start <= ts < end),
            )
        )

    return StatsResponse(
        total_pomodoros=user.total_pomodoros or 0,
        today_pomodoros=today_count,
        week_pomodoros=week_count,
        current_streak=user.current_streak or 0,
        longest_streak=user.longest_streak or 0,
        total_focus_time=total_minutes,
        total_focus_hours=round(total_minutes / 60, 1),
        last7_days=last7_days,
    )
