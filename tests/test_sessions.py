"""
DevFocus - Focus Session Tests
==============================

Opening and completing sessions, idempotent completion, ownership and
dashboard statistics.
"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import UUID, uuid4

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from devfocus.core.database import Base
from devfocus.core.focus import complete_session, open_session
from devfocus.core.models import FocusSession, Task, User
from tests.conftest import make_task, make_user, unique_email


async def open_via_api(client: AsyncClient, headers: dict, task: Task, **extra) -> dict:
    response = await client.post(
        "/api/v1/sessions",
        headers=headers,
        json={"taskId": str(task.id), **extra},
    )
    assert response.status_code == 201
    return response.json()


# ==========================================================================
# Open Tests
# ==========================================================================

class TestOpenSession:
    """Tests for POST /sessions."""

    async def test_open_defaults(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        data = await open_via_api(client, auth_headers, test_task)

        assert data["taskId"] == str(test_task.id)
        assert data["duration"] == 25
        assert data["completed"] is False
        assert data["completedAt"] is None
        assert data["startedAt"]
        assert data["task"]["title"] == test_task.title

    async def test_open_custom_duration(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        data = await open_via_api(client, auth_headers, test_task, duration=50)

        assert data["duration"] == 50

    async def test_open_invalid_duration(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        response = await client.post(
            "/api/v1/sessions",
            headers=auth_headers,
            json={"taskId": str(test_task.id), "duration": 0},
        )

        assert response.status_code == 400

    async def test_open_unknown_task(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/sessions",
            headers=auth_headers,
            json={"taskId": str(uuid4())},
        )

        assert response.status_code == 404

    async def test_open_other_users_task(
        self, client: AsyncClient, auth_headers: dict, other_task: Task
    ):
        response = await client.post(
            "/api/v1/sessions",
            headers=auth_headers,
            json={"taskId": str(other_task.id)},
        )

        assert response.status_code == 403

    async def test_open_requires_task(self, client: AsyncClient, auth_headers: dict):
        response = await client.post("/api/v1/sessions", headers=auth_headers, json={})

        assert response.status_code == 400


# ==========================================================================
# Complete Tests
# ==========================================================================

class TestCompleteSession:
    """Tests for PUT /sessions/{id}/complete."""

    async def test_complete_updates_everything(
        self,
        client: AsyncClient,
        auth_headers: dict,
        test_task: Task,
        test_user: User,
    ):
        opened = await open_via_api(client, auth_headers, test_task)

        response = await client.put(
            f"/api/v1/sessions/{opened['id']}/complete",
            headers=auth_headers,
            json={"notes": "Got the parser working"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["alreadyCompleted"] is False
        assert data["session"]["completed"] is True
        assert data["session"]["completedAt"] is not None
        assert data["session"]["notes"] == "Got the parser working"
        assert data["user"] == {"totalPomodoros": 1, "currentStreak": 1, "longestStreak": 1}
        assert data["task"]["completedPomodoros"] == 1
        assert data["task"]["isCompleted"] is False

        assert test_user.total_pomodoros == 1
        assert test_user.last_active_date is not None

    async def test_complete_without_body(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        opened = await open_via_api(client, auth_headers, test_task)

        response = await client.put(
            f"/api/v1/sessions/{opened['id']}/complete", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["session"]["notes"] is None

    async def test_complete_is_idempotent(
        self,
        client: AsyncClient,
        auth_headers: dict,
        test_task: Task,
        test_user: User,
    ):
        """A repeated call does not count the session twice."""
        opened = await open_via_api(client, auth_headers, test_task)
        url = f"/api/v1/sessions/{opened['id']}/complete"

        first = await client.put(url, headers=auth_headers, json={"notes": "first"})
        second = await client.put(url, headers=auth_headers, json={"notes": "second"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["alreadyCompleted"] is True
        assert second.json()["session"]["notes"] == "first"
        assert second.json()["session"]["completedAt"] == first.json()["session"]["completedAt"]
        assert second.json()["user"]["totalPomodoros"] == 1
        assert test_user.total_pomodoros == 1
        assert test_task.completed_pomodoros == 1

    async def test_completing_task_sessions_marks_task_done(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        for _ in range(test_task.estimated_pomodoros):
            opened = await open_via_api(client, auth_headers, test_task)
            response = await client.put(
                f"/api/v1/sessions/{opened['id']}/complete", headers=auth_headers
            )

        task = response.json()["task"]
        assert task["completedPomodoros"] == 2
        assert task["isCompleted"] is True

    async def test_complete_not_found(self, client: AsyncClient, auth_headers: dict):
        response = await client.put(
            f"/api/v1/sessions/{uuid4()}/complete", headers=auth_headers
        )

        assert response.status_code == 404

    async def test_complete_other_users_session(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_headers: dict,
        other_task: Task,
        test_user: User,
    ):
        opened = await open_via_api(client, other_headers, other_task)

        response = await client.put(
            f"/api/v1/sessions/{opened['id']}/complete", headers=auth_headers
        )

        assert response.status_code == 403
        assert test_user.total_pomodoros == 0


class TestCompletionService:
    """Tests for the lifecycle functions directly."""

    async def test_completion_invariant(
        self, db_session: AsyncSession, test_user: User, test_task: Task
    ):
        focus = await open_session(db_session, test_user, test_task.id)
        assert focus.completed is False and focus.completed_at is None

        now = datetime(2026, 5, 4, 9, 30, tzinfo=timezone.utc)
        result = await complete_session(db_session, test_user, focus.id, now=now)
        await db_session.commit()

        assert result.already_completed is False
        assert result.session.completed is True
        assert result.session.completed_at is not None

    async def test_lost_race_counts_once(
        self, db_session: AsyncSession, test_user: User, test_task: Task
    ):
        """If another request completes the session first, nothing is counted."""
        focus = await open_session(db_session, test_user, test_task.id)
        await db_session.commit()

        # Another request wins between our read and our update
        await db_session.execute(
            update(FocusSession)
            .where(FocusSession.id == focus.id)
            .values(completed=True, completed_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        assert focus.completed is False

        result = await complete_session(db_session, test_user, focus.id)
        await db_session.commit()

        assert result.already_completed is True
        assert result.session.completed is True
        assert test_user.total_pomodoros == 0
        assert test_task.completed_pomodoros == 0

    async def test_completion_on_streak_days(
        self, db_session: AsyncSession, test_user: User, test_task: Task
    ):
        day1 = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)
        for offset in (0, 0, 1, 3):
            focus = await open_session(db_session, test_user, test_task.id)
            await complete_session(
                db_session, test_user, focus.id, now=day1 + timedelta(days=offset)
            )
        await db_session.commit()

        assert test_user.total_pomodoros == 4
        assert test_user.current_streak == 1
        assert test_user.longest_streak == 2

        stored = await db_session.execute(
            select(FocusSession).where(FocusSession.completed.is_(True))
        )
        assert len(stored.scalars().all()) == 4


class TestConcurrentCompletion:
    """Two requests from one user racing on separate connections."""

    @pytest_asyncio.fixture
    async def file_factory(
        self, tmp_path: Path
    ) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
        file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        async with file_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield async_sessionmaker(bind=file_engine, class_=AsyncSession, expire_on_commit=False)

        await file_engine.dispose()

    async def complete_in_own_session(
        self,
        factory: async_sessionmaker[AsyncSession],
        user_id: UUID,
        session_id: UUID,
    ) -> bool:
        async with factory() as db:
            user = await db.get(User, user_id)
            result = await complete_session(db, user, session_id)
            await db.commit()
            return result.already_completed

    async def test_two_sessions_both_counted(
        self, file_factory: async_sessionmaker[AsyncSession]
    ):
        async with file_factory() as db:
            user = await make_user(db, unique_email())
            task = await make_task(db, user, estimated=4)
            first = await open_session(db, user, task.id)
            second = await open_session(db, user, task.id)
            await db.commit()

        outcomes = await asyncio.gather(
            self.complete_in_own_session(file_factory, user.id, first.id),
            self.complete_in_own_session(file_factory, user.id, second.id),
        )

        assert outcomes == [False, False]
        async with file_factory() as db:
            stored_user = await db.get(User, user.id)
            stored_task = await db.get(Task, task.id)
            assert stored_user.total_pomodoros == 2
            assert stored_task.completed_pomodoros == 2
            assert stored_user.current_streak == 1

    async def test_duplicate_completion_counted_once(
        self, file_factory: async_sessionmaker[AsyncSession]
    ):
        async with file_factory() as db:
            user = await make_user(db, unique_email())
            task = await make_task(db, user)
            focus = await open_session(db, user, task.id)
            await db.commit()

        outcomes = await asyncio.gather(
            self.complete_in_own_session(file_factory, user.id, focus.id),
            self.complete_in_own_session(file_factory, user.id, focus.id),
        )

        assert sorted(outcomes) == [False, True]
        async with file_factory() as db:
            assert (await db.get(User, user.id)).total_pomodoros == 1
            assert (await db.get(Task, task.id)).completed_pomodoros == 1


# ==========================================================================
# List & Stats Tests
# ==========================================================================

class TestListSessions:
    """Tests for GET /sessions."""

    async def test_list_newest_first(
        self,
        client: AsyncClient,
        auth_headers: dict,
        test_task: Task,
        db_session: AsyncSession,
        test_user: User,
    ):
        base = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)
        for minutes in (0, 60, 30):
            await open_session(
                db_session, test_user, test_task.id, now=base + timedelta(minutes=minutes)
            )
        await db_session.commit()

        response = await client.get("/api/v1/sessions", headers=auth_headers)

        data = response.json()
        assert data["count"] == 3
        started = [s["startedAt"] for s in data["sessions"]]
        assert started == sorted(started, reverse=True)
        assert all(s["task"]["title"] == test_task.title for s in data["sessions"])

    async def test_list_only_own_sessions(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_headers: dict,
        other_task: Task,
    ):
        await open_via_api(client, other_headers, other_task)

        response = await client.get("/api/v1/sessions", headers=auth_headers)

        assert response.json()["count"] == 0


class TestStats:
    """Tests for GET /sessions/stats."""

    async def test_stats_empty(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/sessions/stats", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["totalPomodoros"] == 0
        assert data["todayPomodoros"] == 0
        assert data["weekPomodoros"] == 0
        assert data["totalFocusTime"] == 0
        assert data["totalFocusHours"] == 0
        assert len(data["last7Days"]) == 7
        assert all(day["pomodoros"] == 0 for day in data["last7Days"])

    async def test_stats_after_completion(
        self, client: AsyncClient, auth_headers: dict, test_task: Task
    ):
        opened = await open_via_api(client, auth_headers, test_task, duration=30)
        await client.put(f"/api/v1/sessions/{opened['id']}/complete", headers=auth_headers)
        await open_via_api(client, auth_headers, test_task)  # left open

        response = await client.get("/api/v1/sessions/stats", headers=auth_headers)

        data = response.json()
        assert data["totalPomodoros"] == 1
        assert data["todayPomodoros"] == 1
        assert data["weekPomodoros"] == 1
        assert data["currentStreak"] == 1
        assert data["longestStreak"] == 1
        assert data["totalFocusTime"] == 30
        assert data["totalFocusHours"] == 0.5
        assert data["last7Days"][-1]["pomodoros"] == 1
