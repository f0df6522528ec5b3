"""
Timer State Machine
===================

Client-side focus timer: a work/break phase crossed with a running/paused
flag, counting down one second per tick.

    work (25:00) --reaches 0--> break (05:00) --reaches 0--> work (25:00)
                                 |                             ^
                                 +------------ skip -----------+

A work phase runs against an open focus session on the server. When the
work countdown reaches 0 the session is closed through the session gateway;
the server applies the counters, so the client only keeps a local session
count for display.

While a session is open or the timer is running, every state change is
written to a keyed local store. ``restore()`` reloads a snapshot younger
than one hour and subtracts the time that passed while the timer was
running. Restore never fires completion; ``check_completion()`` does, and
``run()`` calls it once before ticking.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol
from uuid import UUID

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from devfocus.core.clock import as_utc, fmt_mmss, utc_now
from devfocus.core.exceptions import ValidationError

logger = structlog.get_logger()

WORK_DURATION = 25 * 60
BREAK_DURATION = 5 * 60
RESTORE_WINDOW = timedelta(hours=1)
STORAGE_KEY = "devfocus_timer_state"


# ==========================================================================
# Collaborators
# ==========================================================================

class SessionGateway(Protocol):
    async def open_session(self, task_id: UUID) -> UUID: ...

    async def complete_session(self, session_id: UUID, notes: Optional[str] = None) -> None: ...


class SnapshotStore(Protocol):
    def load(self, key: str) -> Optional[dict[str, Any]]: ...

    def save(self, key: str, value: dict[str, Any]) -> None: ...

    def clear(self, key: str) -> None: ...


@dataclass
class Notification:
    title: str
    body: str
    tag: str


def log_notification(notification: Notification) -> None:
    logger.info(
        "timer_notification",
        title=notification.title,
        body=notification.body,
        tag=notification.tag,
    )


# ==========================================================================
# Snapshot
# ==========================================================================

class SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CurrentTask(SnapshotModel):
    """The task a work phase is attached to."""

    id: UUID
    title: str
    category: Optional[str] = None


class TimerSnapshot(SnapshotModel):
    """Persisted timer state, camelCase in storage."""

    time_left: int = Field(ge=0)
    is_active: bool
    is_break: bool
    current_task: Optional[CurrentTask] = None
    session_count: int = Field(0, ge=0)
    current_session_id: Optional[UUID] = None
    saved_at: datetime


# ==========================================================================
# State Machine
# ==========================================================================

class TimerStateMachine:
    """
    Focus timer.

    Usage:
        gateway = client.session_gateway(RequestContext(token=token))
        timer = TimerStateMachine(gateway, JsonFileStore("~/.devfocus.json"))
        timer.restore()
        await timer.start(CurrentTask(id=task.id, title=task.title))
        await timer.run(stop_event)
    """

    def __init__(
        self,
        gateway: SessionGateway,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], datetime] = utc_now,
        notes_provider: Optional[Callable[[], Optional[str]]] = None,
        notifier: Callable[[Notification], None] = log_notification,
    ):
        self.gateway = gateway
        self.store = store
        self.clock = clock
        self.notes_provider = notes_provider
        self.notifier = notifier

        self.time_left = WORK_DURATION
        self.is_active = False
        self.is_break = False
        self.current_task: Optional[CurrentTask] = None
        self.session_count = 0
        self.current_session_id: Optional[UUID] = None

    @property
    def phase(self) -> str:
        return "break" if self.is_break else "work"

    @property
    def display(self) -> str:
        return fmt_mmss(self.time_left)

    def phase_duration(self) -> int:
        return BREAK_DURATION if self.is_break else WORK_DURATION

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(
            time_left=self.time_left,
            is_active=self.is_active,
            is_break=self.is_break,
            current_task=self.current_task,
            session_count=self.session_count,
            current_session_id=self.current_session_id,
            saved_at=self.clock(),
        )

    def _persist(self) -> None:
        if self.store is None:
            return
        if self.is_active or self.current_session_id is not None:
            self.store.save(STORAGE_KEY, self.snapshot().model_dump(mode="json", by_alias=True))
        else:
            self.store.clear(STORAGE_KEY)

    def clear_saved_state(self) -> None:
        if self.store is not None:
            self.store.clear(STORAGE_KEY)

    def restore(self) -> bool:
        """
        Reload a saved snapshot.

        Snapshots an hour old or older are discarded. If the snapshot was
        running, the whole seconds since it was saved are subtracted
        (clamped at 0), and it stays running only if time remains.

        Returns:
            True if state was restored
        """
        if self.store is None:
            return False

        data = self.store.load(STORAGE_KEY)
        if data is None:
            return False

        try:
            saved = TimerSnapshot.model_validate(data)
        except pydantic.ValidationError as e:
            logger.warning("timer_snapshot_invalid", errors=e.error_count())
            self.clear_saved_state()
            return False

        age = self.clock() - as_utc(saved.saved_at)
        if age >= RESTORE_WINDOW:
            logger.info("timer_snapshot_expired", saved_at=saved.saved_at.isoformat())
            self.clear_saved_state()
            return False

        time_left = saved.time_left
        if saved.is_active:
            elapsed = max(0, int(age.total_seconds()))
            time_left = max(0, time_left - elapsed)

        self.time_left = time_left
        self.is_active = saved.is_active and time_left > 0
        self.is_break = saved.is_break
        self.current_task = saved.current_task
        self.session_count = saved.session_count
        self.current_session_id = saved.current_session_id

        logger.info(
            "timer_restored",
            phase=self.phase,
            time_left=self.time_left,
            is_active=self.is_active,
        )
        return True

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def select_task(self, task: Optional[CurrentTask]) -> None:
        self.current_task = task
        self._persist()

    async def start(self, task: Optional[CurrentTask] = None) -> None:
        """
        Start or resume the countdown.

        Starting a work phase with no open session opens one for ``task``
        (or the already selected task).

        Raises:
            ValidationError: If a new work session has no task
        """
        if task is not None:
            self.current_task = task

        if not self.is_break and self.current_session_id is None:
            if self.current_task is None:
                raise ValidationError("Select a task before starting a focus session")
            self.current_session_id = await self.gateway.open_session(self.current_task.id)
            logger.info(
                "timer_session_opened",
                session_id=str(self.current_session_id),
                task_id=str(self.current_task.id),
            )

        self.is_active = True
        self._persist()

    def pause(self) -> None:
        self.is_active = False
        self._persist()

    async def tick(self) -> None:
        """Advance one second; runs the completion pass when 0 is reached."""
        if not self.is_active:
            return

        if self.time_left > 0:
            self.time_left -= 1

        if self.time_left == 0:
            await self.check_completion()
        else:
            self._persist()

    async def check_completion(self) -> bool:
        """
        Finish the current phase if its countdown is at 0.

        If closing the work session fails, the timer stays at 0 in the work
        phase and the error propagates; calling this again retries.

        Returns:
            True if a phase finished
        """
        if self.time_left > 0:
            return False

        self.is_active = False

        if self.is_break:
            self.is_break = False
            self.time_left = WORK_DURATION
            self.clear_saved_state()
            self.notifier(Notification(
                title="Break Over!",
                body="Ready to focus again?",
                tag="break-complete",
            ))
            return True

        if self.current_session_id is not None:
            self._persist()
            notes = self.notes_provider() if self.notes_provider else None
            await self.gateway.complete_session(self.current_session_id, notes)
            logger.info("timer_session_completed", session_id=str(self.current_session_id))

        self.current_session_id = None
        self.is_break = True
        self.time_left = BREAK_DURATION
        self.session_count += 1
        self._persist()
        self.notifier(Notification(
            title="Pomodoro Complete!",
            body="Great work! Time for a 5-minute break.",
            tag="pomodoro-complete",
        ))
        return True

    def reset(self) -> None:
        """Stop and rewind the current phase to its full length."""
        self.is_active = False
        self.time_left = self.phase_duration()
        self.clear_saved_state()

    def skip(self) -> None:
        """
        Skip the rest of a break.

        Raises:
            ValidationError: If the timer is in the work phase
        """
        if not self.is_break:
            raise ValidationError("Only a break can be skipped")

        self.is_break = False
        self.time_left = WORK_DURATION
        self.is_active = False
        self.clear_saved_state()

    # ==========================================================================
    # Loop
    # ==========================================================================

    async def run(self, stop: Optional[asyncio.Event] = None, interval: float = 1.0) -> None:
        """
        Tick once per elapsed second until ``stop`` is set.

        Elapsed time is measured on the loop clock, so a late wake-up
        ticks for every whole second that passed.
        """
        stop = stop or asyncio.Event()
        loop = asyncio.get_running_loop()

        await self.check_completion()
        last = loop.time()

        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

            elapsed = int((loop.time() - last) / interval)
            if elapsed <= 0:
                continue
            last += elapsed * interval

            for _ in range(elapsed):
                await self.tick()
