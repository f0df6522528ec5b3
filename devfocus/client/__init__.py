"""
DevFocus - Client Library
=========================

Typed API client and the focus timer state machine.
"""

from devfocus.client.api import ClientSessionGateway, DevFocusClient, RequestContext
from devfocus.client.storage import JsonFileStore, MemoryStore
from devfocus.client.timer import (
    BREAK_DURATION,
    STORAGE_KEY,
    WORK_DURATION,
    CurrentTask,
    Notification,
    TimerSnapshot,
    TimerStateMachine,
)

__all__ = [
    "BREAK_DURATION",
    "STORAGE_KEY",
    "WORK_DURATION",
    "ClientSessionGateway",
    "CurrentTask",
    "DevFocusClient",
    "JsonFileStore",
    "MemoryStore",
    "Notification",
    "RequestContext",
    "TimerSnapshot",
    "TimerStateMachine",
]
