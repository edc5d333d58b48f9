"""Typed task progress events and an append-only, thread-safe event sink."""

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, Field


class EventLevel(str, Enum):
    """Event levels for structured logging."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EventAction(str, Enum):
    """Task lifecycle actions."""

    ADDED = "added"
    STARTED = "started"
    BYTES_RECEIVED = "bytes_received"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNINGS = "warnings"


class TaskEvent(BaseModel):
    """Typed schema for all task progress events."""

    ts: str = Field(..., description="ISO 8601 timestamp with Z suffix")
    run_id: str = Field(..., description="Unique run identifier")
    level: EventLevel = Field(..., description="Event level")
    action: EventAction = Field(..., description="Event action")
    task_id: Optional[int] = None

    # Context fields (relevant to the action)
    title: Optional[str] = None
    content_length: Optional[int] = None
    bytes: Optional[int] = None
    duration_seconds: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


def new_run_id() -> str:
    return f"{datetime.now(timezone.utc).strftime('%Y-%m-%d_%H%M%S')}_{uuid.uuid4().hex[:4]}"


Subscriber = Callable[[TaskEvent], None]


class EventSink:
    """
    Append-only event log shared by orchestrator workers.

    Appends are serialised by a lock. Subscribers are called synchronously,
    in append order, on the appending thread; a subscriber must not append.
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or new_run_id()
        self._events: List[TaskEvent] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    @property
    def events(self) -> List[TaskEvent]:
        """Snapshot of every event appended so far."""
        with self._lock:
            return list(self._events)

    def _emit(
        self,
        action: EventAction,
        level: EventLevel = EventLevel.INFO,
        **kwargs,
    ) -> TaskEvent:
        event = TaskEvent(
            ts=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            run_id=self.run_id,
            level=level,
            action=action,
            **kwargs,
        )
        with self._lock:
            self._events.append(event)
            for callback in self._subscribers:
                callback(event)
        return event

    def added(self, task_id: int, title: str, content_length: int) -> TaskEvent:
        return self._emit(
            EventAction.ADDED,
            task_id=task_id,
            title=title,
            content_length=content_length,
        )

    def started(self, task_id: int) -> TaskEvent:
        return self._emit(EventAction.STARTED, task_id=task_id)

    def bytes_received(self, task_id: int, count: int) -> TaskEvent:
        return self._emit(EventAction.BYTES_RECEIVED, task_id=task_id, bytes=count)

    def retrying(self, task_id: int) -> TaskEvent:
        return self._emit(
            EventAction.RETRYING, level=EventLevel.WARNING, task_id=task_id
        )

    def completed(self, task_id: int, duration_seconds: float) -> TaskEvent:
        return self._emit(
            EventAction.COMPLETED,
            task_id=task_id,
            duration_seconds=duration_seconds,
        )

    def failed(self, task_id: int) -> TaskEvent:
        return self._emit(EventAction.FAILED, level=EventLevel.ERROR, task_id=task_id)

    def warnings(self, messages: List[str]) -> TaskEvent:
        """Emit the run's collected warnings once, at the end."""
        return self._emit(
            EventAction.WARNINGS,
            level=EventLevel.WARNING if messages else EventLevel.INFO,
            warnings=list(messages),
        )
