"""
Rewrite orchestration: drive tasks through the rewrite service with bounded
concurrency, one corrective retry per task and ordered reassembly.
"""

import contextvars
import re
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..chunking.tasks import Task
from ..core.config import SETTINGS
from ..core.errors import TransportError
from ..core.logging import bind_log_context, log
from ..obs.events import EventSink
from ..validation.core import validate_rewrite
from .provider import RewriteProvider, RewriteRequest

JOIN_SEPARATOR = "\n\n"
_LEADING_BLANK_LINES_RE = re.compile(r"\A(?:[ \t]*\n)+")


class TaskState(str, Enum):
    WAITING = "waiting"
    SUBMITTED = "submitted"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    ACCEPTED_WITH_WARNING = "accepted_with_warning"
    FAILED = "failed"


class RewriteResult(BaseModel):
    """Reassembled document plus per-task audit data."""

    document: str
    states: Dict[int, TaskState] = Field(default_factory=dict)
    retried: Dict[int, List[str]] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class _Run:
    """Mutable bookkeeping for one ``RewriteOrchestrator.run`` call."""

    def __init__(self, tasks: List[Task]):
        self.full_context = "".join(t.external_content for t in tasks)
        self.preamble_context: Optional[str] = None
        self.states: Dict[int, TaskState] = {t.id: TaskState.WAITING for t in tasks}
        self.retried: Dict[int, List[str]] = {}
        self.warnings: List[str] = []
        self.outputs: Dict[int, str] = {}
        self.lock = threading.Lock()

    def set_state(self, task_id: int, state: TaskState) -> None:
        with self.lock:
            self.states[task_id] = state


class RewriteOrchestrator:
    """
    Run assigned tasks against a rewrite provider.

    The preamble task runs first on the calling thread; its accepted text is
    shared with every later request. Remaining tasks run on a thread pool with
    at most ``concurrency`` in flight. A response that fails structural
    validation is resubmitted once with the mismatch list; a second failure is
    accepted and recorded as a warning.
    """

    def __init__(
        self,
        provider: RewriteProvider,
        concurrency: Optional[int] = None,
        sink: Optional[EventSink] = None,
    ):
        self.provider = provider
        self.concurrency = (
            SETTINGS.REWRITE_CONCURRENCY if concurrency is None else concurrency
        )
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.sink = sink or EventSink()

    def run(self, tasks: List[Task], document: Optional[str] = None) -> RewriteResult:
        """
        Rewrite every task and reassemble the document.

        Args:
            tasks: Output of ``assign_tasks`` for one document
            document: Source text; only consulted for its trailing newline

        Returns:
            RewriteResult with the reassembled document

        Raises:
            TransportError: A task failed fatally. Raised after in-flight
                siblings have finished; no further tasks are started.
        """
        ordered = sorted(tasks, key=lambda t: t.id)
        with bind_log_context(run_id=self.sink.run_id):
            return self._execute(ordered, document)

    def _execute(self, ordered: List[Task], document: Optional[str]) -> RewriteResult:
        run = _Run(ordered)
        if not ordered:
            self.sink.warnings([])
            return RewriteResult(document="")

        for task in ordered:
            self.sink.added(task.id, task.title, task.content_length)

        log.info(
            "rewrite.run.start",
            provider=self.provider.provider_name,
            tasks=len(ordered),
            concurrency=self.concurrency,
        )

        remaining = ordered
        if ordered[0].is_preamble:
            preamble = ordered[0]
            try:
                run.outputs[preamble.id] = self._process(run, preamble)
            except TransportError:
                self.sink.warnings(run.warnings)
                raise
            run.preamble_context = run.outputs[preamble.id]
            remaining = ordered[1:]

        failure = self._run_pool(run, remaining)
        self.sink.warnings(run.warnings)
        if failure is not None:
            log.error(
                "rewrite.run.failed",
                task_id=failure.task_id,
                error=str(failure),
            )
            raise failure

        text = self._assemble(ordered, run.outputs, document)
        log.info(
            "rewrite.run.complete",
            tasks=len(ordered),
            retried=len(run.retried),
            warnings=len(run.warnings),
        )
        return RewriteResult(
            document=text,
            states=dict(run.states),
            retried=dict(run.retried),
            warnings=list(run.warnings),
        )

    def _run_pool(self, run: _Run, tasks: List[Task]) -> Optional[TransportError]:
        """Process tasks with a bounded number in flight; return the first failure."""
        pending = iter(tasks)
        failure: Optional[TransportError] = None

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            in_flight: Dict[Future, Task] = {}

            def fill() -> None:
                # New submissions stop once any task has failed
                while failure is None and len(in_flight) < self.concurrency:
                    task = next(pending, None)
                    if task is None:
                        return
                    # Workers log with the caller's bound context
                    future = executor.submit(
                        contextvars.copy_context().run, self._process, run, task
                    )
                    in_flight[future] = task

            fill()
            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    task = in_flight.pop(future)
                    try:
                        run.outputs[task.id] = future.result()
                    except TransportError as e:
                        if failure is None:
                            failure = e
                fill()

        return failure

    def _process(self, run: _Run, task: Task) -> str:
        """Submit one task, retrying once on structural mismatch."""
        start = time.monotonic()
        run.set_state(task.id, TaskState.SUBMITTED)
        self.sink.started(task.id)

        request = RewriteRequest(
            full_context=run.full_context,
            section=task.external_content,
            preamble_context=None if task.is_preamble else run.preamble_context,
        )
        try:
            text = self._collect(task, request)
            result = validate_rewrite(task.external_content, text)
            state = TaskState.ACCEPTED

            if not result.is_valid:
                errors = result.errors
                with run.lock:
                    run.retried[task.id] = errors
                run.set_state(task.id, TaskState.RETRYING)
                self.sink.retrying(task.id)
                log.warning(
                    "rewrite.task.retry",
                    task_id=task.id,
                    title=task.title,
                    errors=len(errors),
                )

                text = self._collect(task, request.model_copy(update={"errors": errors}))
                second = validate_rewrite(task.external_content, text)
                if not second.is_valid:
                    state = TaskState.ACCEPTED_WITH_WARNING
                    with run.lock:
                        run.warnings.append(
                            f"Rewrite of task {task.id} ({task.title}) failed "
                            "validation again, but the result will be accepted."
                        )
        except TransportError as e:
            if e.task_id is None:
                e.task_id = task.id
            run.set_state(task.id, TaskState.FAILED)
            self.sink.failed(task.id)
            log.error("rewrite.task.failed", task_id=task.id, error=str(e))
            raise

        duration = time.monotonic() - start
        run.set_state(task.id, state)
        self.sink.completed(task.id, duration)
        log.info(
            "rewrite.task.completed",
            task_id=task.id,
            state=state.value,
            duration_seconds=round(duration, 2),
        )
        return text

    def _collect(self, task: Task, request: RewriteRequest) -> str:
        """Drain the provider stream, reporting bytes received so far."""
        if not request.section.strip():
            return request.section

        parts: List[str] = []
        received = 0
        try:
            for chunk in self.provider.stream(request):
                parts.append(chunk)
                received += len(chunk.encode("utf-8"))
                self.sink.bytes_received(task.id, received)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Rewrite provider failed: {e}", task_id=task.id) from e
        return "".join(parts)

    def _assemble(
        self, tasks: List[Task], outputs: Dict[int, str], document: Optional[str]
    ) -> str:
        pieces = [
            _LEADING_BLANK_LINES_RE.sub("", task.restore(outputs[task.id])).rstrip()
            for task in tasks
        ]
        text = JOIN_SEPARATOR.join(pieces)

        source_tail = document if document is not None else tasks[-1].content
        if source_tail.endswith("\n"):
            text += "\n"
        return text
