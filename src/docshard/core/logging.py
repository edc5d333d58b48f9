"""
Structured logging for docshard.

Events are dotted names with keyword context (``log.info("rewrite.task.retry",
task_id=3)``). Values bound with ``bind_log_context`` are merged into every
event logged on the same thread until the block exits.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Literal, Optional

import structlog

from .config import SETTINGS

LogFormat = Literal["json", "plain", "auto"]

CI_ENV_VARS = ["CI", "CONTINUOUS_INTEGRATION", "GITHUB_ACTIONS", "JENKINS_URL"]


def _should_use_json_format() -> bool:
    """JSON under CI or when stderr is redirected."""
    if any(os.environ.get(var) for var in CI_ENV_VARS):
        return True
    return not sys.stderr.isatty()


def _build_processors(use_json: bool) -> List[Any]:
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def setup_logging(
    format_type: Optional[LogFormat] = None, debug: Optional[bool] = None
) -> None:
    """
    Configure structlog for the embedding application.

    Args:
        format_type: "json", "plain" or "auto" (JSON under CI or a non-TTY).
            Defaults to ``SETTINGS.LOG_FORMAT``.
        debug: Emit debug-level events such as task plans. Defaults to
            ``SETTINGS.LOG_DEBUG``.
    """
    format_type = format_type or SETTINGS.LOG_FORMAT
    debug = SETTINGS.LOG_DEBUG if debug is None else debug
    use_json = format_type == "json" or (
        format_type == "auto" and _should_use_json_format()
    )

    structlog.configure(
        processors=_build_processors(use_json),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def bind_log_context(**values: Any) -> Iterator[None]:
    """Attach ``values`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


log = structlog.get_logger()
