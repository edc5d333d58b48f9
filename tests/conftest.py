"""Global test configuration for docshard tests."""

import threading
import time
from typing import Callable, Dict, Iterator, List, Optional

import pytest

from docshard.core.errors import TransportError
from docshard.rewrite.provider import RewriteProvider, RewriteRequest

SIMPLE_DOC = "# T\n\nIntro.\n\n## A\n\nBody A\n\n## B\n\nBody B\n"


class ScriptedRewriter(RewriteProvider):
    """
    Test provider that answers from a callable.

    ``respond(request, attempt)`` returns the full response text, or raises.
    ``attempt`` counts submissions of the same section, starting at 0.
    """

    def __init__(
        self,
        respond: Optional[Callable[[RewriteRequest, int], str]] = None,
        delay: float = 0.0,
        chunk_size: int = 7,
    ):
        self.respond = respond or (lambda request, attempt: request.section)
        self.delay = delay
        self.chunk_size = chunk_size
        self.requests: List[RewriteRequest] = []
        self.attempts: Dict[str, int] = {}
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def stream(self, request: RewriteRequest) -> Iterator[str]:
        with self._lock:
            self.requests.append(request)
            attempt = self.attempts.get(request.section, 0)
            self.attempts[request.section] = attempt + 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            text = self.respond(request, attempt)
        finally:
            with self._lock:
                self.active -= 1
        for start in range(0, len(text), self.chunk_size):
            yield text[start : start + self.chunk_size]

    @property
    def provider_name(self) -> str:
        return "scripted"


@pytest.fixture
def simple_doc() -> str:
    return SIMPLE_DOC


@pytest.fixture
def identity_provider() -> ScriptedRewriter:
    return ScriptedRewriter()


def failing(section_marker: str, message: str = "connection reset"):
    """Build a responder that raises for sections containing a marker."""

    def respond(request: RewriteRequest, attempt: int) -> str:
        if section_marker in request.section:
            raise TransportError(message)
        return request.section

    return respond


@pytest.fixture
def scripted():
    """The ScriptedRewriter class, for tests that need custom responders."""
    return ScriptedRewriter


@pytest.fixture
def failing_responder():
    return failing
