"""Rewrite service contract, prompts and orchestration."""

from .orchestrator import RewriteOrchestrator, RewriteResult, TaskState
from .provider import (
    DummyRewriter,
    OpenAIRewriter,
    RewriteProvider,
    RewriteRequest,
    get_rewrite_provider,
)

__all__ = [
    "DummyRewriter",
    "OpenAIRewriter",
    "RewriteOrchestrator",
    "RewriteProvider",
    "RewriteRequest",
    "RewriteResult",
    "TaskState",
    "get_rewrite_provider",
]
