from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from pydantic import BaseModel

from ..core.config import SETTINGS
from ..core.errors import (
    ConfigurationError,
    QuotaExceededError,
    TransportError,
    mask_api_key,
)
from ..core.logging import log
from .prompts import build_prompt


class RewriteRequest(BaseModel):
    """One submission to the rewrite service."""

    full_context: str
    section: str
    preamble_context: Optional[str] = None
    errors: Optional[List[str]] = None

    @property
    def is_retry(self) -> bool:
        return bool(self.errors)

    def render(self) -> str:
        return build_prompt(
            self.full_context,
            self.section,
            preamble_context=self.preamble_context,
            errors=self.errors,
        )


class RewriteProvider(ABC):
    """Abstract base class for rewrite providers."""

    @abstractmethod
    def stream(self, request: RewriteRequest) -> Iterator[str]:
        """Yield the rewritten text in chunks as the service produces them.

        Raises:
            TransportError: The service failed; QuotaExceededError for
                rate or quota exhaustion
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass


class DummyRewriter(RewriteProvider):
    """Deterministic identity rewriter for testing."""

    def __init__(self, chunk_size: int = 256):
        self.chunk_size = chunk_size

    def stream(self, request: RewriteRequest) -> Iterator[str]:
        text = request.section
        for start in range(0, len(text), self.chunk_size):
            yield text[start : start + self.chunk_size]

    @property
    def provider_name(self) -> str:
        return "dummy"


class OpenAIRewriter(RewriteProvider):
    """OpenAI chat-completions rewriter (requires API key)."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.model = model
        self.api_key = api_key or SETTINGS.OPENAI_API_KEY
        self.base_url = base_url or SETTINGS.OPENAI_BASE_URL
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the openai provider")

    def stream(self, request: RewriteRequest) -> Iterator[str]:
        """Stream a chat completion for the rendered prompt."""
        try:
            import openai  # type: ignore[import-not-found]
        except ImportError:
            raise ImportError("openai package required for OpenAI rewriting: pip install openai") from None

        client = openai.OpenAI(api_key=self.api_key, base_url=self.base_url)
        prompt = request.render()
        log.debug(
            "rewrite.openai.request",
            model=self.model,
            retry=request.is_retry,
            prompt_bytes=len(prompt.encode("utf-8")),
        )

        # Failures can surface mid-stream as well as on the first call
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                stream=True,
            )
            for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.RateLimitError as e:
            masked = mask_api_key(self.api_key)
            raise QuotaExceededError(
                f"Rewrite API quota exceeded for key: {masked}", masked_api_key=masked
            ) from e
        except openai.APIError as e:
            raise TransportError(f"Rewrite API request failed: {e}") from e

    @property
    def provider_name(self) -> str:
        return "openai"


def get_rewrite_provider(
    provider_name: str | None = None,
) -> RewriteProvider:
    """
    Get rewrite provider based on configuration.

    Args:
        provider_name: Provider name ("dummy", "openai")
                      or None to use SETTINGS.REWRITE_PROVIDER

    Returns:
        RewriteProvider instance
    """
    provider_name = provider_name or SETTINGS.REWRITE_PROVIDER

    if provider_name == "dummy":
        return DummyRewriter()
    elif provider_name == "openai":
        return OpenAIRewriter(model=SETTINGS.OPENAI_MODEL)
    else:
        raise ConfigurationError(f"Unknown rewrite provider: {provider_name}")
