"""Typed failures raised by the rewrite pipeline.

Structural validation problems are never raised; they travel as
``ValidationResult`` values. Everything here is fatal to the task that
incurred it.
"""

from typing import Optional


class DocshardError(Exception):
    """Base class for docshard failures."""

    pass


class ConfigurationError(DocshardError):
    """Raised when the rewrite provider cannot be configured."""

    pass


class TransportError(DocshardError):
    """Raised when the rewrite service fails to return a response."""

    def __init__(self, message: str, task_id: Optional[int] = None):
        super().__init__(message)
        self.task_id = task_id


class QuotaExceededError(TransportError):
    """Raised when the rewrite service reports rate or quota exhaustion."""

    def __init__(
        self,
        message: str,
        masked_api_key: str = "",
        task_id: Optional[int] = None,
    ):
        super().__init__(message, task_id=task_id)
        self.masked_api_key = masked_api_key


def mask_api_key(api_key: Optional[str]) -> str:
    """Keep the first and last four characters of a key."""
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}****{api_key[-4:]}"
