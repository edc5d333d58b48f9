"""Structural round-trip validation."""

from .core import (
    DimensionResult,
    ValidationResult,
    validate_code_blocks,
    validate_inline_code,
    validate_rewrite,
    validate_special_markers,
)

__all__ = [
    "DimensionResult",
    "ValidationResult",
    "validate_code_blocks",
    "validate_inline_code",
    "validate_rewrite",
    "validate_special_markers",
]
