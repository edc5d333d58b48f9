"""Docshard: budgeted Markdown sectioning, structural validation and rewrite orchestration."""

__version__ = "0.1.0"
