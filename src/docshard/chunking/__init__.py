"""
Docshard Chunking Package

Lossless section decomposition, budgeted task assignment and the
placeholder codec for opaque payloads.
"""

from .assurance import build_task_assurance
from .placeholders import encode_placeholders, restore_placeholders
from .sections import Section, split_markdown_into_sections
from .tasks import Task, TaskFactory, assign_tasks, format_task_plan

__all__ = [
    "Section",
    "Task",
    "TaskFactory",
    "assign_tasks",
    "build_task_assurance",
    "encode_placeholders",
    "format_task_plan",
    "restore_placeholders",
    "split_markdown_into_sections",
]
