"""
Task assignment: pack sections into rewrite batches under a byte budget.
"""

from __future__ import annotations

from typing import List, Optional

from ..core.config import SETTINGS
from ..core.logging import log
from .sections import Section


class Task:
    """An ordered batch of sections submitted together for rewriting."""

    def __init__(
        self,
        task_id: int,
        parent_context: Optional[Section] = None,
        is_preamble: bool = False,
    ):
        self.id = task_id
        self.parent_context = parent_context
        self.is_preamble = is_preamble
        self.sections: List[Section] = []
        self.content_length = 0
        self.max_depth = 0

    def add_section(self, section: Section) -> None:
        self.sections.append(section)
        self.content_length += section.content_length
        self.max_depth = max(self.max_depth, section.depth)

    def is_empty(self) -> bool:
        return not self.sections

    @property
    def title(self) -> str:
        return ", ".join(s.title for s in self.sections)

    @property
    def content(self) -> str:
        return "".join(s.content for s in self.sections)

    @property
    def external_content(self) -> str:
        """Content as shown to the rewrite service, payloads tokenised."""
        return "".join(s.external_content for s in self.sections)

    @property
    def start_line(self) -> int:
        return self.sections[0].start_line if self.sections else 0

    @property
    def end_line(self) -> int:
        return self.sections[-1].end_line if self.sections else 0

    def restore(self, text: str) -> str:
        """Restore every member section's placeholder tokens."""
        for section in self.sections:
            text = section.restore(text)
        return text

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id}, lines={self.start_line}-{self.end_line}, "
            f"sections={len(self.sections)}, bytes={self.content_length})"
        )


class TaskFactory:
    """Hands out task ids ascending from 0; use one factory per document."""

    def __init__(self) -> None:
        self._next_id = 0

    def create_task(
        self,
        parent_context: Optional[Section] = None,
        is_preamble: bool = False,
    ) -> Task:
        task = Task(self._next_id, parent_context, is_preamble)
        self._next_id += 1
        return task


class _Assigner:
    def __init__(self, budget: int, factory: TaskFactory):
        self.budget = budget
        self.factory = factory
        self.tasks: List[Task] = []
        self.current: Optional[Task] = None

    def close(self) -> None:
        if self.current is not None and not self.current.is_empty():
            self.tasks.append(self.current)
        self.current = None

    def open(self, parent_context: Optional[Section]) -> Task:
        self.close()
        self.current = self.factory.create_task(parent_context)
        return self.current

    def fits(self, root: Section, size: int) -> bool:
        task = self.current
        if task is None or task.is_empty():
            return False
        # A task never widens back to a broader heading once it went deeper
        if root.depth < task.max_depth:
            return False
        return task.content_length + size <= self.budget

    def pack(self, sections: List[Section], context: Optional[Section]) -> None:
        i = 0
        while i < len(sections):
            end = group_end(sections, i)
            group = sections[i:end]
            size = sum(s.content_length for s in group)

            if self.fits(group[0], size):
                for section in group:
                    self.current.add_section(section)  # type: ignore[union-attr]
            elif size <= self.budget:
                task = self.open(context)
                for section in group:
                    task.add_section(section)
            elif len(group) == 1:
                # Unsplittable leaf: isolated in a task of its own
                self.open(context).add_section(group[0])
                self.close()
            else:
                root = group[0]
                self.open(root).add_section(root)
                self.pack(group[1:], root)
                self.close()
            i = end


def group_end(sections: List[Section], start: int) -> int:
    """Index just past the group rooted at ``sections[start]``."""
    root_depth = sections[start].depth
    end = start + 1
    while end < len(sections) and sections[end].depth > root_depth:
        end += 1
    return end


def assign_tasks(
    sections: List[Section],
    budget: Optional[int] = None,
    factory: Optional[TaskFactory] = None,
) -> List[Task]:
    """
    Pack a flat section list into ordered tasks.

    The first section, when it is a prologue or ``#`` heading, becomes a
    dedicated preamble task. Every later section is taken together with its
    deeper descendants as a group and appended to the open task when it fits;
    a group larger than the whole budget gets tasks of its own that share the
    group root as ``parent_context``.

    Args:
        sections: Output of ``split_markdown_into_sections``
        budget: Task byte budget (defaults to settings)
        factory: Id source; a fresh factory starts ids at 0

    Returns:
        Non-empty tasks in document order
    """
    if not sections:
        return []

    budget = SETTINGS.TASK_BUDGET_BYTES if budget is None else budget
    factory = factory or TaskFactory()
    assigner = _Assigner(budget, factory)

    start = 0
    if sections[0].depth <= 1:
        preamble = factory.create_task(is_preamble=True)
        preamble.add_section(sections[0])
        assigner.tasks.append(preamble)
        start = 1

    assigner.pack(sections[start:], None)
    assigner.close()

    log.debug("tasks.assigned", tasks=len(assigner.tasks), budget=budget)
    log.debug("tasks.plan", plan=format_task_plan(assigner.tasks))
    return assigner.tasks


def format_task_plan(tasks: List[Task]) -> str:
    """Render a task assignment as an indented outline for debugging."""
    lines = []
    for task in tasks:
        flags = " (Preamble)" if task.is_preamble else ""
        context = (
            f" (parentContext: '{task.parent_context.title}')"
            if task.parent_context is not None
            else ""
        )
        lines.append(
            f"- Task {task.id}{flags} (Lines {task.start_line}-{task.end_line}) "
            f"(len: {task.content_length}){context}"
        )
        for section in task.sections:
            heading = "#" * section.depth or "(prologue)"
            lines.append(
                f"  * {heading} {section.title} (len: {section.content_length})"
            )
    return "\n".join(lines)
