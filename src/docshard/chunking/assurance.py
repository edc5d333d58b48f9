"""
Partition assurance: check that a section/task plan covers a document exactly.
"""

from typing import Dict, List

from .boundaries import split_lines
from .sections import Section
from .tasks import Task


def _depth_consistent(task: Task) -> bool:
    """
    Check the heading depths of one task's members.

    A section deeper than the current group root belongs to that group. Any
    other section opens a new group, and a group root may not be shallower
    than anything already in the task.
    """
    if not task.sections:
        return True
    root_depth = deepest = task.sections[0].depth
    for section in task.sections[1:]:
        if section.depth <= root_depth:
            if section.depth < deepest:
                return False
            root_depth = section.depth
        deepest = max(deepest, section.depth)
    return True


def build_task_assurance(
    document: str, sections: List[Section], tasks: List[Task], budget: int
) -> Dict:
    """
    Build an assurance report for a section/task plan.

    Args:
        document: Source text the plan was built from
        sections: Output of ``split_markdown_into_sections``
        tasks: Output of ``assign_tasks``
        budget: Task byte budget the plan was built with

    Returns:
        Assurance report dictionary with a PASS/FAIL ``status``
    """
    line_count = len(split_lines(document))
    round_trip = "".join(s.content for s in sections) == document

    # Coverage: every section in exactly one task
    seen: Dict[int, int] = {}
    for task in tasks:
        for section in task.sections:
            seen[section.index] = seen.get(section.index, 0) + 1
    missing = [s.index for s in sections if s.index not in seen]
    duplicated = [index for index, count in seen.items() if count > 1]

    # Contiguity: each task starts right after the previous one ends
    gaps = []
    expected_start = 1
    for task in tasks:
        if task.start_line != expected_start:
            gaps.append(
                {
                    "task_id": task.id,
                    "expected": expected_start,
                    "actual": task.start_line,
                }
            )
        expected_start = task.end_line + 1
    last_end = tasks[-1].end_line if tasks else 0

    depth_violations = []
    oversized = []
    for task in tasks:
        if not _depth_consistent(task):
            depth_violations.append(task.id)

        if task.content_length > budget:
            oversized.append(
                {
                    "task_id": task.id,
                    "content_length": task.content_length,
                    "sections": len(task.sections),
                }
            )

    # Over budget is only acceptable for a section standing alone
    breaches = [o for o in oversized if o["sections"] > 1]

    status = (
        "PASS"
        if round_trip
        and not missing
        and not duplicated
        and not gaps
        and last_end == line_count
        and not depth_violations
        and not breaches
        else "FAIL"
    )

    return {
        "budget": budget,
        "lines": line_count,
        "sections": len(sections),
        "tasks": len(tasks),
        "roundTrip": round_trip,
        "coverage": {
            "missing": missing[:10],  # Limit examples
            "duplicated": duplicated[:10],
        },
        "contiguity": {
            "gaps": gaps[:10],
            "lastEndLine": last_end,
        },
        "depthViolations": depth_violations[:10],
        "oversized": {
            "count": len(oversized),
            "breaches": breaches[:10],
        },
        "status": status,
    }
