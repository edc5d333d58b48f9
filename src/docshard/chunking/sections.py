"""
Section tree builder: lossless decomposition of Markdown into bounded sections.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.config import SETTINGS
from ..core.logging import log
from .boundaries import (
    MAX_HEADING_DEPTH,
    HeadingLine,
    byte_length,
    scan_headings,
    split_lines,
)
from .placeholders import (
    encode_placeholders,
    restore_placeholders,
    slugify_title,
)

PROLOGUE_TITLE = "Prologue"
TOP_LEVEL_DEPTH = 2  # Headings at or above this depth open a top-level group
MIN_SPLIT_DEPTH = 3  # First level tried when an oversized group is re-split


class Section(BaseModel):
    """An immutable unit of document content with its heading depth and line span."""

    model_config = ConfigDict(frozen=True)

    index: int
    title: str = PROLOGUE_TITLE
    depth: int = Field(ge=0, le=MAX_HEADING_DEPTH)
    content: str
    start_line: int
    end_line: int
    anchor: Optional[str] = None
    parent_index: Optional[int] = None
    total_length: int = 0
    token_slug: str = ""

    # Derived at construction
    content_length: int = 0
    external_content: str = ""
    placeholders: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _derive(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        content = data.get("content", "")
        title = data.get("title", PROLOGUE_TITLE)
        slug = data.get("token_slug") or slugify_title(title)
        external, mapping = encode_placeholders(content, title, slug=slug)
        data["token_slug"] = slug
        data["content_length"] = byte_length(content)
        data["external_content"] = external
        data["placeholders"] = mapping
        if not data.get("total_length"):
            data["total_length"] = data["content_length"]
        return data

    @property
    def has_children(self) -> bool:
        return self.content_length != self.total_length

    def restore(self, text: str) -> str:
        """Restore this section's placeholder tokens in returned text."""
        return restore_placeholders(text, self.placeholders)


class _Span(NamedTuple):
    start: int  # 0-based first line
    end: int  # exclusive
    title: str
    depth: int
    heading_line: Optional[int] = None
    anchor: Optional[str] = None


def split_markdown_into_sections(
    text: str, max_section_bytes: Optional[int] = None
) -> List[Section]:
    """
    Split Markdown into a flat, pre-ordered list of sections.

    Top-level groups open at every heading of depth 1 or 2. A group larger
    than ``max_section_bytes`` is re-split at heading depth 3, then 4, 5 and
    6; a group with no heading to split on is kept whole even when oversized.
    Split-off subsections carry qualified titles (``"Parent > Child"``).

    Args:
        text: Full document text
        max_section_bytes: Parse-time size limit (defaults to settings).
            ``0`` splits at every heading.

    Returns:
        Sections whose contents concatenate back to ``text``; empty when the
        text has no non-whitespace content.
    """
    if not text.strip():
        return []

    limit = (
        SETTINGS.SECTION_SPLIT_BYTES
        if max_section_bytes is None
        else max_section_bytes
    )
    lines = split_lines(text)
    headings = scan_headings(lines)

    spans: List[_Span] = []
    for group in _top_level_groups(lines, headings):
        spans.extend(_subdivide(lines, headings, group, limit, MIN_SPLIT_DEPTH))

    sections = _link(lines, spans)
    log.debug(
        "sections.split",
        sections=len(sections),
        lines=len(lines),
        limit=limit,
    )
    return sections


def _top_level_groups(lines: List[str], headings: List[HeadingLine]) -> List[_Span]:
    boundaries = [h for h in headings if h.depth <= TOP_LEVEL_DEPTH]
    first = boundaries[0].start_index if boundaries else len(lines)

    groups: List[_Span] = []
    has_prologue = bool("".join(lines[:first]).strip())
    if has_prologue:
        groups.append(_Span(0, first, PROLOGUE_TITLE, 0))

    for n, boundary in enumerate(boundaries):
        # Leading blank lines belong to the first group
        start = boundary.start_index if (n or has_prologue) else 0
        end = (
            boundaries[n + 1].start_index
            if n + 1 < len(boundaries)
            else len(lines)
        )
        groups.append(
            _Span(
                start,
                end,
                boundary.title,
                boundary.depth,
                boundary.line_index,
                boundary.anchor,
            )
        )
    return groups


def _subdivide(
    lines: List[str],
    headings: List[HeadingLine],
    span: _Span,
    limit: int,
    level: int,
) -> List[_Span]:
    if level > MAX_HEADING_DEPTH or _span_bytes(lines, span) <= limit:
        return [span]

    cuts = [
        h
        for h in headings
        if h.depth == level
        and h.line_index != span.heading_line
        and span.start <= h.start_index < span.end
    ]
    if not cuts:
        return _subdivide(lines, headings, span, limit, level + 1)

    result: List[_Span] = []
    if cuts[0].start_index > span.start:
        # Content before the first cut stays with the parent
        lead = span._replace(end=cuts[0].start_index)
        result.extend(_subdivide(lines, headings, lead, limit, level + 1))

    for n, cut in enumerate(cuts):
        end = cuts[n + 1].start_index if n + 1 < len(cuts) else span.end
        child = _Span(
            cut.start_index,
            end,
            f"{span.title} > {cut.title}",
            cut.depth,
            cut.line_index,
            cut.anchor,
        )
        result.extend(_subdivide(lines, headings, child, limit, level + 1))
    return result


def _span_bytes(lines: List[str], span: _Span) -> int:
    return sum(byte_length(line) for line in lines[span.start : span.end])


def _link(lines: List[str], spans: List[_Span]) -> List[Section]:
    """Attach parent indices and subtree lengths, then build sections."""
    contents = ["".join(lines[s.start : s.end]) for s in spans]
    lengths = [byte_length(c) for c in contents]
    slugs = _token_slugs(spans)

    sections: List[Section] = []
    stack: List[int] = []
    for i, span in enumerate(spans):
        parent_index = None
        total = lengths[i]
        # The prologue encloses nothing and parents nothing
        if span.depth > 0:
            while stack and spans[stack[-1]].depth >= span.depth:
                stack.pop()
            parent_index = stack[-1] if stack else None
            stack.append(i)

            for j in range(i + 1, len(spans)):
                if spans[j].depth <= span.depth:
                    break
                total += lengths[j]

        sections.append(
            Section(
                index=i,
                title=span.title,
                depth=span.depth,
                content=contents[i],
                start_line=span.start + 1,
                end_line=span.end,
                anchor=span.anchor,
                parent_index=parent_index,
                total_length=total,
                token_slug=slugs[i],
            )
        )
    return sections


def _token_slugs(spans: List[_Span]) -> List[str]:
    """One placeholder slug per span, unique across the document."""
    bases = [slugify_title(s.title) for s in spans]
    counts = Counter(bases)
    used = set(b for b in bases if counts[b] == 1)

    slugs: List[str] = []
    for i, base in enumerate(bases):
        slug = base
        if counts[base] > 1:
            # Repeated titles get the section index appended
            slug = f"{base}_{i}"
            while slug in used:
                slug = f"{slug}_{i}"
            used.add(slug)
        slugs.append(slug)
    return slugs


def parent_of(sections: List[Section], section: Section) -> Optional[Section]:
    """Resolve a section's parent back-reference."""
    if section.parent_index is None:
        return None
    return sections[section.parent_index]


def is_descendant(
    sections: List[Section], section: Section, ancestor: Section
) -> bool:
    """True when ``ancestor`` encloses ``section`` at any distance."""
    current = parent_of(sections, section)
    while current is not None:
        if current.index == ancestor.index:
            return True
        current = parent_of(sections, current)
    return False
