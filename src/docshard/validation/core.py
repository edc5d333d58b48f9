"""
Structural validation of rewritten Markdown against its source.

Every check returns a value; an invalid result is an ordinary outcome the
orchestrator inspects to decide on a corrective retry.
"""

import re
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..chunking.boundaries import extract_code_blocks, strip_code_blocks
from ..chunking.sections import Section, split_markdown_into_sections
from ..core.logging import log

INLINE_CODE_RE = re.compile(r"(?<!`)(`+)(?!`)(.+?)(?<!`)\1(?!`)", re.DOTALL)
SPECIAL_MARKER_RE = re.compile(r"\[![A-Z_]+\]")


class DimensionResult(BaseModel):
    """Outcome of one validation dimension."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool = True
    mismatches: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Per-dimension outcome of comparing a rewrite with its source."""

    model_config = ConfigDict(frozen=True)

    headings: DimensionResult = Field(default_factory=DimensionResult)
    code_blocks: DimensionResult = Field(default_factory=DimensionResult)
    inline_code: DimensionResult = Field(default_factory=DimensionResult)
    special_markers: DimensionResult = Field(default_factory=DimensionResult)

    @property
    def is_valid(self) -> bool:
        return all(
            d.is_valid
            for d in (
                self.headings,
                self.code_blocks,
                self.inline_code,
                self.special_markers,
            )
        )

    @property
    def errors(self) -> List[str]:
        return (
            self.headings.mismatches
            + self.code_blocks.mismatches
            + self.inline_code.mismatches
            + self.special_markers.mismatches
        )


def _result(mismatches: List[str]) -> DimensionResult:
    return DimensionResult(is_valid=not mismatches, mismatches=mismatches)


def validate_code_blocks(src: str, dst: str) -> DimensionResult:
    """
    Compare fenced code blocks in order.

    A differing block count yields exactly one quantity entry; otherwise each
    block whose trimmed content or language tag changed yields one entry.
    """
    source_blocks = extract_code_blocks(src)
    target_blocks = extract_code_blocks(dst)

    if len(source_blocks) != len(target_blocks):
        return _result(
            [
                f"Code block quantity mismatch: expected {len(source_blocks)}, "
                f"got {len(target_blocks)}"
            ]
        )

    mismatches = []
    for source, target in zip(source_blocks, target_blocks):
        if source.content.strip() != target.content.strip() or source.lang != target.lang:
            mismatches.append(
                f"Code block content mismatch at line {source.start_line} "
                f"({source.lang or 'no language'})"
            )
    return _result(mismatches)


def extract_inline_code(text: str) -> List[str]:
    """Backtick spans outside fenced code, rendered with single backticks."""
    spans = []
    for match in INLINE_CODE_RE.finditer(strip_code_blocks(text)):
        value = match.group(2)
        # One padding space on each side is not part of the span
        if len(value) > 2 and value.startswith(" ") and value.endswith(" ") and value.strip():
            value = value[1:-1]
        spans.append(f"`{value}`")
    return spans


def validate_inline_code(src: str, dst: str) -> DimensionResult:
    """Every source span must survive somewhere in the target, counts equal."""
    source_spans = extract_inline_code(src)
    target_spans = extract_inline_code(dst)
    target_set = set(target_spans)

    mismatches = [span for span in source_spans if span not in target_set]
    if not mismatches and len(source_spans) != len(target_spans):
        mismatches.append(
            f"Inline code count mismatch: expected {len(source_spans)}, "
            f"got {len(target_spans)}"
        )
    return _result(mismatches)


def validate_special_markers(src: str, dst: str) -> DimensionResult:
    """Marker tags such as ``[!NOTE]`` must appear unchanged and in order."""
    source_markers = SPECIAL_MARKER_RE.findall(src)
    target_markers = SPECIAL_MARKER_RE.findall(dst)
    if source_markers == target_markers:
        return _result([])

    for position in range(max(len(source_markers), len(target_markers))):
        expected = source_markers[position] if position < len(source_markers) else None
        actual = target_markers[position] if position < len(target_markers) else None
        if expected != actual:
            break

    if actual is None:
        message = f"Special marker {expected} missing at position {position}"
    elif expected is None:
        message = f"Unexpected special marker {actual} at position {position}"
    else:
        message = (
            f"Special marker mismatch at position {position}: "
            f"expected {expected}, got {actual}"
        )
    return _result([message])


def _heading_anchors(sections: List[Section]) -> List[str]:
    seen: List[str] = []
    for section in sections:
        if section.anchor and section.anchor not in seen:
            seen.append(section.anchor)
    return seen


def _compare_anchors(source: List[Section], target: List[Section]) -> List[str]:
    """Anchors are link targets; each must survive the rewrite unchanged."""
    expected = _heading_anchors(source)
    actual = _heading_anchors(target)
    missing = [a for a in expected if a not in actual]
    extra = [a for a in actual if a not in expected]

    mismatches = []
    if missing:
        mismatches.append(
            f"Missing heading anchors in rewrite: {', '.join(missing)}"
        )
    if extra:
        mismatches.append(f"Extra heading anchors in rewrite: {', '.join(extra)}")
    return mismatches


def _compare(original: str, rewritten: str) -> ValidationResult:
    source_sections = split_markdown_into_sections(original, max_section_bytes=0)
    target_sections = split_markdown_into_sections(rewritten, max_section_bytes=0)

    anchors = _compare_anchors(source_sections, target_sections)
    if len(source_sections) != len(target_sections):
        return ValidationResult(
            headings=_result(
                [
                    f"Heading count mismatch: expected {len(source_sections)}, "
                    f"got {len(target_sections)}"
                ]
                + anchors
            )
        )

    headings: List[str] = list(anchors)
    aggregated: Tuple[List[str], List[str], List[str]] = ([], [], [])
    for source, target in zip(source_sections, target_sections):
        if source.depth != target.depth:
            headings.append(
                f"Heading depth mismatch for '{source.title}': "
                f"expected {source.depth}, got {target.depth}"
            )
        checks = (
            validate_code_blocks(source.content, target.content),
            validate_inline_code(source.content, target.content),
            validate_special_markers(source.content, target.content),
        )
        for bucket, check in zip(aggregated, checks):
            bucket.extend(f"{source.title}: {m}" for m in check.mismatches)

    code_blocks, inline_code, special_markers = aggregated
    return ValidationResult(
        headings=_result(headings),
        code_blocks=_result(code_blocks),
        inline_code=_result(inline_code),
        special_markers=_result(special_markers),
    )


def validate_rewrite(original: str, rewritten: str) -> ValidationResult:
    """
    Compare a rewritten unit with its source on every structural dimension.

    Both texts are re-split at every heading, and every heading anchor of
    the source must reappear in the rewrite with no new ones added.
    Differing section counts are reported once and the per-section checks
    are skipped; otherwise sections are paired in order and checked for code
    blocks, inline code and special markers.

    Args:
        original: Source text as submitted for rewriting
        rewritten: Text returned by the rewrite service

    Returns:
        ValidationResult; never raises
    """
    try:
        result = _compare(original, rewritten)
    except Exception as e:
        log.warning("validation.error", error=str(e))
        return ValidationResult(headings=_result([f"Validation error: {e}"]))

    if not result.is_valid:
        log.debug("validation.invalid", errors=len(result.errors))
    return result
