"""
Line, heading and fence scanning primitives shared by sectioning and validation.
"""

import re
from typing import Iterator, List, NamedTuple, Optional, Tuple

MAX_HEADING_DEPTH = 6

HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
HEADING_ID_RE = re.compile(r"[ \t]*\{#([\w-]+)\}[ \t]*$")
HTML_ANCHOR_RE = re.compile(r"<a\s+name=\"([^\"]*)\"[^>]*>.*?</a>")
FENCE_OPEN_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
FENCE_CLOSE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})[ \t]*$")
SETEXT_UNDERLINE_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
THEMATIC_BREAK_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
# Block starts that can never be part of a setext title
NON_PARAGRAPH_RE = re.compile(
    r"^(?: {4}|\t"
    r"| {0,3}(?:[>|<]|[-+*](?:[ \t]|$)|\d{1,9}[.)](?:[ \t]|$)))"
)

# Anchor tags are looked up this many lines above a heading
ANCHOR_LOOKBACK = 2


class HeadingLine(NamedTuple):
    """An ATX or setext heading found outside fenced code."""

    line_index: int  # 0-based index of the heading (first title line for setext)
    start_index: int  # 0-based index where the section starts (anchor line)
    depth: int
    title: str
    anchor: Optional[str] = None


class CodeBlock(NamedTuple):
    """A fenced code block."""

    lang: str
    content: str
    start_line: int  # 1-based line of the opening fence


def byte_length(text: str) -> int:
    """UTF-8 byte length of text."""
    return len(text.encode("utf-8"))


def split_lines(text: str) -> List[str]:
    """Split on LF keeping terminators, so ``"".join(result) == text``."""
    if not text:
        return []
    lines = [line + "\n" for line in text.split("\n")]
    # The final piece never had a terminator
    last = lines.pop()[:-1]
    if last:
        lines.append(last)
    return lines


def _bare(line: str) -> str:
    return line.rstrip("\r\n")


def iter_fence_roles(lines: List[str]) -> Iterator[Tuple[Optional[str], str]]:
    """
    Yield (role, info) for every line.

    ``role`` is "open", "body" or "close" for fenced lines and None for prose.
    ``info`` is the opening fence's info string on "open" lines, else "".
    An unclosed fence runs to the end of the text.
    """
    fence: Optional[str] = None
    for line in lines:
        bare = _bare(line)
        if fence is None:
            match = FENCE_OPEN_RE.match(bare)
            # Backtick fences may not carry backticks in their info string
            if match and not (
                match.group(1)[0] == "`" and "`" in match.group(2)
            ):
                fence = match.group(1)
                yield "open", match.group(2).strip()
            else:
                yield None, ""
            continue

        close = FENCE_CLOSE_RE.match(bare)
        if (
            close
            and close.group(1)[0] == fence[0]
            and len(close.group(1)) >= len(fence)
        ):
            fence = None
            yield "close", ""
        else:
            yield "body", ""


def parse_heading(line: str) -> Optional[Tuple[int, str, Optional[str]]]:
    """Return (depth, title, anchor) for an ATX heading line, else None."""
    match = HEADING_RE.match(_bare(line))
    if not match:
        return None
    depth = len(match.group(1))
    title, anchor = _split_heading_id(
        CLOSING_HASHES_RE.sub("", match.group(2) or "").strip()
    )
    return depth, title, anchor


def _split_heading_id(title: str) -> Tuple[str, Optional[str]]:
    """Separate a trailing ``{#id}`` from heading text."""
    id_match = HEADING_ID_RE.search(title)
    if not id_match:
        return title, None
    return title[: id_match.start()].strip(), id_match.group(1)


def _is_paragraph_line(line: str) -> bool:
    bare = _bare(line)
    return bool(
        bare.strip()
        and not HEADING_RE.match(bare)
        and not SETEXT_UNDERLINE_RE.match(bare)
        and not THEMATIC_BREAK_RE.match(bare)
        and not NON_PARAGRAPH_RE.match(bare)
    )


def _parse_setext(
    lines: List[str], fenced: List[bool], i: int, floor: int
) -> Optional[Tuple[int, int, str, Optional[str]]]:
    """
    Return (first title line, depth, title, anchor) when line ``i`` underlines
    a paragraph, else None.

    ``===`` gives depth 1 and ``---`` depth 2. A ``---`` line with no
    paragraph directly above it is a thematic break.
    """
    match = SETEXT_UNDERLINE_RE.match(_bare(lines[i]))
    if not match:
        return None

    first = i
    while first - 1 > floor and not fenced[first - 1]:
        if not _is_paragraph_line(lines[first - 1]):
            break
        first -= 1
    if first == i:
        return None

    depth = 1 if match.group(1)[0] == "=" else 2
    title, anchor = _split_heading_id(
        " ".join(_bare(line).strip() for line in lines[first:i])
    )
    return first, depth, title, anchor


def _front_matter_end(lines: List[str]) -> int:
    """Index of the line closing a leading YAML front matter block, else -1."""
    if not lines or _bare(lines[0]) != "---":
        return -1
    for k in range(1, len(lines)):
        if _bare(lines[k]) in ("---", "..."):
            return k
    return -1

def scan_headings(lines: List[str]) -> List[HeadingLine]:
    """Find every heading outside fenced code, in document order."""
    headings: List[HeadingLine] = []
    fenced = [role is not None for role, _ in iter_fence_roles(lines)]
    # Front matter is metadata, never headings
    for k in range(_front_matter_end(lines) + 1):
        fenced[k] = True

    for i, line in enumerate(lines):
        if fenced[i]:
            continue
        floor = headings[-1].line_index if headings else -1
        parsed = parse_heading(line)
        if parsed is not None:
            heading_index = i
            depth, title, anchor = parsed
        else:
            setext = _parse_setext(lines, fenced, i, floor)
            if setext is None:
                continue
            heading_index, depth, title, anchor = setext
        start = heading_index

        # An <a name="..."> tag just above the heading labels it
        for j in range(1, ANCHOR_LOOKBACK + 1):
            k = heading_index - j
            if k <= floor or fenced[k]:
                break
            anchor_match = HTML_ANCHOR_RE.search(lines[k])
            if anchor_match:
                start = k
                anchor = anchor or anchor_match.group(1)
                break

        headings.append(HeadingLine(heading_index, start, depth, title, anchor))

    return headings


def extract_code_blocks(text: str) -> List[CodeBlock]:
    """Extract fenced code blocks in document order."""
    blocks: List[CodeBlock] = []
    lines = split_lines(text)
    body: Optional[List[str]] = None
    lang = ""
    start = 0

    for i, (role, info) in enumerate(iter_fence_roles(lines)):
        if role == "open":
            body = []
            lang = info.split()[0] if info else ""
            start = i + 1
        elif role == "body" and body is not None:
            body.append(lines[i])
        elif role == "close" and body is not None:
            blocks.append(CodeBlock(lang, "".join(body), start))
            body = None

    if body is not None:
        blocks.append(CodeBlock(lang, "".join(body), start))
    return blocks


def strip_code_blocks(text: str) -> str:
    """Return text with every fenced line (delimiters included) removed."""
    lines = split_lines(text)
    return "".join(
        line
        for line, (role, _) in zip(lines, iter_fence_roles(lines))
        if role is None
    )
