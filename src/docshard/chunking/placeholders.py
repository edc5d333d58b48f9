"""
Placeholder codec for opaque binary payloads.

Inline ``data:`` images can be hundreds of kilobytes of base64 that a rewrite
service must never see or touch. Their link targets are swapped for short
tokens before submission and swapped back on whatever text comes back.
"""

import re
from typing import Dict, Optional, Tuple

DATA_IMAGE_RE = re.compile(r"(!\[[^\]]*\]\()(data:[^)\s]+)(\))")
TOKEN_TEMPLATE = "__IMAGE_DATA_{slug}_{ordinal}__"


def slugify_title(title: str) -> str:
    """Lower-case ASCII slug used inside placeholder tokens."""
    slug = re.sub(r"[^0-9A-Za-z]+", "_", title).strip("_").lower()
    return slug or "section"


def encode_placeholders(
    content: str, title: str, slug: Optional[str] = None
) -> Tuple[str, Dict[str, str]]:
    """
    Replace every data-URI image target with a token.

    Args:
        content: Raw section content
        title: Section title, embedded in each token
        slug: Token slug to use instead of one derived from ``title``

    Returns:
        (external content, token -> original payload)
    """
    slug = slug or slugify_title(title)
    mapping: Dict[str, str] = {}

    def _swap(match: "re.Match[str]") -> str:
        token = TOKEN_TEMPLATE.format(slug=slug, ordinal=len(mapping))
        mapping[token] = match.group(2)
        return f"{match.group(1)}{token}{match.group(3)}"

    return DATA_IMAGE_RE.sub(_swap, content), mapping


def restore_placeholders(text: str, mapping: Dict[str, str]) -> str:
    """Put original payloads back; a no-op when no token is present."""
    for token, payload in mapping.items():
        text = text.replace(token, payload)
    return text
