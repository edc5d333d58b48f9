"""Prompt templates for the rewrite service."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from ..core.config import SETTINGS
from ..core.errors import ConfigurationError

DEFAULT_STYLE_GUIDE = (
    "You are a technical translator. Keep Markdown structure intact: do not "
    "add, remove or reorder headings; copy fenced code blocks, inline code "
    "spans, link targets, placeholder tokens such as __IMAGE_DATA_x_0__ and "
    "admonition markers such as [!NOTE] exactly as they appear."
)

INITIAL_TEMPLATE = """\
{style_guide}

In order to let you understand the context, below is the full original document, followed by the specific section you need to translate.

<!-- FULL_CONTEXT_START -->
{full_context}
<!-- FULL_CONTEXT_END -->
{preamble}
Please translate ONLY the following section into {target_language}. Do not output anything else, just the translated text of this section.

Section to translate:

<!-- SECTION_TO_TRANSLATE_START -->
{section}
<!-- SECTION_TO_TRANSLATE_END -->
"""

RETRY_TEMPLATE = """\
The previous translation failed validation. Please correct the following errors and re-translate the original text.

Errors:
{errors}

Remember to follow these style guides:
{style_guide}

For context, here is the full original document:
<!-- FULL_CONTEXT_START -->
{full_context}
<!-- FULL_CONTEXT_END -->
{preamble}
Please translate ONLY the following section into {target_language}. Do not output anything else, just the translated text of this section.

Section to translate:
<!-- SECTION_TO_TRANSLATE_START -->
{section}
<!-- SECTION_TO_TRANSLATE_END -->
"""

PREAMBLE_TEMPLATE = """
The opening of the document has already been translated as follows; keep terminology consistent with it:
<!-- PREAMBLE_TRANSLATION_START -->
{preamble_context}
<!-- PREAMBLE_TRANSLATION_END -->
"""


@lru_cache(maxsize=8)
def load_style_guide(prompt_file: Optional[str] = None) -> str:
    """Read the style guide file, falling back to the built-in guide."""
    prompt_file = prompt_file or SETTINGS.PROMPT_FILE
    if not prompt_file:
        return DEFAULT_STYLE_GUIDE
    try:
        return Path(prompt_file).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read prompt file: {prompt_file}: {e}") from e


def build_prompt(
    full_context: str,
    section: str,
    preamble_context: Optional[str] = None,
    errors: Optional[List[str]] = None,
    style_guide: Optional[str] = None,
    target_language: Optional[str] = None,
) -> str:
    """
    Render the initial prompt, or the corrective one when ``errors`` is given.

    Args:
        full_context: External view of the whole document
        section: External view of the unit to rewrite
        preamble_context: Accepted rewrite of the preamble task, if any
        errors: Mismatches reported for the previous attempt
        style_guide: Overrides the configured style guide
        target_language: Overrides ``SETTINGS.TARGET_LANGUAGE``
    """
    preamble = (
        PREAMBLE_TEMPLATE.format(preamble_context=preamble_context)
        if preamble_context
        else ""
    )
    values = {
        "style_guide": style_guide if style_guide is not None else load_style_guide(),
        "full_context": full_context,
        "preamble": preamble,
        "target_language": target_language or SETTINGS.TARGET_LANGUAGE,
        "section": section,
    }
    if errors:
        return RETRY_TEMPLATE.format(
            errors="\n".join(f"- {e}" for e in errors), **values
        )
    return INITIAL_TEMPLATE.format(**values)
