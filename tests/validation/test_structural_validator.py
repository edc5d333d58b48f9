"""Tests for structural validation of rewritten markdown."""

from unittest.mock import patch

from docshard.validation.core import (
    validate_code_blocks,
    validate_inline_code,
    validate_rewrite,
    validate_special_markers,
)

PHP_SECTION = """## Variables

Assign with `$var` like this:

```php
$var = 1;
echo $var;
```
"""


class TestCodeBlocks:
    """Test fenced code block comparison."""

    def test_identical_blocks_pass(self):
        """Unchanged fences are valid even when prose changes."""
        translated = PHP_SECTION.replace("Assign with", "使用")
        result = validate_code_blocks(PHP_SECTION, translated)

        assert result.is_valid
        assert result.mismatches == []

    def test_one_altered_byte_is_one_content_mismatch(self):
        """A single changed byte inside a block is reported once."""
        altered = PHP_SECTION.replace("$var = 1;", "$var = 2;")
        result = validate_code_blocks(PHP_SECTION, altered)

        assert not result.is_valid
        assert len(result.mismatches) == 1
        assert "content mismatch" in result.mismatches[0]
        assert "quantity" not in result.mismatches[0]

    def test_language_tag_change_is_content_mismatch(self):
        """The language tag is part of a block's identity."""
        result = validate_code_blocks(PHP_SECTION, PHP_SECTION.replace("```php", "```js"))

        assert len(result.mismatches) == 1

    def test_missing_block_is_one_quantity_mismatch(self):
        """A dropped block yields exactly one quantity entry."""
        src = PHP_SECTION + "\n```bash\nls\n```\n"
        result = validate_code_blocks(src, PHP_SECTION)

        assert not result.is_valid
        assert result.mismatches == ["Code block quantity mismatch: expected 2, got 1"]

    def test_surrounding_whitespace_is_ignored(self):
        """Block content is compared trimmed."""
        src = "```py\nx = 1\n```\n"
        dst = "```py\n\nx = 1\n\n```\n"

        assert validate_code_blocks(src, dst).is_valid


class TestInlineCode:
    """Test inline code span comparison."""

    def test_inline_code_loss(self):
        """A dropped span is reported verbatim while fences stay valid."""
        translated = """## 變數

使用這種方式賦值：

```php
$var = 1;
echo $var;
```
"""
        inline = validate_inline_code(PHP_SECTION, translated)
        blocks = validate_code_blocks(PHP_SECTION, translated)

        assert not inline.is_valid
        assert inline.mismatches == ["`$var`"]
        assert blocks.is_valid

    def test_order_independent(self):
        """Spans may move around in the rewrite."""
        assert validate_inline_code("`a` then `b`", "`b` 然後 `a`").is_valid

    def test_extra_span_is_count_mismatch(self):
        """Equal counts are required even when nothing is missing."""
        result = validate_inline_code("`a`", "`a` and `a`")

        assert not result.is_valid
        assert result.mismatches == ["Inline code count mismatch: expected 1, got 2"]

    def test_spans_inside_fences_ignored(self):
        """Backticks inside fenced code are not inline code."""
        src = "```md\nuse `x`\n```\n"
        dst = "```md\nuse `x`\n```\n"

        assert validate_inline_code(src, dst).is_valid
        assert validate_inline_code(src, "").is_valid

    def test_double_backtick_span(self):
        """Multi-backtick spans compare by their content."""
        assert not validate_inline_code("``a ` b``", "nothing").is_valid
        assert validate_inline_code("``a ` b``", "``a ` b``").is_valid


class TestSpecialMarkers:
    """Test admonition marker comparison."""

    def test_marker_drop(self):
        """A missing [!NOTE] is identified."""
        result = validate_special_markers("> [!NOTE]\n> Hi\n", "> 嗨\n")

        assert not result.is_valid
        assert len(result.mismatches) == 1
        assert "[!NOTE]" in result.mismatches[0]

    def test_order_matters(self):
        """Swapped markers are a divergence at the first position."""
        result = validate_special_markers("[!NOTE] [!WARNING]", "[!WARNING] [!NOTE]")

        assert result.mismatches == [
            "Special marker mismatch at position 0: expected [!NOTE], got [!WARNING]"
        ]

    def test_unexpected_marker(self):
        """An added marker is reported too."""
        result = validate_special_markers("[!TIP]", "[!TIP] [!IMPORTANT]")

        assert result.mismatches == ["Unexpected special marker [!IMPORTANT] at position 1"]

    def test_lowercase_is_not_a_marker(self):
        """Only upper-case tags are markers."""
        assert validate_special_markers("[!note]", "").is_valid


class TestValidateRewrite:
    """Test whole-unit validation."""

    def test_identity_is_valid(self, simple_doc):
        """An unchanged rewrite passes every dimension."""
        result = validate_rewrite(simple_doc, simple_doc)

        assert result.is_valid
        assert result.errors == []

    def test_translated_headings_pair_by_position(self):
        """Translated titles do not break section pairing."""
        src = "## Setup\n\nRun `make`.\n\n### Notes\n\n[!NOTE] ok\n"
        dst = "## 設定\n\n執行 `make`。\n\n### 備註\n\n[!NOTE] 好\n"

        assert validate_rewrite(src, dst).is_valid

    def test_heading_count_mismatch_skips_other_checks(self):
        """A differing section count is reported once."""
        src = "## A\n\n`x`\n\n## B\n\ny\n"
        dst = "## A\n\nno code\n"
        result = validate_rewrite(src, dst)

        assert not result.is_valid
        assert result.headings.mismatches == ["Heading count mismatch: expected 2, got 1"]
        assert result.inline_code.is_valid
        assert result.errors == result.headings.mismatches

    def test_heading_depth_change(self):
        """Changing a heading's level is a heading mismatch."""
        result = validate_rewrite("## A\n\n### B\n\nx\n", "## A\n\n#### B\n\nx\n")

        assert not result.headings.is_valid
        assert "depth mismatch" in result.headings.mismatches[0]

    def test_mismatches_carry_section_title(self):
        """Per-section entries name the source section."""
        src = "## Intro\n\nok\n\n## Code\n\nUse `run()`.\n"
        dst = "## Intro\n\nok\n\n## Code\n\nUse it.\n"
        result = validate_rewrite(src, dst)

        assert result.inline_code.mismatches == ["Code: `run()`"]

    def test_never_raises(self):
        """Internal errors become an invalid result."""
        with patch(
            "docshard.validation.core.split_markdown_into_sections",
            side_effect=RuntimeError("boom"),
        ):
            result = validate_rewrite("## A\n", "## A\n")

        assert not result.is_valid
        assert result.errors == ["Validation error: boom"]

    def test_dropped_heading_anchors_are_reported(self):
        """Translating a heading must keep its link target."""
        src = '<a name="install"></a>\n## Install\n\nx\n\n## Setup {#setup}\n\ny\n'
        dst = "## 安裝\n\nx\n\n## 設定\n\ny\n"
        result = validate_rewrite(src, dst)

        assert not result.is_valid
        assert result.headings.mismatches == [
            "Missing heading anchors in rewrite: install, setup"
        ]

    def test_kept_heading_anchors_pass(self):
        """Anchors carried over verbatim satisfy the check."""
        src = '<a name="install"></a>\n## Install\n\nx\n\n## Setup {#setup}\n\ny\n'
        dst = '<a name="install"></a>\n## 安裝\n\nx\n\n## 設定 {#setup}\n\ny\n'

        assert validate_rewrite(src, dst).is_valid

    def test_invented_anchor_is_extra(self):
        """An anchor the source never had is flagged too."""
        result = validate_rewrite("## A\n\nx\n", "## A {#a}\n\nx\n")

        assert result.headings.mismatches == ["Extra heading anchors in rewrite: a"]

    def test_anchor_loss_reported_alongside_count_mismatch(self):
        """Anchor checks still run when the section counts differ."""
        src = "## A {#a}\n\nx\n\n## B\n\ny\n"
        dst = "## A\n\nx y\n"
        result = validate_rewrite(src, dst)

        assert result.headings.mismatches == [
            "Heading count mismatch: expected 2, got 1",
            "Missing heading anchors in rewrite: a",
        ]
