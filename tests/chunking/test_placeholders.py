"""Tests for the placeholder codec."""

from docshard.chunking.placeholders import (
    encode_placeholders,
    restore_placeholders,
    slugify_title,
)


class TestPlaceholderCodec:
    """Test shielding of inline data-URI images."""

    def test_image_round_trip(self):
        """An untouched external view restores to the original markdown."""
        content = "![alt](data:image/png;base64,AAAA)"
        external, mapping = encode_placeholders(content, "alt")

        assert external == "![alt](__IMAGE_DATA_alt_0__)"
        assert restore_placeholders(external, mapping) == content

    def test_ordinals_ascend_within_section(self):
        """Each payload gets its own token."""
        content = (
            "![a](data:image/png;base64,AAA)\ntext\n![b](data:image/gif;base64,BBB)\n"
        )
        external, mapping = encode_placeholders(content, "My Section")

        assert list(mapping) == [
            "__IMAGE_DATA_my_section_0__",
            "__IMAGE_DATA_my_section_1__",
        ]
        assert "base64" not in external
        assert restore_placeholders(external, mapping) == content

    def test_regular_images_untouched(self):
        """Only data URIs are shielded."""
        content = "![logo](https://example.com/logo.png)"
        external, mapping = encode_placeholders(content, "x")

        assert external == content
        assert mapping == {}

    def test_restore_is_idempotent(self):
        """Restoring twice, or restoring token-free text, changes nothing."""
        external, mapping = encode_placeholders("![i](data:x;base64,Zm9v)", "t")
        once = restore_placeholders(external, mapping)

        assert restore_placeholders(once, mapping) == once
        assert restore_placeholders("plain text", mapping) == "plain text"

    def test_restore_in_rewritten_text(self):
        """Tokens are restored wherever they land in returned text."""
        external, mapping = encode_placeholders("![x](data:a;base64,QQ==)", "Logo")
        rewritten = "Translated intro\n\n" + external.replace("![x]", "![标志]")

        assert restore_placeholders(rewritten, mapping).endswith(
            "![标志](data:a;base64,QQ==)"
        )

    def test_slug_fallback(self):
        """Titles without ASCII word characters still produce a slug."""
        assert slugify_title("Getting Started!") == "getting_started"
        assert slugify_title("中文") == "section"
