"""
Tests for the HTML Document Builder

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import pytest

from roachagram_core.document import (
    DocumentMode,
    DocumentTheme,
    HtmlDocumentBuilder,
    css_value,
    escape_template_literal,
)

FRAGMENT = '<b>Roach</b> means "Cockroach King"<br>It<b>s</b> fine'


class TestDocumentTheme:
    """Tests for theme presets and parsing."""

    def test_defaults(self):
        theme = DocumentTheme()
        assert theme.background_color == "white"
        assert theme.text_color == "black"
        assert theme.reveal_speed_ms == 30

    def test_dark_preset(self):
        theme = DocumentTheme.dark()
        assert theme.background_color == "#1E1E1E"
        assert theme.text_color == "#F2F2F2"

    def test_preset_overrides(self):
        theme = DocumentTheme.dark(reveal_speed_ms=5)
        assert theme.reveal_speed_ms == 5
        assert theme.text_color == "#F2F2F2"

    def test_from_dict_camel_case(self):
        theme = DocumentTheme.from_dict({"backgroundColor": "navy", "revealSpeedMs": "12"})
        assert theme.background_color == "navy"
        assert theme.text_color == "black"
        assert theme.reveal_speed_ms == 12

    def test_from_dict_ignores_none_and_clamps_speed(self):
        theme = DocumentTheme.from_dict(
            {"text_color": None, "reveal_speed_ms": 0},
            base=DocumentTheme.dark(),
        )
        assert theme.text_color == "#F2F2F2"
        assert theme.reveal_speed_ms == 1

    def test_to_dict(self):
        assert DocumentTheme().to_dict()["font_family"].startswith("'Open Sans'")


class TestHelpers:
    """Tests for escaping helpers."""

    def test_css_value_strips_breakout_characters(self):
        assert str(css_value("red;}</style><script>")) == "red/stylescript"

    def test_template_literal_escapes(self):
        assert escape_template_literal("a`b") == "a\\`b"
        assert escape_template_literal("${x}") == "\\${x}"
        assert escape_template_literal("c:\\d") == "c:\\\\d"
        assert escape_template_literal("</script>") == "<\\/script>"

    def test_template_literal_plain_fragment_unchanged(self):
        assert escape_template_literal("<b>A</b>") == "<b>A<\\/b>"
        assert escape_template_literal("plain text") == "plain text"


class TestStaticDocument:
    """Tests for static documents."""

    @pytest.fixture
    def builder(self):
        return HtmlDocumentBuilder()

    def test_fragment_embedded_verbatim(self, builder):
        html = builder.build_static(FRAGMENT)
        assert f"<p>{FRAGMENT}</p>" in html

    def test_document_structure(self, builder):
        html = builder.build_static("x")
        assert html.startswith("<!DOCTYPE html>")
        assert "<meta charset=\"UTF-8\">" in html
        assert "Open+Sans" in html
        assert "&amp;display=swap" in html
        assert html.rstrip().endswith("</html>")

    def test_theme_colors_applied(self):
        html = HtmlDocumentBuilder(DocumentTheme.dark()).build_static("x")
        assert "color: #F2F2F2;" in html
        assert "background-color: #1E1E1E;" in html

    def test_no_script_in_static(self, builder):
        assert "<script>" not in builder.build_static(FRAGMENT)

    def test_build_dispatch(self, builder):
        assert builder.build("x", DocumentMode.STATIC) == builder.build_static("x")
        assert builder.build("x", "progressive") == builder.build_progressive("x")


class TestProgressiveDocument:
    """Tests for progressive documents."""

    @pytest.fixture
    def builder(self):
        return HtmlDocumentBuilder(DocumentTheme.light(reveal_speed_ms=45))

    def test_literal_and_speed(self, builder):
        html = builder.build_progressive("<b>Roach</b>")
        assert "const text = `<b>Roach<\\/b>`;" in html
        assert "}, 45);" in html
        assert "clearInterval(timer)" in html

    def test_tags_revealed_as_one_step(self, builder):
        html = builder.build_progressive("x")
        assert 'text.indexOf(">", index)' in html

    def test_fragment_not_rendered_in_body(self, builder):
        html = builder.build_progressive(FRAGMENT)
        assert '<p id="reveal"></p>' in html
        assert f"<p>{FRAGMENT}</p>" not in html

    def test_hostile_fragment_cannot_close_script(self, builder):
        html = builder.build_progressive("`; alert(1); `</script><script>")
        assert html.count("</script>") == 1
        assert "\\`; alert(1); \\`" in html

    def test_empty_fragment(self, builder):
        assert "const text = ``;" in builder.build_progressive("")
