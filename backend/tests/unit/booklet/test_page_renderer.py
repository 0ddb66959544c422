"""
Unit Tests for generated booklet pages
"""
from io import BytesIO

import pytest
from PyPDF2 import PdfReader
from reportlab.lib.colors import HexColor, black

from app.modules.booklet.page_renderer import (
    BookletTheme,
    ContentItem,
    PageRenderer,
    parse_color,
    wrap_text,
)


def _pages(data: bytes) -> int:
    return len(PdfReader(BytesIO(data)).pages)


class TestWrapText:
    def test_short_text_is_one_line(self):
        assert wrap_text("Congratulations class!") == ["Congratulations class!"]

    def test_long_text_wraps_within_width(self):
        text = " ".join(["graduation"] * 40)
        lines = wrap_text(text, font_size=10, max_width=200)

        assert len(lines) > 1
        assert all(len(line) * 5 <= 200 for line in lines)
        assert " ".join(lines) == text

    def test_newlines_force_breaks(self):
        assert wrap_text("first\nsecond") == ["first", "second"]

    def test_empty(self):
        assert wrap_text("") == []
        assert wrap_text(None) == []

    def test_single_overlong_word_is_kept(self):
        assert wrap_text("x" * 50, font_size=10, max_width=20) == ["x" * 50]


class TestParseColor:
    @pytest.mark.parametrize("value", ["#4F46E5", "4F46E5"])
    def test_hex(self, value):
        assert parse_color(value).rgb() == HexColor("#4F46E5").rgb()

    @pytest.mark.parametrize("value", [None, "", "red", "#12345", 12])
    def test_fallback_is_black(self, value):
        assert parse_color(value).rgb() == black.rgb()

    def test_theme_defaults(self):
        theme = BookletTheme.from_config({"primaryColor": "#000000"})
        assert theme.primary.rgb() == HexColor("#000000").rgb()
        assert theme.secondary.rgb() == HexColor("#6B7280").rgb()


class TestPageRenderer:
    @pytest.fixture
    def renderer(self):
        return PageRenderer(BookletTheme.from_config({}))

    def test_cover_is_one_page(self, renderer):
        assert _pages(renderer.render_cover("Lincoln High", "2025")) == 1

    def test_section_has_title_and_item_pages(self, renderer):
        items = [
            ContentItem(title="Thank you", body="To all teachers", author="Ann"),
            ContentItem(title="Memories", body="word " * 2000),
        ]
        assert _pages(renderer.render_section("Messages & Memories", items)) == 3

    def test_empty_section_is_title_only(self, renderer):
        assert _pages(renderer.render_section("Speeches & Presentations", [])) == 1
