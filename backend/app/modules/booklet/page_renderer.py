"""
PDF pages generated for the booklet: text cover, section titles and
content pages (messages, speeches).

Body text is wrapped by character count, not font metrics; the output only
needs to be readable.
"""

import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional

from reportlab.lib.colors import Color, HexColor, black
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

PAGE_WIDTH, PAGE_HEIGHT = letter  # 612 x 792
MARGIN = 50
FONT = "Helvetica"

COVER_SCHOOL_SIZE = 28
COVER_CLASS_SIZE = 20
COVER_LABEL_SIZE = 16
SECTION_TITLE_SIZE = 26
CONTENT_TITLE_SIZE = 22
AUTHOR_SIZE = 12
BODY_SIZE = 11
LINE_HEIGHT_FACTOR = 1.5
BOTTOM_LIMIT = 50

DEFAULT_PRIMARY = "#4F46E5"  # indigo-600
DEFAULT_SECONDARY = "#6B7280"  # gray-500
DEFAULT_TEXT = "#1F2937"  # gray-800

_HEX_RE = re.compile(r"^#?[0-9a-fA-F]{6}$")


def parse_color(value: Optional[str]) -> Color:
    """Hex colour to reportlab colour; anything unparseable is black"""
    if not value or not isinstance(value, str) or not _HEX_RE.match(value):
        return black
    return HexColor("#" + value.lstrip("#"))


@dataclass
class BookletTheme:
    primary: Color
    secondary: Color
    text: Color

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BookletTheme":
        return cls(
            primary=parse_color(config.get("primaryColor") or DEFAULT_PRIMARY),
            secondary=parse_color(config.get("secondaryColor") or DEFAULT_SECONDARY),
            text=parse_color(config.get("textColor") or DEFAULT_TEXT),
        )


def wrap_text(text: str, font_size: float = BODY_SIZE, max_width: float = PAGE_WIDTH - 2 * MARGIN) -> List[str]:
    """
    Greedy word wrap estimating each character at half the font size.
    Newlines force a break.
    """
    lines: List[str] = []
    current = ""
    for word in (text or "").replace("\n", " \n ").split(" "):
        if word == "\n":
            lines.append(current.strip())
            current = ""
            continue

        candidate = current + (" " if current else "") + word
        if len(candidate) * (font_size * 0.5) > max_width and current:
            lines.append(current.strip())
            current = word
        else:
            current = candidate
    if current:
        lines.append(current.strip())
    return lines


@dataclass
class ContentItem:
    title: str
    body: str
    author: Optional[str] = None


class PageRenderer:
    """Renders generated pages to standalone PDF byte strings"""

    def __init__(self, theme: BookletTheme):
        self.theme = theme

    def _draw(self, c: canvas.Canvas, text: str, y: float, size: float, color: Color) -> None:
        c.setFont(FONT, size)
        c.setFillColor(color)
        c.drawString(MARGIN, y, text)

    def _cover(self, c: canvas.Canvas, school_name: Any, graduation_year: Any) -> None:
        self._draw(c, f"{school_name}", PAGE_HEIGHT - 100, COVER_SCHOOL_SIZE, self.theme.primary)
        self._draw(c, f"Class of {graduation_year}", PAGE_HEIGHT - 140, COVER_CLASS_SIZE, self.theme.secondary)
        self._draw(c, "Student Profiles", PAGE_HEIGHT - 180, COVER_LABEL_SIZE, self.theme.secondary)
        c.showPage()

    def _section_title(self, c: canvas.Canvas, title: str) -> None:
        self._draw(c, title, PAGE_HEIGHT - 100, SECTION_TITLE_SIZE, self.theme.primary)
        c.showPage()

    def _content_page(self, c: canvas.Canvas, item: ContentItem) -> None:
        self._draw(c, item.title or "", PAGE_HEIGHT - 80, CONTENT_TITLE_SIZE, self.theme.primary)
        if item.author:
            self._draw(c, f"By: {item.author}", PAGE_HEIGHT - 110, AUTHOR_SIZE, self.theme.secondary)

        y = PAGE_HEIGHT - (140 if item.author else 120)
        line_height = BODY_SIZE * LINE_HEIGHT_FACTOR
        for line in wrap_text(item.body, BODY_SIZE, PAGE_WIDTH - 2 * MARGIN):
            if y < BOTTOM_LIMIT:
                break
            self._draw(c, line, y, BODY_SIZE, self.theme.text)
            y -= line_height
        c.showPage()

    def render_cover(self, school_name: Any, graduation_year: Any) -> bytes:
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=letter)
        self._cover(c, school_name, graduation_year)
        c.save()
        return buffer.getvalue()

    def render_section(self, title: str, items: Iterable[ContentItem]) -> bytes:
        """A section title page followed by one page per item"""
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=letter)
        self._section_title(c, title)
        for item in items:
            self._content_page(c, item)
        c.save()
        return buffer.getvalue()
