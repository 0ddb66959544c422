"""
Booklet assembly: cover, content sections and student PDFs merged into one document.
"""

from app.modules.booklet.assembler import BookletAssembler, BookletResult

__all__ = ["BookletAssembler", "BookletResult"]
