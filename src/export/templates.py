"""Jinja2 templates for book notes.

A note is rendered from two templates: the book template produces the
opening part of the note, the highlight template is rendered once per
highlight. Undefined variables are errors so typos surface on the first run.
"""

from pathlib import Path
from typing import Any

import jinja2

from common.logger import get_logger

logger = get_logger(__name__)


class TemplateError(Exception):
    """A template is missing, invalid or failed to render."""

    pass


def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        autoescape=False,
    )


def read_template(path: str | Path) -> str:
    """Read a template file.

    Raises:
        TemplateError: If the file cannot be read
    """
    path = Path(path)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Failed to read template {path}: {e}") from e


def render_string(source: str, context: dict[str, Any], name: str = "template") -> str:
    """Render a one-off template string."""
    try:
        return _environment().from_string(source).render(context)
    except jinja2.TemplateError as e:
        raise TemplateError(f"Failed to render {name}: {e}") from e


class NoteTemplates:
    """The book and highlight templates used to build note bodies."""

    def __init__(self, book_template: str, highlight_template: str):
        self._env = _environment()
        try:
            self._book = self._env.from_string(book_template)
            self._highlight = self._env.from_string(highlight_template)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateError(f"Invalid template (line {e.lineno}): {e.message}") from e

    @classmethod
    def from_files(cls, book_path: str | Path, highlight_path: str | Path) -> "NoteTemplates":
        """Load both templates from disk.

        Raises:
            TemplateError: If either file is missing or invalid
        """
        logger.debug(f"Loading templates: book={book_path}, highlight={highlight_path}")
        return cls(read_template(book_path), read_template(highlight_path))

    def render_book(self, context: dict[str, Any]) -> str:
        try:
            return self._book.render(context)
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render book template: {e}") from e

    def render_highlight(self, context: dict[str, Any]) -> str:
        try:
            return self._highlight.render(context)
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render highlight template: {e}") from e
