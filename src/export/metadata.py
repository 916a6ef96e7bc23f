"""Sources of front matter for exported notes.

The exporter only sees the `MetadataSource` protocol. Three sources exist:

- DefaultMetadata: the book's own fields
- TemplateMetadata: a Jinja2 template that renders YAML
- ScriptMetadata: a Python file defining `metadata(book, highlights)`

Template and script sources receive the book and its highlights as plain
JSON-compatible dictionaries, highlights ordered by location.
"""

import importlib.util
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

import yaml

from common.logger import get_logger
from common.models import Book, Highlight

from .templates import read_template, render_string

logger = get_logger(__name__)


class MetadataScriptError(Exception):
    """A metadata script or template could not be loaded or failed to run."""

    pass


class MetadataSource(Protocol):
    def compute_metadata(self, book: Book, highlights: Sequence[Highlight]) -> Any:
        """Return the front matter for a book's note (expected to be a mapping)."""
        ...


class DefaultMetadata:
    """Use the book's own fields as front matter."""

    def compute_metadata(self, book: Book, highlights: Sequence[Highlight]) -> Any:
        return book.to_dict()


class TemplateMetadata:
    """Render a template to YAML and parse it.

    Example template:
        title: "{{ book.title }}"
        highlight_count: {{ highlights | length }}
    """

    def __init__(self, source: str, name: str = "metadata template"):
        self.source = source
        self.name = name

    @classmethod
    def from_file(cls, path: str | Path) -> "TemplateMetadata":
        return cls(read_template(path), name=str(path))

    def compute_metadata(self, book: Book, highlights: Sequence[Highlight]) -> Any:
        rendered = render_string(
            self.source,
            {"book": book.to_dict(), "highlights": [h.to_dict() for h in highlights]},
            name=self.name,
        )
        try:
            return yaml.safe_load(rendered)
        except yaml.YAMLError as e:
            raise MetadataScriptError(f"{self.name} did not render valid YAML: {e}") from e


class ScriptMetadata:
    """Call `metadata(book, highlights)` from a Python file."""

    def __init__(self, func: Callable[[dict, list], Any], name: str = "metadata script"):
        self._func = func
        self.name = name

    @classmethod
    def from_file(cls, path: str | Path) -> "ScriptMetadata":
        """Load a metadata script.

        Raises:
            MetadataScriptError: If the file cannot be imported or lacks `metadata`
        """
        path = Path(path)
        logger.debug(f"Loading metadata script from {path}")

        spec = importlib.util.spec_from_file_location(f"readwise_metadata_{path.stem}", path)
        if spec is None or spec.loader is None:
            raise MetadataScriptError(f"Cannot load metadata script {path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MetadataScriptError(f"Failed to load metadata script {path}: {e}") from e

        func = getattr(module, "metadata", None)
        if not callable(func):
            raise MetadataScriptError(f"{path} does not define a metadata(book, highlights) function")
        return cls(func, name=str(path))

    def compute_metadata(self, book: Book, highlights: Sequence[Highlight]) -> Any:
        try:
            return self._func(book.to_dict(), [h.to_dict() for h in highlights])
        except Exception as e:
            raise MetadataScriptError(f"{self.name} failed for book {book.id}: {e}") from e


def load_metadata_source(path: str | Path | None) -> MetadataSource:
    """Pick a metadata source for a path: `.py` scripts, anything else templates."""
    if path is None:
        return DefaultMetadata()
    path = Path(path)
    if path.suffix == ".py":
        return ScriptMetadata.from_file(path)
    return TemplateMetadata.from_file(path)
