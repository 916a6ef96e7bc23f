"""Reconcile the cached library with a markdown vault.

Every book becomes one note, found again on later runs through the foreign
key in its front matter. A note has two regions separated by the split
marker: everything above it belongs to the user and survives updates,
everything below it is regenerated from the book's highlights.
"""

import itertools
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from common.constants import (
    FOREIGN_KEY,
    HIGHLIGHTS_BEGIN_TOKEN,
    KINDLE_LOCATION_URL,
    NOTE_KIND_KEY,
    NOTE_KIND_VALUE,
    STRANDED_KEY,
)
from common.logger import get_logger
from common.models import Book, Highlight
from load.library import Library

from .metadata import DefaultMetadata, MetadataSource
from .templates import NoteTemplates
from .vault import Note, NoteToWrite, Vault, WriteOutcome

logger = get_logger(__name__)

_UNSAFE_TITLE_CHARS = re.compile(r"[<>\"'/\\|?*]+")


class ExportError(Exception):
    """A book could not be turned into a note."""

    pass


class ReplacementStrategy(str, Enum):
    """What to do with a note that already exists for a book."""

    UPDATE = "update"  # keep the user's region, regenerate the highlights
    REPLACE = "replace"  # regenerate everything in place
    IGNORE_EXISTING = "ignore-existing"  # write a fresh note at the default path


@dataclass
class ExportOptions:
    base_folder: str = "Readwise"
    replacement_strategy: ReplacementStrategy = ReplacementStrategy.UPDATE
    skip_empty: bool = True
    filter_category: str | None = None
    mark_stranded: bool = False


@dataclass
class ExportReport:
    created: list[Path] = field(default_factory=list)
    updated: list[Path] = field(default_factory=list)
    stranded: list[Path] = field(default_factory=list)

    @property
    def written(self) -> list[Path]:
        return self.created + self.updated


def sanitize_title(title: str) -> str:
    """Make a book title usable as a file name."""
    return _UNSAFE_TITLE_CHARS.sub("", title).replace(":", "-").replace(".", "-")


def category_folder_name(category: str) -> str:
    if not category:
        raise ExportError(f"Invalid category {category!r}")
    return category[0].upper() + category[1:]


def group_by_category(books: Iterable[Book]) -> list[tuple[str, list[Book]]]:
    """Group books into runs of equal category, keeping their order.

    Books are not sorted first: the same category may appear in more than
    one group.
    """
    return [(category, list(run)) for category, run in itertools.groupby(books, key=lambda b: b.category)]


def persisted_region(note: Note) -> str:
    """The user's part of a note, above the split marker."""
    index = note.body.find(HIGHLIGHTS_BEGIN_TOKEN)
    if index == -1:
        logger.warning(
            f"Could not find the split token '{HIGHLIGHTS_BEGIN_TOKEN}' in {note.path}; "
            f"the whole body will be regenerated"
        )
        index = 0
    return note.body[:index]


def highlight_context(book: Book, highlight: Highlight) -> dict[str, Any]:
    data = highlight.to_dict()
    if book.asin:
        data["location_url"] = KINDLE_LOCATION_URL.format(asin=book.asin, location=highlight.location)
    return data


def template_context(book: Book, highlights: Sequence[Highlight]) -> dict[str, Any]:
    """Variables available to the book template.

    The book's fields sit at the top level and under `book`; `highlights`
    holds the book's highlights ordered by location.
    """
    book_data = book.to_dict()
    context = dict(book_data)
    context["book"] = book_data
    context["highlights"] = [highlight_context(book, h) for h in highlights]
    return context


class Exporter:
    """One reconciliation pass over a library snapshot.

    Args:
        library: Snapshot to export
        vault: Vault to write notes into
        templates: Book and highlight templates
        metadata_source: Front matter source (default: the book's fields)
        options: Export options
        existing: Foreign key index of notes already in the vault
            (default: scanned from the vault)
    """

    def __init__(
        self,
        library: Library,
        vault: Vault,
        templates: NoteTemplates,
        metadata_source: MetadataSource | None = None,
        options: ExportOptions | None = None,
        existing: dict[int, Path] | None = None,
    ):
        self.library = library
        self.vault = vault
        self.templates = templates
        self.metadata_source = metadata_source or DefaultMetadata()
        self.options = options or ExportOptions()
        if existing is None:
            existing = vault.find_by(NOTE_KIND_KEY, NOTE_KIND_VALUE, FOREIGN_KEY)
        # Entries are claimed as books are exported; what remains is stranded
        self.remaining_existing: dict[int, Path] = dict(existing)

    @property
    def export_root(self) -> Path:
        return self.vault.root / self.options.base_folder

    def selected_books(self) -> list[Book]:
        books = list(self.library.books)
        if self.options.skip_empty:
            books = [b for b in books if self.library.has_highlights(b)]
        if self.options.filter_category is not None:
            books = [b for b in books if b.category == self.options.filter_category]
        return books

    def run(self) -> ExportReport:
        """Export every selected book, then mark stranded notes if asked to."""
        report = self.export()
        if self.options.mark_stranded:
            report.stranded = self.mark_stranded()
        return report

    def export(self) -> ExportReport:
        """Write a note for every selected book.

        Raises:
            ExportError: If a book has no category or its metadata is not a mapping
            TemplateError: If a template fails to render
            MetadataScriptError: If the metadata source fails
            VaultError: If an existing note cannot be parsed
            OSError: If reading or writing a note fails
        """
        orphans = self.library.orphaned_highlights()
        if orphans:
            logger.warning(f"{len(orphans)} highlights belong to books missing from the cache; skipping them")

        report = ExportReport()
        for category, books in group_by_category(self.selected_books()):
            category_root = self.export_root / category_folder_name(category)
            category_root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Exporting {len(books)} {category} to {category_root}")

            for book in books:
                existing = self.remaining_existing.pop(book.id, None)
                path, outcome = self.export_book(category_root, book, existing)
                if outcome == WriteOutcome.CREATED:
                    report.created.append(path)
                else:
                    report.updated.append(path)

        logger.info(f"Exported {len(report.created)} new and {len(report.updated)} updated notes")
        return report

    def export_book(self, category_root: Path, book: Book, existing: Path | None) -> tuple[Path, WriteOutcome]:
        """Render and write one book's note."""
        highlights = sorted(self.library.highlights_for(book), key=lambda h: h.location)

        strategy = self.options.replacement_strategy
        if strategy == ReplacementStrategy.IGNORE_EXISTING:
            existing = None

        if existing is not None and strategy == ReplacementStrategy.UPDATE:
            front = persisted_region(self.vault.read_note(existing))
        else:
            front = self.templates.render_book(template_context(book, highlights))

        note = NoteToWrite(
            foreign_key=book.id,
            default_path=category_root / f"{sanitize_title(book.title)}.md",
            metadata=self.note_metadata(book, highlights),
            contents=self.render_contents(front, book, highlights),
        )
        outcome = self.vault.write_note(note, existing)
        return (existing if existing is not None else note.default_path), outcome

    def render_contents(self, front: str, book: Book, highlights: Sequence[Highlight]) -> str:
        context = template_context(book, highlights)
        rendered = []
        for highlight in reversed(highlights):
            rendered.append(self.templates.render_highlight({**context, "highlight": highlight_context(book, highlight)}))
        generated = "\n\n".join(rendered).strip()
        return f"{front.strip()}\n\n{HIGHLIGHTS_BEGIN_TOKEN}\n\n{generated}\n"

    def note_metadata(self, book: Book, highlights: Sequence[Highlight]) -> dict[str, Any]:
        metadata = self.metadata_source.compute_metadata(book, highlights)
        if not isinstance(metadata, dict):
            raise ExportError(f"Metadata for book {book.id} was not a mapping (got {type(metadata).__name__})")
        metadata = dict(metadata)
        metadata[NOTE_KIND_KEY] = NOTE_KIND_VALUE
        metadata[FOREIGN_KEY] = book.id
        return metadata

    def mark_stranded(self) -> list[Path]:
        """Flag notes whose book was not exported in this pass.

        Only the front matter changes; the body is left as it is.
        """
        stranded = []
        for book_id, path in sorted(self.remaining_existing.items()):
            note = self.vault.read_note(path)
            metadata = dict(note.metadata)
            metadata[STRANDED_KEY] = True
            self.vault.write_metadata(path, metadata)
            logger.debug(f"Marked note for book {book_id} as stranded: {path}")
            stranded.append(path)

        if stranded:
            logger.warning(f"Marked {len(stranded)} notes as stranded")
        return stranded
