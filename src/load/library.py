"""In-memory snapshot of the cached Readwise library."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from typing import Any

from common.dates import to_rfc3339
from common.models import Book, Document, Highlight


@dataclass(frozen=True)
class Library:
    """Every cached record as of `updated_at`.

    A snapshot is built once per export run and never changes afterwards.
    """

    books: tuple[Book, ...]
    highlights: tuple[Highlight, ...]
    documents: tuple[Document, ...]
    updated_at: datetime

    @cached_property
    def _highlights_by_book(self) -> dict[int, list[Highlight]]:
        index: dict[int, list[Highlight]] = defaultdict(list)
        for highlight in self.highlights:
            index[highlight.book_id].append(highlight)
        return dict(index)

    def highlights_for(self, book: Book) -> list[Highlight]:
        """All highlights belonging to a book, in no guaranteed order."""
        return list(self._highlights_by_book.get(book.id, []))

    def has_highlights(self, book: Book) -> bool:
        return book.id in self._highlights_by_book

    def orphaned_highlights(self) -> list[Highlight]:
        """Highlights whose book is not part of this snapshot."""
        book_ids = {book.id for book in self.books}
        return [h for h in self.highlights if h.book_id not in book_ids]

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form, matching the legacy library.json layout."""
        return {
            "books": [book.to_dict() for book in self.books],
            "highlights": [highlight.to_dict() for highlight in self.highlights],
            "documents": [document.to_dict() for document in self.documents],
            "updated_at": to_rfc3339(self.updated_at),
        }
