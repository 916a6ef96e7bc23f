"""Abstract record source and ingestion errors."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from datetime import datetime

from common.models import Book, Document, Highlight, RecordKind


class RecordSource(ABC):
    """A remote feed of Readwise records.

    Every method returns a lazy async iterator of batches, one batch per API
    page. Iterating starts a fresh page walk; breaking out early is safe.
    """

    @abstractmethod
    def iter_books(self, updated_after: datetime | None = None) -> AsyncIterator[list[Book]]:
        """Yield pages of books, optionally only those updated after a timestamp.

        Raises:
            APIError: If a request fails with anything other than rate limiting
            ResponseFormatError: If a page cannot be decoded
        """

    @abstractmethod
    def iter_highlights(
        self, updated_after: datetime | None = None
    ) -> AsyncIterator[list[Highlight]]:
        """Yield pages of highlights, optionally only those updated after a timestamp."""

    @abstractmethod
    def iter_documents(
        self, updated_after: datetime | None = None, location: str | None = None
    ) -> AsyncIterator[list[Document]]:
        """Yield pages of reader documents.

        Args:
            updated_after: Only documents updated after this timestamp
            location: Optional Reader location filter (new, later, archive, feed)
        """


class FetchError(Exception):
    """Base exception for ingestion errors."""

    def __init__(self, kind: RecordKind, message: str):
        super().__init__(f"Failed to fetch {kind.value}: {message}")
        self.kind = kind


class APIError(FetchError):
    """A request failed with a non-retryable status or a transport error."""

    def __init__(
        self,
        kind: RecordKind,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(kind, message)
        self.status_code = status_code
        self.detail = detail


class ResponseFormatError(FetchError):
    """A response body could not be decoded into records."""
