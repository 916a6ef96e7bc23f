"""Durable cache of Readwise records.

Every upsert is keyed by record id and overwrites all columns with the
incoming values. Tags are upserted alongside books and highlights; a tag's
name is whatever the most recently written record said it was. Tag links are
only ever added, never pruned.

Each batch is written in one transaction: either all of its records (with
their tags and links) are committed, or none are.
"""

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from common.dates import parse_datetime, to_rfc3339, utc_now
from common.logger import get_logger
from common.models import Book, Document, Highlight, RecordKind, Tag
from load.db import DatabaseAdapter, DatabaseError, Row, get_adapter

from .library import Library

logger = get_logger(__name__)

BOOK_COLUMNS = (
    "id",
    "title",
    "author",
    "category",
    "num_highlights",
    "last_highlight_at",
    "updated",
    "cover_image_url",
    "highlights_url",
    "source_url",
    "asin",
)

HIGHLIGHT_COLUMNS = (
    "id",
    "text",
    "note",
    "location",
    "location_type",
    "highlighted_at",
    "url",
    "color",
    "updated",
    "book_id",
)

DOCUMENT_COLUMNS = (
    "id",
    "url",
    "title",
    "author",
    "source",
    "category",
    "location",
    "site_name",
    "word_count",
    "created_at",
    "updated_at",
    "published_date",
    "summary",
    "image_url",
    "content",
    "source_url",
    "notes",
    "parent_id",
    "reading_progress",
    "first_opened_at",
    "last_opened_at",
    "saved_at",
    "last_moved_at",
)

TIMESTAMP_COLUMNS = {
    "last_highlight_at",
    "updated",
    "highlighted_at",
    "created_at",
    "updated_at",
    "published_date",
    "first_opened_at",
    "last_opened_at",
    "saved_at",
    "last_moved_at",
}


class CacheError(DatabaseError):
    """A batch could not be written to the cache; nothing from it was kept."""

    def __init__(self, kind: RecordKind, ids: Sequence[Any], cause: Exception):
        preview = ", ".join(str(i) for i in list(ids)[:5])
        if len(ids) > 5:
            preview += ", ..."
        super().__init__(f"Failed to store {len(ids)} {kind.value} [{preview}]: {cause}")
        self.kind = kind
        self.ids = list(ids)
        self.cause = cause


def _upsert_sql(table: str, columns: Sequence[str]) -> str:
    column_list = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    updates = ",\n                ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
    return f"""
            INSERT INTO {table} ({column_list})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET
                {updates}
            """


def _row_values(record: Any, columns: Sequence[str]) -> tuple:
    values = []
    for column in columns:
        value = getattr(record, column)
        if column in TIMESTAMP_COLUMNS:
            value = to_rfc3339(value)
        values.append(value)
    return tuple(values)


def _record_fields(row: Row, columns: Sequence[str]) -> dict[str, Any]:
    fields = {}
    for column in columns:
        value = row[column]
        if column in TIMESTAMP_COLUMNS:
            value = parse_datetime(value)
        fields[column] = value
    return fields


class LibraryCache:
    """Upsert store for books, highlights, documents, tags and sync watermarks.

    Example:
        >>> with LibraryCache.open("data/readwise.db") as cache:
        ...     cache.upsert_books(books)
        ...     cache.set_watermark(RecordKind.BOOKS, utc_now())
    """

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    @classmethod
    def open(cls, db_path: str | Path | None = None) -> "LibraryCache":
        """Connect using environment configuration and prepare the schema."""
        adapter = get_adapter(db_path)
        adapter.connect()
        cache = cls(adapter)
        cache.initialize()
        return cache

    def initialize(self) -> None:
        """Create missing tables and apply pending migrations."""
        self.adapter.create_schema()
        self.adapter.run_migrations()

    def close(self) -> None:
        self.adapter.close()

    def __enter__(self) -> "LibraryCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    @contextmanager
    def _batch(self, kind: RecordKind, ids: Sequence[Any]) -> Iterator[None]:
        try:
            yield
            self.adapter.commit()
        except DatabaseError as e:
            self.adapter.rollback()
            raise CacheError(kind, ids, e) from e
        except Exception:
            self.adapter.rollback()
            raise

    def _upsert_tags(self, records: Iterable[Book | Highlight]) -> None:
        # Later records win when the same tag id arrives with different names
        tags: dict[int, Tag] = {}
        for record in records:
            for tag in record.tags:
                tags.pop(tag.id, None)
                tags[tag.id] = tag

        for tag in tags.values():
            self.adapter.execute(
                """
                INSERT INTO tags (id, name)
                VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                """,
                (tag.id, tag.name),
            )

    def _link_tags(self, table: str, owner_column: str, records: Iterable[Book | Highlight]) -> None:
        for record in records:
            for tag in record.tags:
                self.adapter.execute(
                    f"""
                    INSERT INTO {table} ({owner_column}, tag_id)
                    VALUES (?, ?)
                    ON CONFLICT DO NOTHING
                    """,
                    (record.id, tag.id),
                )

    def upsert_books(self, books: Sequence[Book]) -> None:
        """Insert or overwrite a batch of books with their tags.

        Raises:
            CacheError: If any statement fails (the batch is rolled back)
        """
        if not books:
            return

        sql = _upsert_sql("books", BOOK_COLUMNS)
        with self._batch(RecordKind.BOOKS, [b.id for b in books]):
            for book in books:
                self.adapter.execute(sql, _row_values(book, BOOK_COLUMNS))
            self._upsert_tags(books)
            self._link_tags("book_tags", "book_id", books)

        logger.debug(f"Stored {len(books)} books")

    def upsert_highlights(self, highlights: Sequence[Highlight]) -> None:
        """Insert or overwrite a batch of highlights with their tags.

        Raises:
            CacheError: If any statement fails (the batch is rolled back)
        """
        if not highlights:
            return

        sql = _upsert_sql("highlights", HIGHLIGHT_COLUMNS)
        with self._batch(RecordKind.HIGHLIGHTS, [h.id for h in highlights]):
            for highlight in highlights:
                self.adapter.execute(sql, _row_values(highlight, HIGHLIGHT_COLUMNS))
            self._upsert_tags(highlights)
            self._link_tags("highlight_tags", "highlight_id", highlights)

        logger.debug(f"Stored {len(highlights)} highlights")

    def upsert_documents(self, documents: Sequence[Document]) -> None:
        """Insert or overwrite a batch of reader documents.

        Raises:
            CacheError: If any statement fails (the batch is rolled back)
        """
        if not documents:
            return

        sql = _upsert_sql("documents", DOCUMENT_COLUMNS)
        with self._batch(RecordKind.DOCUMENTS, [d.id for d in documents]):
            for document in documents:
                self.adapter.execute(sql, _row_values(document, DOCUMENT_COLUMNS))

        logger.debug(f"Stored {len(documents)} documents")

    @staticmethod
    def _watermark_column(kind: RecordKind) -> str:
        return f"last_{RecordKind(kind).value}_sync"

    def get_watermark(self, kind: RecordKind) -> datetime | None:
        """When `kind` was last synchronized, or None if never."""
        value = self.adapter.fetchscalar(
            f"SELECT {self._watermark_column(kind)} FROM sync_state WHERE id = 1"
        )
        return parse_datetime(value)

    def set_watermark(self, kind: RecordKind, synced_at: datetime) -> None:
        column = self._watermark_column(kind)
        try:
            self.adapter.execute(
                f"""
                INSERT INTO sync_state (id, {column})
                VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET {column} = excluded.{column}
                """,
                (to_rfc3339(synced_at),),
            )
            self.adapter.commit()
        except DatabaseError:
            self.adapter.rollback()
            raise

    def _tags_by_owner(self, table: str, owner_column: str) -> dict[int, list[Tag]]:
        rows = self.adapter.fetchall(
            f"""
            SELECT x.{owner_column} AS owner_id, t.id AS id, t.name AS name
            FROM {table} x
            JOIN tags t ON t.id = x.tag_id
            ORDER BY x.{owner_column}, t.id
            """
        )
        tags: dict[int, list[Tag]] = {}
        for row in rows:
            tags.setdefault(row["owner_id"], []).append(Tag(id=row["id"], name=row["name"]))
        return tags

    def snapshot(self) -> Library:
        """Read the whole cache into an immutable Library."""
        book_tags = self._tags_by_owner("book_tags", "book_id")
        highlight_tags = self._tags_by_owner("highlight_tags", "highlight_id")

        books = tuple(
            Book(**_record_fields(row, BOOK_COLUMNS), tags=book_tags.get(row["id"], []))
            for row in self.adapter.fetchall(
                f"SELECT {', '.join(BOOK_COLUMNS)} FROM books ORDER BY id"
            )
        )
        highlights = tuple(
            Highlight(
                **_record_fields(row, HIGHLIGHT_COLUMNS),
                tags=highlight_tags.get(row["id"], []),
            )
            for row in self.adapter.fetchall(
                f"SELECT {', '.join(HIGHLIGHT_COLUMNS)} FROM highlights ORDER BY id"
            )
        )
        documents = tuple(
            Document(**_record_fields(row, DOCUMENT_COLUMNS))
            for row in self.adapter.fetchall(
                f"SELECT {', '.join(DOCUMENT_COLUMNS)} FROM documents ORDER BY id"
            )
        )

        watermarks = [w for w in (self.get_watermark(k) for k in RecordKind) if w is not None]
        updated_at = max(watermarks) if watermarks else utc_now()

        return Library(
            books=books,
            highlights=highlights,
            documents=documents,
            updated_at=updated_at,
        )

    def counts(self) -> dict[str, int]:
        """Row counts per record table."""
        return {
            table: self.adapter.fetchscalar(f"SELECT COUNT(*) AS n FROM {table}")
            for table in ("books", "highlights", "documents", "tags")
        }
