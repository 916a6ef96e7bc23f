"""Tests for the library cache."""

from datetime import datetime, timedelta, timezone

import pytest

from common.models import Book, Document, Highlight, RecordKind, Tag
from load.cache import CacheError, LibraryCache
from load.db.sqlite_adapter import SQLiteAdapter

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_book(book_id, title=None, tags=(), **kwargs):
    return Book(
        id=book_id,
        title=title or f"Book {book_id}",
        category=kwargs.pop("category", "books"),
        updated=kwargs.pop("updated", T0),
        tags=list(tags),
        **kwargs,
    )


def make_highlight(highlight_id, book_id, tags=(), **kwargs):
    return Highlight(
        id=highlight_id,
        text=kwargs.pop("text", f"Highlight {highlight_id}"),
        location=kwargs.pop("location", highlight_id),
        book_id=book_id,
        updated=kwargs.pop("updated", T0),
        tags=list(tags),
        **kwargs,
    )


def make_document(doc_id, **kwargs):
    return Document(
        id=doc_id,
        url=f"https://read.readwise.io/read/{doc_id}",
        created_at=T0,
        updated_at=kwargs.pop("updated_at", T0),
        saved_at=T0,
        last_moved_at=T0,
        **kwargs,
    )


@pytest.fixture
def cache(tmp_path):
    """An initialized SQLite cache."""
    adapter = SQLiteAdapter(tmp_path / "cache.db")
    adapter.connect()
    library_cache = LibraryCache(adapter)
    library_cache.initialize()
    yield library_cache
    library_cache.close()


class TestOpen:
    """Tests for LibraryCache.open."""

    def test_open_creates_schema(self, tmp_path, monkeypatch):
        """Test that opening a fresh path prepares every table."""
        monkeypatch.setenv("DATABASE_TYPE", "sqlite")
        db_path = tmp_path / "data" / "readwise.db"

        with LibraryCache.open(db_path) as cache:
            assert "sync_state" in cache.adapter.get_tables()
            assert cache.counts() == {"books": 0, "highlights": 0, "documents": 0, "tags": 0}

        assert db_path.exists()

    def test_reopen_keeps_data(self, tmp_path, monkeypatch):
        """Test that data survives closing and reopening."""
        monkeypatch.setenv("DATABASE_TYPE", "sqlite")
        db_path = tmp_path / "readwise.db"

        with LibraryCache.open(db_path) as cache:
            cache.upsert_books([make_book(1)])
            cache.set_watermark(RecordKind.BOOKS, T0)

        with LibraryCache.open(db_path) as cache:
            assert [b.id for b in cache.snapshot().books] == [1]
            assert cache.get_watermark(RecordKind.BOOKS) == T0


class TestUpserts:
    """Tests for record upserts."""

    def test_upsert_is_idempotent(self, cache):
        """Test that writing the same batch twice leaves one row per record."""
        books = [make_book(1), make_book(2)]

        cache.upsert_books(books)
        cache.upsert_books(books)

        assert cache.counts()["books"] == 2

    def test_upsert_overwrites_every_column(self, cache):
        """Test that the latest write wins for all fields."""
        cache.upsert_books([make_book(1, title="Old", author="A", asin="X")])
        cache.upsert_books([make_book(1, title="New", author=None, asin=None)])

        (book,) = cache.snapshot().books
        assert book.title == "New"
        assert book.author is None
        assert book.asin is None

    def test_round_trip_preserves_fields(self, cache):
        """Test that every stored field reads back unchanged."""
        book = make_book(
            5,
            author="Author",
            num_highlights=2,
            last_highlight_at=T0 + timedelta(hours=1),
            cover_image_url="https://example.com/c.jpg",
            highlights_url="https://readwise.io/bookreview/5",
            source_url="https://example.com",
            asin="B00TEST",
            tags=[Tag(1, "fiction")],
        )
        highlight = make_highlight(
            9, 5, note="a note", highlighted_at=T0, url="https://example.com/h", color="blue",
            tags=[Tag(2, "favorite")],
        )
        document = make_document("d1", title="Doc", word_count=300, reading_progress=0.5, parent_id=None)

        cache.upsert_books([book])
        cache.upsert_highlights([highlight])
        cache.upsert_documents([document])
        library = cache.snapshot()

        assert library.books == (book,)
        assert library.highlights == (highlight,)
        assert library.documents == (document,)

    def test_empty_batch_is_noop(self, cache):
        """Test that empty batches touch nothing."""
        cache.upsert_books([])
        cache.upsert_highlights([])
        cache.upsert_documents([])

        assert cache.counts()["books"] == 0

    def test_highlights_without_book_are_kept(self, cache):
        """Test that a highlight may arrive before its book."""
        cache.upsert_highlights([make_highlight(1, book_id=404)])

        library = cache.snapshot()
        assert [h.id for h in library.highlights] == [1]
        assert library.books == ()


class TestTags:
    """Tests for tag storage."""

    def test_latest_tag_name_wins(self, cache):
        """Test that a renamed tag takes the most recently written name."""
        cache.upsert_books([make_book(1, tags=[Tag(10, "old")])])
        cache.upsert_highlights([make_highlight(1, 1, tags=[Tag(10, "new")])])

        library = cache.snapshot()
        assert library.books[0].tags == [Tag(10, "new")]
        assert library.highlights[0].tags == [Tag(10, "new")]

    def test_last_occurrence_in_batch_wins(self, cache):
        """Test that within one batch the later record's tag name is kept."""
        cache.upsert_books([make_book(1, tags=[Tag(10, "first")]), make_book(2, tags=[Tag(10, "second")])])

        assert cache.adapter.fetchscalar("SELECT name FROM tags WHERE id = ?", (10,)) == "second"

    def test_tag_links_are_additive(self, cache):
        """Test that tags missing from a later write stay linked."""
        cache.upsert_books([make_book(1, tags=[Tag(10, "a")])])
        cache.upsert_books([make_book(1, tags=[Tag(11, "b")])])

        assert cache.snapshot().books[0].tags == [Tag(10, "a"), Tag(11, "b")]


class TestAtomicity:
    """Tests for per-batch transactions."""

    def test_failed_batch_is_rolled_back(self, cache):
        """Test that no record of a failing batch is kept."""
        cache.upsert_books([make_book(1)])
        cache.adapter.execute("CREATE TRIGGER reject_bad BEFORE INSERT ON books WHEN NEW.title = 'bad' BEGIN SELECT RAISE(ABORT, 'rejected'); END")
        cache.adapter.commit()

        with pytest.raises(CacheError) as exc_info:
            cache.upsert_books([make_book(2), make_book(3, title="bad")])

        assert exc_info.value.kind == RecordKind.BOOKS
        assert exc_info.value.ids == [2, 3]
        assert [b.id for b in cache.snapshot().books] == [1]

    def test_failed_batch_leaves_no_tags(self, cache):
        """Test that tags from a failing batch are discarded too."""
        cache.adapter.execute("CREATE TRIGGER reject_bad BEFORE INSERT ON highlight_tags BEGIN SELECT RAISE(ABORT, 'rejected'); END")
        cache.adapter.commit()

        with pytest.raises(CacheError):
            cache.upsert_highlights([make_highlight(1, 1, tags=[Tag(5, "x")])])

        assert cache.counts() == {"books": 0, "highlights": 0, "documents": 0, "tags": 0}


class TestWatermarks:
    """Tests for sync watermarks."""

    def test_unset_watermark(self, cache):
        """Test that a never-synced kind has no watermark."""
        for kind in RecordKind:
            assert cache.get_watermark(kind) is None

    def test_watermarks_are_per_kind(self, cache):
        """Test that each kind keeps its own watermark."""
        cache.set_watermark(RecordKind.BOOKS, T0)
        cache.set_watermark(RecordKind.DOCUMENTS, T0 + timedelta(days=1))

        assert cache.get_watermark(RecordKind.BOOKS) == T0
        assert cache.get_watermark(RecordKind.HIGHLIGHTS) is None
        assert cache.get_watermark(RecordKind.DOCUMENTS) == T0 + timedelta(days=1)

    def test_set_watermark_overwrites(self, cache):
        """Test that setting a watermark replaces the previous one."""
        cache.set_watermark(RecordKind.HIGHLIGHTS, T0)
        cache.set_watermark(RecordKind.HIGHLIGHTS, T0 + timedelta(minutes=5))

        assert cache.get_watermark(RecordKind.HIGHLIGHTS) == T0 + timedelta(minutes=5)


class TestSnapshot:
    """Tests for LibraryCache.snapshot."""

    def test_records_ordered_by_id(self, cache):
        """Test that snapshots are stable regardless of write order."""
        cache.upsert_books([make_book(3), make_book(1), make_book(2)])

        assert [b.id for b in cache.snapshot().books] == [1, 2, 3]

    def test_updated_at_is_latest_watermark(self, cache):
        """Test that the snapshot time is the most recent sync."""
        cache.set_watermark(RecordKind.BOOKS, T0)
        cache.set_watermark(RecordKind.HIGHLIGHTS, T0 + timedelta(hours=2))

        assert cache.snapshot().updated_at == T0 + timedelta(hours=2)

    def test_counts(self, cache):
        """Test row counts per table."""
        cache.upsert_books([make_book(1, tags=[Tag(1, "t")])])
        cache.upsert_highlights([make_highlight(1, 1), make_highlight(2, 1)])
        cache.upsert_documents([make_document("a")])

        assert cache.counts() == {"books": 1, "highlights": 2, "documents": 1, "tags": 1}
