"""Record types synchronized from Readwise.

Books and highlights come from the v2 export endpoints, documents from the
v3 reader list endpoint. `from_api` builds a record from one JSON result and
raises KeyError, TypeError or ValueError when the payload is malformed.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from common.dates import parse_datetime, parse_published_date, to_rfc3339


class RecordKind(str, Enum):
    """Kinds of records kept in the cache, each with its own sync watermark."""

    BOOKS = "books"
    HIGHLIGHTS = "highlights"
    DOCUMENTS = "documents"


@dataclass(frozen=True)
class Tag:
    id: int
    name: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Tag":
        return cls(id=int(data["id"]), name=str(data["name"]))


def _tags(data: dict[str, Any]) -> list[Tag]:
    return [Tag.from_api(tag) for tag in data.get("tags") or []]


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_rfc3339(value)
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    return value


@dataclass
class Book:
    """A source (book, article, tweet, ...) that highlights belong to."""

    id: int
    title: str
    category: str
    num_highlights: int = 0
    author: str | None = None
    last_highlight_at: datetime | None = None
    updated: datetime | None = None
    cover_image_url: str | None = None
    highlights_url: str | None = None
    source_url: str | None = None
    asin: str | None = None
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Book":
        return cls(
            id=int(data["id"]),
            title=str(data["title"]),
            author=data.get("author"),
            category=str(data["category"]),
            num_highlights=int(data.get("num_highlights") or 0),
            last_highlight_at=parse_datetime(data.get("last_highlight_at")),
            updated=parse_datetime(data.get("updated")),
            cover_image_url=data.get("cover_image_url"),
            highlights_url=data.get("highlights_url"),
            source_url=data.get("source_url"),
            asin=data.get("asin"),
            tags=_tags(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible mapping of every field."""
        return _to_json_value(asdict(self))


@dataclass
class Highlight:
    id: int
    text: str
    location: int
    book_id: int
    updated: datetime
    note: str = ""
    location_type: str = "location"
    highlighted_at: datetime | None = None
    url: str | None = None
    color: str = ""
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Highlight":
        updated = parse_datetime(data["updated"])
        if updated is None:
            raise ValueError(f"Highlight {data.get('id')} has no updated timestamp")

        return cls(
            id=int(data["id"]),
            text=str(data["text"]),
            note=data.get("note") or "",
            location=int(data.get("location") or 0),
            location_type=data.get("location_type") or "location",
            highlighted_at=parse_datetime(data.get("highlighted_at")),
            url=data.get("url"),
            color=data.get("color") or "",
            updated=updated,
            book_id=int(data["book_id"]),
            tags=_tags(data),
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_json_value(asdict(self))


@dataclass
class Document:
    """A Reader document (saved article, PDF, email, ...).

    Documents can nest: highlights made in Reader are themselves documents
    whose `parent_id` points at the document they were made in.
    """

    id: str
    url: str
    created_at: datetime
    updated_at: datetime
    saved_at: datetime
    last_moved_at: datetime
    reading_progress: float = 0.0
    title: str | None = None
    author: str | None = None
    source: str | None = None
    category: str | None = None
    location: str | None = None
    site_name: str | None = None
    word_count: int | None = None
    published_date: datetime | None = None
    summary: str | None = None
    image_url: str | None = None
    content: str | None = None
    source_url: str | None = None
    notes: str | None = None
    parent_id: str | None = None
    first_opened_at: datetime | None = None
    last_opened_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Document":
        required = {}
        for key in ("created_at", "updated_at", "saved_at", "last_moved_at"):
            required[key] = parse_datetime(data[key])
            if required[key] is None:
                raise ValueError(f"Document {data.get('id')} is missing {key}")

        progress = float(data.get("reading_progress") or 0.0)
        word_count = data.get("word_count")

        return cls(
            id=str(data["id"]),
            url=str(data["url"]),
            title=data.get("title"),
            author=data.get("author"),
            source=data.get("source"),
            category=data.get("category"),
            location=data.get("location"),
            site_name=data.get("site_name"),
            word_count=int(word_count) if word_count is not None else None,
            published_date=parse_published_date(data.get("published_date")),
            summary=data.get("summary"),
            image_url=data.get("image_url"),
            content=data.get("content"),
            source_url=data.get("source_url"),
            notes=data.get("notes"),
            parent_id=data.get("parent_id"),
            reading_progress=min(max(progress, 0.0), 1.0),
            first_opened_at=parse_datetime(data.get("first_opened_at")),
            last_opened_at=parse_datetime(data.get("last_opened_at")),
            **required,
        )

    def to_dict(self) -> dict[str, Any]:
        return _to_json_value(asdict(self))
