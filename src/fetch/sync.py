"""Stream records from Readwise into the local cache.

Each page is written to the cache as soon as it arrives, so memory stays flat
however large the library is. A kind's watermark only moves once its whole
stream has been consumed; an error part-way leaves it untouched so the next
run asks for the same window again (upserts make the overlap harmless).

Network waits are awaited; cache writes run inline on the event loop, one
short transaction per page, on the thread that opened the connection.
"""

from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from enum import Enum

from common.dates import utc_now
from common.logger import get_logger
from common.models import Book, Document, Highlight, RecordKind
from load.cache import LibraryCache

from .clients.base import RecordSource

logger = get_logger(__name__)

DEFAULT_KINDS = (RecordKind.DOCUMENTS, RecordKind.BOOKS, RecordKind.HIGHLIGHTS)


class FetchStrategy(str, Enum):
    """How much of the library to ask for."""

    UPDATE = "update"  # only records changed since the kind's watermark
    REFETCH = "refetch"  # the whole library


def _last_modified(record: Book | Highlight | Document) -> datetime | None:
    if isinstance(record, Document):
        return record.updated_at
    return record.updated


def _stream(
    source: RecordSource,
    kind: RecordKind,
    since: datetime | None,
    location: str | None,
) -> AsyncIterator[list]:
    if kind == RecordKind.BOOKS:
        return source.iter_books(updated_after=since)
    if kind == RecordKind.HIGHLIGHTS:
        return source.iter_highlights(updated_after=since)
    return source.iter_documents(updated_after=since, location=location)


def _store(cache: LibraryCache, kind: RecordKind, batch: list) -> None:
    if kind == RecordKind.BOOKS:
        cache.upsert_books(batch)
    elif kind == RecordKind.HIGHLIGHTS:
        cache.upsert_highlights(batch)
    else:
        cache.upsert_documents(batch)


async def sync_kind(
    source: RecordSource,
    cache: LibraryCache,
    kind: RecordKind,
    strategy: FetchStrategy = FetchStrategy.UPDATE,
    location: str | None = None,
) -> int:
    """Fetch one kind of record into the cache and advance its watermark.

    Args:
        source: Where records come from
        cache: Where records go
        kind: Which kind to synchronize
        strategy: UPDATE asks only for changes since the last sync
        location: Reader location filter (documents only)

    Returns:
        Number of records stored

    Raises:
        FetchError: If the remote API fails
        CacheError: If a batch cannot be stored
    """
    since = cache.get_watermark(kind) if strategy == FetchStrategy.UPDATE else None
    if since is not None:
        logger.info(f"Fetching {kind.value} updated since {since.isoformat()}")
    else:
        logger.info(f"Fetching all {kind.value} from Readwise")

    total = 0
    newest: datetime | None = None

    async for batch in _stream(source, kind, since, location):
        if not batch:
            continue

        logger.info(f"Processing {len(batch)} {kind.value} in current chunk")
        _store(cache, kind, batch)
        total += len(batch)

        for record in batch:
            modified = _last_modified(record)
            if modified is not None and (newest is None or modified > newest):
                newest = modified

    # Never behind the newest record we stored, even if the server clock runs ahead
    synced_at = utc_now()
    if newest is not None and newest > synced_at:
        synced_at = newest
    cache.set_watermark(kind, synced_at)

    logger.info(f"Finished {kind.value}: {total} stored")
    return total


async def sync_library(
    source: RecordSource,
    cache: LibraryCache,
    kinds: Sequence[RecordKind] | None = None,
    strategy: FetchStrategy = FetchStrategy.UPDATE,
) -> dict[RecordKind, int]:
    """Synchronize several kinds one after another.

    Returns:
        Records stored per kind
    """
    stats: dict[RecordKind, int] = {}
    for kind in kinds or DEFAULT_KINDS:
        stats[kind] = await sync_kind(source, cache, kind, strategy)
    return stats
