"""Readwise API client.

Two pagination schemes are in use:

- v2 export endpoints (books, highlights) page with an absolute `next` URL
  that already carries every filter, so it is followed verbatim.
- v3 reader list endpoint (documents) pages with an opaque cursor and asks
  clients to pause between pages.

Rate limiting (HTTP 429) is the only retried failure. The server's
Retry-After header is honoured, falling back to 5 seconds.

API Documentation: https://readwise.io/api_deets, https://readwise.io/reader_api
"""

import asyncio
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import httpx

from common.dates import to_rfc3339
from common.logger import get_logger
from common.models import Book, Document, Highlight, RecordKind

from .base import APIError, RecordSource, ResponseFormatError

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_AFTER_S = 5.0


def parse_retry_after(value: str | None, default: float = DEFAULT_RETRY_AFTER_S) -> float:
    """Read a Retry-After header given in seconds.

    Examples:
        >>> parse_retry_after("1")
        1.0
        >>> parse_retry_after("soon")
        5.0
    """
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return seconds


class ReadwiseClient(RecordSource):
    """Async client for the Readwise v2 export and v3 reader APIs.

    Example:
        >>> async with ReadwiseClient(token) as client:
        ...     async for books in client.iter_books(updated_after=last_sync):
        ...         cache.upsert_books(books)
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://readwise.io/api",
        page_size: int = 1000,
        cursor_page_delay_s: float = 3.0,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            token: Readwise access token
            base_url: API root without the version segment
            page_size: Page size requested from the v2 endpoints
            cursor_page_delay_s: Pause between v3 cursor pages
            timeout_s: Per-request timeout when the client owns its httpx client
            client: Optional preconfigured httpx client (not closed by us)
            sleep: Coroutine used for every wait
        """
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.cursor_page_delay_s = cursor_page_delay_s
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ReadwiseClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self._token}",
            "User-Agent": "readwise-vault/0.1",
        }

    def iter_books(self, updated_after: datetime | None = None) -> AsyncIterator[list[Book]]:
        return self._iter_offset_pages(RecordKind.BOOKS, Book.from_api, updated_after)

    def iter_highlights(
        self, updated_after: datetime | None = None
    ) -> AsyncIterator[list[Highlight]]:
        return self._iter_offset_pages(RecordKind.HIGHLIGHTS, Highlight.from_api, updated_after)

    def iter_documents(
        self, updated_after: datetime | None = None, location: str | None = None
    ) -> AsyncIterator[list[Document]]:
        return self._iter_cursor_pages(RecordKind.DOCUMENTS, updated_after, location)

    async def _get_page(
        self, kind: RecordKind, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Fetch one page, retrying for as long as the API rate limits us."""
        while True:
            try:
                response = await self._client.get(url, params=params, headers=self._headers)
            except httpx.HTTPError as e:
                raise APIError(kind, f"Request to {url} failed: {e}") from e

            if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                delay = parse_retry_after(response.headers.get("Retry-After"))
                logger.debug(f"Rate limited fetching {kind.value}, retrying in {delay}s")
                await self._sleep(delay)
                continue

            if not response.is_success:
                raise APIError(
                    kind,
                    f"Unexpected response {response.status_code} from {response.request.url}",
                    status_code=response.status_code,
                    detail=response.text,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise ResponseFormatError(kind, f"Response is not valid JSON: {e}") from e

            if not isinstance(payload, dict):
                raise ResponseFormatError(kind, f"Expected a JSON object, got {type(payload).__name__}")
            return payload

    def _parse_results(
        self, kind: RecordKind, payload: dict[str, Any], parse: Callable[[dict[str, Any]], T]
    ) -> list[T]:
        try:
            return [parse(result) for result in payload["results"]]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ResponseFormatError(kind, f"Malformed result in page: {e!r}") from e

    async def _iter_offset_pages(
        self,
        kind: RecordKind,
        parse: Callable[[dict[str, Any]], T],
        updated_after: datetime | None,
    ) -> AsyncIterator[list[T]]:
        url: str | None = f"{self.base_url}/v2/{kind.value}/"
        params: dict[str, Any] | None = {"page_size": self.page_size}
        if updated_after is not None:
            params["updated__gt"] = to_rfc3339(updated_after)

        logger.info(
            f"Fetching {kind.value} since "
            f"{to_rfc3339(updated_after) if updated_after else '[all]'}"
        )

        while url is not None:
            payload = await self._get_page(kind, url, params)
            records = self._parse_results(kind, payload, parse)

            next_url = payload.get("next")
            if next_url is not None and not isinstance(next_url, str):
                raise ResponseFormatError(kind, f"Invalid next page URL: {next_url!r}")

            logger.debug(
                f"Received {kind.value} page: count={payload.get('count')}, "
                f"results={len(records)}, next={next_url}"
            )
            yield records

            # The next URL already carries page size and filters
            url, params = next_url, None

    async def _iter_cursor_pages(
        self,
        kind: RecordKind,
        updated_after: datetime | None,
        location: str | None,
    ) -> AsyncIterator[list[Document]]:
        url = f"{self.base_url}/v3/list/"
        cursor: str | None = None

        logger.info(
            f"Fetching reader {kind.value} since "
            f"{to_rfc3339(updated_after) if updated_after else '[all]'}"
        )

        while True:
            params: dict[str, Any] = {}
            if cursor:
                params["pageCursor"] = cursor
            if updated_after is not None:
                params["updatedAfter"] = to_rfc3339(updated_after)
            if location:
                params["location"] = location

            payload = await self._get_page(kind, url, params)
            records = self._parse_results(kind, payload, Document.from_api)
            cursor = payload.get("nextPageCursor", payload.get("next_page_cursor"))

            logger.debug(f"Received {kind.value} page: results={len(records)}, next_cursor={cursor}")
            yield records

            if not cursor:
                return
            await self._sleep(self.cursor_page_delay_s)
