"""CLI for pulling the Readwise library into the local cache."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from common.env import env
from common.logger import error, get_logger, setup_logging, success
from common.models import RecordKind
from load.cache import LibraryCache
from load.db import DatabaseError

from .clients.base import FetchError
from .clients.readwise import ReadwiseClient
from .sync import DEFAULT_KINDS, FetchStrategy, sync_library

logger = get_logger(__name__)


async def _run_fetch(args, cache: LibraryCache) -> dict[RecordKind, int]:
    kinds = [RecordKind(k) for k in args.kind] if args.kind else list(DEFAULT_KINDS)
    async with ReadwiseClient(
        args.api_token,
        base_url=env.readwise_api_base_url(),
        page_size=env.readwise_page_size(),
        cursor_page_delay_s=env.readwise_cursor_page_delay(),
    ) as client:
        return await sync_library(client, cache, kinds, FetchStrategy(args.strategy))


def cmd_fetch(args) -> int:
    """Fetch records from Readwise into the cache."""
    if not args.api_token:
        error("No API token given. Use --api-token or set READWISE_API_TOKEN.")
        return 1

    try:
        with LibraryCache.open(args.database) as cache:
            stats = asyncio.run(_run_fetch(args, cache))

            if args.library:
                library_path = Path(args.library)
                logger.info(f"Writing legacy library file to {library_path}")
                library_path.parent.mkdir(parents=True, exist_ok=True)
                library_path.write_text(json.dumps(cache.snapshot().to_dict()))

            counts = cache.counts()
    except (FetchError, DatabaseError, OSError) as e:
        error(str(e))
        return 1

    for kind, stored in stats.items():
        logger.info(f"  {kind.value}: [bold]{stored}[/bold] fetched")
    success(
        f"Cache now holds {counts['books']} books, {counts['highlights']} highlights "
        f"and {counts['documents']} documents"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the fetch CLI."""
    parser = argparse.ArgumentParser(
        description="Synchronize the Readwise library into a local cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLite cache path (default: DATABASE_PATH or ./data/readwise.db)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch books, highlights and reader documents",
        description=(
            "Fetch records from the Readwise API into the cache.\n\n"
            "Examples:\n"
            "  # Only what changed since the last run\n"
            "  readwise-fetch fetch\n\n"
            "  # Everything, highlights only\n"
            "  readwise-fetch fetch --strategy refetch --kind highlights\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    fetch_parser.add_argument(
        "--api-token",
        default=env.readwise_api_token(),
        help="Readwise API token (default: READWISE_API_TOKEN)",
    )
    fetch_parser.add_argument(
        "--strategy",
        choices=[s.value for s in FetchStrategy],
        default=FetchStrategy.UPDATE.value,
        help="update: only changes since the last sync; refetch: everything (default: update)",
    )
    fetch_parser.add_argument(
        "--kind",
        "-k",
        action="append",
        choices=[k.value for k in RecordKind],
        help="Only fetch this kind of record. May be repeated (default: all)",
    )
    fetch_parser.add_argument(
        "--library",
        default=None,
        help="Also write the cached library as JSON to this path",
    )

    args = parser.parse_args(argv)
    setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "fetch":
        return cmd_fetch(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
