"""CLI for exporting the cached library into a markdown vault."""

import argparse
import json
import sys
from pathlib import Path

from common.logger import error, get_logger, setup_logging, success, warning
from load.cache import LibraryCache
from load.db import DatabaseError

from .exporter import ExportError, Exporter, ExportOptions, ReplacementStrategy
from .metadata import MetadataScriptError, load_metadata_source
from .templates import NoteTemplates, TemplateError
from .vault import Vault, VaultError

logger = get_logger(__name__)


def cmd_export(args) -> int:
    """Reconcile the cached library with a vault."""
    vault_path = Path(args.vault)
    if not vault_path.is_dir():
        error(f"Vault folder not found: {vault_path}")
        return 1

    options = ExportOptions(
        base_folder=args.base_folder,
        replacement_strategy=ReplacementStrategy(args.replacement_strategy),
        skip_empty=args.skip_empty,
        filter_category=args.filter_category,
        mark_stranded=args.mark_stranded,
    )

    try:
        templates = NoteTemplates.from_files(args.book_template, args.highlight_template)
        metadata_source = load_metadata_source(args.metadata_script)

        with LibraryCache.open(args.database) as cache:
            library = cache.snapshot()
        logger.info(f"Loaded {len(library.books)} books and {len(library.highlights)} highlights from the cache")

        exporter = Exporter(library, Vault(vault_path), templates, metadata_source, options)
        report = exporter.run()
    except (ExportError, TemplateError, MetadataScriptError, VaultError, DatabaseError, OSError) as e:
        error(str(e))
        return 1

    success(f"Created {len(report.created)} notes, updated {len(report.updated)}")
    if report.stranded:
        warning(f"{len(report.stranded)} notes no longer match a cached book and were marked stranded")
    return 0


def cmd_export_json(args) -> int:
    """Dump the cached library as JSON."""
    output = Path(args.output)
    try:
        with LibraryCache.open(args.database) as cache:
            library = cache.snapshot()
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(library.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    except (DatabaseError, OSError) as e:
        error(str(e))
        return 1

    success(f"Wrote {len(library.books)} books and {len(library.highlights)} highlights to {output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the export CLI."""
    parser = argparse.ArgumentParser(
        description="Export the cached Readwise library",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLite cache path (default: DATABASE_PATH or ./data/readwise.db)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    export_parser = subparsers.add_parser(
        "export",
        help="Write one note per book into a markdown vault",
        description=(
            "Write one note per book into a markdown vault.\n\n"
            "Examples:\n"
            "  readwise-export export --vault ~/Notes \\\n"
            "      --book-template book.md.j2 --highlight-template highlight.md.j2\n\n"
            "  # Flag notes whose book disappeared from Readwise\n"
            "  readwise-export export --vault ~/Notes --mark-stranded \\\n"
            "      --book-template book.md.j2 --highlight-template highlight.md.j2\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    export_parser.add_argument("--vault", required=True, help="Vault root folder")
    export_parser.add_argument(
        "--base-folder",
        default="Readwise",
        help="Folder inside the vault for exported notes (default: Readwise)",
    )
    export_parser.add_argument("--book-template", required=True, help="Jinja2 template for the note header")
    export_parser.add_argument("--highlight-template", required=True, help="Jinja2 template for each highlight")
    export_parser.add_argument(
        "--metadata-script",
        default=None,
        help="Front matter source: a .py file defining metadata(book, highlights), or a YAML template",
    )
    export_parser.add_argument(
        "--replacement-strategy",
        choices=[s.value for s in ReplacementStrategy],
        default=ReplacementStrategy.UPDATE.value,
        help="How to treat notes that already exist (default: update)",
    )
    export_parser.add_argument(
        "--mark-stranded",
        action="store_true",
        help="Set 'stranded: true' on existing notes whose book was not exported",
    )
    export_parser.add_argument(
        "--skip-empty",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Skip books without highlights (default: on)",
    )
    export_parser.add_argument("--filter-category", default=None, help="Only export books of this category")

    json_parser = subparsers.add_parser("export-json", help="Write the cached library as JSON")
    json_parser.add_argument("--output", "-o", required=True, help="Output file")

    args = parser.parse_args(argv)
    setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "export":
        return cmd_export(args)
    elif args.command == "export-json":
        return cmd_export_json(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
