"""Logging utilities with rich console output.

All modules log through the standard library, with a rich handler attached
so sync and export runs print readable progress on the terminal.

Usage:
    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Fetching books since %s", since)
"""

import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

console = Console()

_OWN_PACKAGES = {"common", "fetch", "load", "export"}


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=True,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Get a logger with rich output.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level name. If None, LOG_LEVEL from the environment
               is used, falling back to INFO.
        show_time: Show timestamp in log output
        show_path: Show source path in log output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Already configured by an earlier call
    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(level.upper())

    logger.addHandler(_rich_handler(show_time=show_time, show_path=show_path))

    # pytest's caplog captures through propagation
    logger.propagate = True

    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once at a CLI entry point.

    Module loggers print through their own handler; the root logger only
    shows third-party warnings and feeds the optional log file.

    Args:
        level: Default logging level, overridden by LOG_LEVEL
        log_file: Optional file path to also log to
    """
    level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = _rich_handler()
    console_handler.addFilter(lambda record: record.name.split(".")[0] not in _OWN_PACKAGES)
    console_handler.setLevel(logging.WARNING)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)


def success(message: str) -> None:
    """Print a success line with a green checkmark."""
    console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    """Print a warning line with a yellow marker."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def error(message: str) -> None:
    """Print an error line to stderr with a red cross."""
    Console(file=sys.stderr).print(f"[red]✗[/red] {message}")
