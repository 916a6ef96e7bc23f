"""Numbered SQL migrations for the Readwise cache."""

from .runner import MigrationRunner

__all__ = ["MigrationRunner"]
