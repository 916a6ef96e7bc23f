"""Shared types and exceptions for the cache database layer."""

from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported cache backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class ConnectionError(DatabaseError):
    """Error connecting to database."""

    pass


class IntegrityError(DatabaseError):
    """Database integrity constraint violation."""

    pass


class SchemaError(DatabaseError):
    """Error creating or migrating the schema."""

    pass


# Rows are returned as plain dictionaries by every adapter
Row = dict[str, Any]
