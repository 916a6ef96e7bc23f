"""Database abstraction layer for the Readwise cache.

Example:
    >>> from load.db import DatabaseConfig, create_database
    >>>
    >>> adapter = create_database(DatabaseConfig(db_type="sqlite", db_path="data/readwise.db"))
    >>> adapter.connect()
    >>> adapter.create_schema()
    >>> adapter.run_migrations()
    >>> adapter.close()
"""

from .factory import DatabaseConfig, create_database, get_adapter
from .interface import DatabaseAdapter
from .types import (
    ConnectionError,
    DatabaseError,
    DatabaseType,
    IntegrityError,
    Row,
    SchemaError,
)

__all__ = [
    "DatabaseConfig",
    "create_database",
    "get_adapter",
    "DatabaseAdapter",
    "DatabaseType",
    "DatabaseError",
    "ConnectionError",
    "IntegrityError",
    "SchemaError",
    "Row",
]
