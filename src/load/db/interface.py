"""Abstract database adapter interface.

The cache talks to SQLite and PostgreSQL through this interface. Queries are
written with `?` placeholders; adapters translate where their driver differs.
"""

from abc import ABC, abstractmethod
from typing import Any

from .types import Row


class DatabaseAdapter(ABC):
    """Abstract database adapter.

    Every adapter holds at most one open connection. Writes happen inside an
    implicit transaction that lasts until `commit()` or `rollback()`.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection.

        Raises:
            ConnectionError: If connection fails
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection if open."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction.

        Raises:
            DatabaseError: If commit fails
        """

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the current transaction.

        Raises:
            DatabaseError: If rollback fails
        """

    @abstractmethod
    def create_schema(self) -> None:
        """Create all cache tables and indexes if they do not exist yet.

        Raises:
            SchemaError: If schema creation fails
        """

    def run_migrations(self) -> int:
        """Apply pending numbered migrations.

        Returns:
            Number of migrations applied
        """
        from .migrations import MigrationRunner

        return MigrationRunner(self).run_migrations()

    @abstractmethod
    def get_tables(self) -> list[str]:
        """List the tables in the database, sorted by name."""

    @abstractmethod
    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Execute one statement and return the driver cursor.

        Raises:
            DatabaseError: If execution fails
            IntegrityError: If a constraint is violated
        """

    @abstractmethod
    def fetchone(self, query: str, params: tuple | None = None) -> Row | None:
        """Execute a query and return the first row, or None."""

    @abstractmethod
    def fetchall(self, query: str, params: tuple | None = None) -> list[Row]:
        """Execute a query and return every row."""

    def fetchscalar(self, query: str, params: tuple | None = None) -> Any:
        """Execute a query and return the first column of the first row.

        Useful for COUNT(*), MAX() and similar single-value queries.
        """
        row = self.fetchone(query, params)
        if row is None:
            return None
        return next(iter(row.values()))
