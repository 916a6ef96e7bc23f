"""Factory for cache database adapters."""

from dataclasses import dataclass
from pathlib import Path

from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import DatabaseType


@dataclass
class DatabaseConfig:
    """Cache database configuration.

    Attributes:
        db_type: 'sqlite' or 'postgresql'
        db_path: SQLite file path (SQLite only)
        host, port, database, user, password: connection settings (PostgreSQL only)
        pool_size, pool_max_overflow: connection pool bounds (PostgreSQL only)
    """

    db_type: DatabaseType | str
    db_path: Path | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None
    pool_size: int = 1
    pool_max_overflow: int = 4

    def __post_init__(self):
        if isinstance(self.db_type, str):
            try:
                self.db_type = DatabaseType(self.db_type.lower())
            except ValueError as e:
                raise ValueError(
                    f"Unsupported database type: {self.db_type}. "
                    f"Must be one of: {', '.join(t.value for t in DatabaseType)}"
                ) from e

        if self.db_type == DatabaseType.SQLITE:
            if self.db_path is None:
                raise ValueError("db_path is required for SQLite")
            self.db_path = Path(self.db_path)

        elif self.db_type == DatabaseType.POSTGRESQL:
            if not all([self.host, self.database, self.user]):
                raise ValueError("host, database, and user are required for PostgreSQL")
            if self.port is None:
                self.port = 5432

    @classmethod
    def from_env(cls, db_path: str | Path | None = None) -> "DatabaseConfig":
        """Build a configuration from environment variables.

        Args:
            db_path: Overrides DATABASE_PATH for SQLite
        """
        from common.env import env

        if env.database_type().lower() == DatabaseType.POSTGRESQL.value:
            return cls(
                db_type=DatabaseType.POSTGRESQL,
                host=env.postgres_host(),
                port=env.postgres_port(),
                database=env.postgres_database(),
                user=env.postgres_user(),
                password=env.postgres_password(),
                pool_size=env.postgres_pool_size(),
                pool_max_overflow=env.postgres_pool_max_overflow(),
            )
        return cls(db_type=DatabaseType.SQLITE, db_path=Path(db_path or env.database_path()))


def create_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Create the adapter for a configuration.

    Raises:
        ImportError: If PostgreSQL is requested without the postgresql extra

    Example:
        >>> config = DatabaseConfig(db_type="sqlite", db_path=Path("./data/readwise.db"))
        >>> adapter = create_database(config)
    """
    if config.db_type == DatabaseType.SQLITE:
        return SQLiteAdapter(config.db_path)

    # Imported lazily so psycopg is only needed for PostgreSQL
    from .postgres_adapter import PostgreSQLAdapter

    return PostgreSQLAdapter(
        host=config.host,
        port=config.port,
        database=config.database,
        user=config.user,
        password=config.password,
        pool_size=config.pool_size,
        pool_max_overflow=config.pool_max_overflow,
    )


def get_adapter(db_path: str | Path | None = None) -> DatabaseAdapter:
    """Create an adapter from environment configuration."""
    return create_database(DatabaseConfig.from_env(db_path))
