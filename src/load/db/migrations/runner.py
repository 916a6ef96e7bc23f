"""Migration runner for cache schema updates.

Migrations are numbered SQL files (`001_name.sql`) in the `versions`
directory. Each file holds a single statement that must run on both SQLite
and PostgreSQL. Applied versions are recorded in `schema_version`.
"""

from pathlib import Path
from typing import TYPE_CHECKING

from common.logger import get_logger

if TYPE_CHECKING:
    from load.db.interface import DatabaseAdapter

logger = get_logger(__name__)


class MigrationRunner:
    """Applies pending migrations and tracks the schema version."""

    def __init__(self, adapter: "DatabaseAdapter", migrations_dir: Path | None = None):
        self.adapter = adapter
        self.migrations_dir = migrations_dir or Path(__file__).parent / "versions"

    def ensure_migration_table(self) -> None:
        self.adapter.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self.adapter.commit()

    def get_current_version(self) -> int:
        """Get the highest applied version, or 0 if none."""
        self.ensure_migration_table()
        version = self.adapter.fetchscalar("SELECT MAX(version) AS version FROM schema_version")
        return version or 0

    def get_pending_migrations(self) -> list[tuple[int, str, Path]]:
        """List migrations newer than the current version.

        Returns:
            Sorted list of (version, name, filepath)
        """
        current_version = self.get_current_version()
        if not self.migrations_dir.exists():
            return []

        migrations = []
        for filepath in self.migrations_dir.glob("*.sql"):
            version_str, _, name = filepath.stem.partition("_")
            if not version_str.isdigit() or not name:
                logger.warning(f"Skipping invalid migration filename: {filepath.name}")
                continue

            version = int(version_str)
            if version > current_version:
                migrations.append((version, name, filepath))

        return sorted(migrations, key=lambda m: m[0])

    def apply_migration(self, version: int, name: str, filepath: Path) -> None:
        """Apply one migration and record it in the same transaction."""
        logger.debug(f"Applying migration {version}: {name}")

        try:
            self.adapter.execute(filepath.read_text())
            self.adapter.execute(
                "INSERT INTO schema_version (version, name) VALUES (?, ?)",
                (version, name),
            )
            self.adapter.commit()
        except Exception as e:
            self.adapter.rollback()
            logger.error(f"Failed to apply migration {version}: {e}")
            raise

    def run_migrations(self) -> int:
        """Apply every pending migration.

        Returns:
            Number of migrations applied
        """
        pending = self.get_pending_migrations()
        for version, name, filepath in pending:
            self.apply_migration(version, name, filepath)

        if pending:
            logger.info(f"Applied {len(pending)} cache migration(s)")
        return len(pending)
