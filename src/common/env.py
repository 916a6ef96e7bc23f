"""Environment configuration for readwise-vault.

All environment variable access goes through this module. A `.env` file in
the working directory is loaded on import.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def database_type() -> str:
        """Get the cache database type (sqlite or postgresql).

        Returns:
            Database type, defaults to 'sqlite'
        """
        return os.getenv("DATABASE_TYPE", "sqlite")

    @staticmethod
    def database_path() -> Path:
        """Get the SQLite cache file path.

        Returns:
            Path to SQLite database file, defaults to ./data/readwise.db
        """
        return Path(os.getenv("DATABASE_PATH", "./data/readwise.db"))

    @staticmethod
    def postgres_host() -> str:
        return os.getenv("POSTGRES_HOST", "localhost")

    @staticmethod
    def postgres_port() -> int:
        return int(os.getenv("POSTGRES_PORT", "5432"))

    @staticmethod
    def postgres_database() -> str:
        return os.getenv("POSTGRES_DB", "readwise")

    @staticmethod
    def postgres_user() -> str:
        return os.getenv("POSTGRES_USER", "readwise")

    @staticmethod
    def postgres_password() -> str:
        return os.getenv("POSTGRES_PASSWORD", "")

    @staticmethod
    def postgres_pool_size() -> int:
        return int(os.getenv("POSTGRES_POOL_SIZE", "1"))

    @staticmethod
    def postgres_pool_max_overflow() -> int:
        return int(os.getenv("POSTGRES_POOL_MAX_OVERFLOW", "4"))

    @staticmethod
    def readwise_api_token() -> str | None:
        """Get the Readwise access token.

        Returns:
            Token string, or None when unset
        """
        return os.getenv("READWISE_API_TOKEN") or None

    @staticmethod
    def readwise_api_base_url() -> str:
        """Get the Readwise API root (without the v2/v3 version segment).

        Returns:
            Base URL, defaults to https://readwise.io/api
        """
        return os.getenv("READWISE_API_BASE_URL", "https://readwise.io/api")

    @staticmethod
    def readwise_page_size() -> int:
        """Get the page size used for offset-paginated endpoints.

        Returns:
            Page size, defaults to 1000
        """
        return int(os.getenv("READWISE_PAGE_SIZE", "1000"))

    @staticmethod
    def readwise_cursor_page_delay() -> float:
        """Get the pause between cursor-paginated pages, in seconds.

        Returns:
            Delay in seconds, defaults to 3.0
        """
        return float(os.getenv("READWISE_CURSOR_PAGE_DELAY", "3.0"))


env = Environment()
