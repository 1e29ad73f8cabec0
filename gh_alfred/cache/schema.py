"""SQLite schema definitions for the gh-alfred cache.

Provides schema creation and migration for the cache database.
"""

import sqlite3
from enum import Enum
from typing import Optional


class EntityKind(str, Enum):
    """The two disjoint collections kept in the cache."""

    REPOSITORIES = "repositories"
    PACKAGES = "packages"

    @property
    def table(self) -> str:
        """Name of the table holding this collection."""
        return _TABLES[self]


_TABLES = {
    EntityKind.REPOSITORIES: "repos",
    EntityKind.PACKAGES: "packages",
}


class CacheSchema:
    """Manages SQLite schema for the cache database."""

    SCHEMA_VERSION = 1

    CREATE_CACHE_META = """
    CREATE TABLE IF NOT EXISTS cache_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """

    CREATE_REPOS = """
    CREATE TABLE IF NOT EXISTS repos (
        name TEXT PRIMARY KEY NOT NULL
    )
    """

    CREATE_PACKAGES = """
    CREATE TABLE IF NOT EXISTS packages (
        name TEXT PRIMARY KEY NOT NULL
    )
    """

    @classmethod
    def create_schema(cls, conn: sqlite3.Connection) -> None:
        """Create all tables.

        Args:
            conn: SQLite connection
        """
        with conn:
            conn.execute(cls.CREATE_CACHE_META)
            conn.execute(cls.CREATE_REPOS)
            conn.execute(cls.CREATE_PACKAGES)
            conn.execute(
                """
                INSERT OR REPLACE INTO cache_meta (key, value, updated_at)
                VALUES ('schema_version', ?, CURRENT_TIMESTAMP)
                """,
                (str(cls.SCHEMA_VERSION),),
            )

    @classmethod
    def get_schema_version(cls, conn: sqlite3.Connection) -> Optional[int]:
        """Get current schema version from database.

        Args:
            conn: SQLite connection

        Returns:
            Schema version or None if not set
        """
        try:
            row = conn.execute(
                "SELECT value FROM cache_meta WHERE key = 'schema_version'"
            ).fetchone()
        except sqlite3.OperationalError:
            # cache_meta does not exist yet
            return None
        return int(row[0]) if row else None

    @classmethod
    def needs_migration(cls, conn: sqlite3.Connection) -> bool:
        """Check if schema needs migration."""
        current_version = cls.get_schema_version(conn)
        return current_version is None or current_version < cls.SCHEMA_VERSION

    @classmethod
    def migrate(cls, conn: sqlite3.Connection) -> None:
        """Migrate schema to latest version.

        Args:
            conn: SQLite connection
        """
        # Only version 1 exists; creating is idempotent
        cls.create_schema(conn)
