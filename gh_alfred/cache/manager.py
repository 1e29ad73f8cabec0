"""Cache manager for gh-alfred.

Provides main interface for SQLite cache operations. The database runs in WAL
mode so the foreground search can read while a detached refresh writes.
"""

import sqlite3
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable

from .schema import CacheSchema, EntityKind


class CacheManager:
    """Manages the SQLite cache of repository and package names."""

    def __init__(self, db_path: str, busy_timeout: float = 10.0):
        """Initialize cache manager.

        Args:
            db_path: Path to the SQLite database file
            busy_timeout: Seconds to wait for a competing writer's lock
        """
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._busy_timeout = busy_timeout
        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection.

        Returns:
            SQLite connection
        """
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), timeout=self._busy_timeout)
            self._conn.execute("PRAGMA journal_mode=WAL")
            if CacheSchema.needs_migration(self._conn):
                CacheSchema.migrate(self._conn)
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CacheManager":
        """Context manager entry."""
        self._get_connection()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    # === Writes ===

    def upsert_batch(self, kind: EntityKind, names: Iterable[str]) -> int:
        """Insert or replace a batch of names in one transaction.

        Either the whole batch becomes visible or none of it does.

        Args:
            kind: Collection to write to
            names: Entity names (keys)

        Returns:
            Number of names written
        """
        rows = [(name,) for name in names]
        if not rows:
            return 0

        conn = self._get_connection()
        with conn:
            conn.executemany(
                f"INSERT OR REPLACE INTO {kind.table} (name) VALUES (?)",
                rows,
            )
        return len(rows)

    def clear(self) -> None:
        """Delete every cached entity from both collections."""
        conn = self._get_connection()
        with conn:
            for kind in EntityKind:
                conn.execute(f"DELETE FROM {kind.table}")

    # === Reads ===

    def search(self, kind: EntityKind, filter_text: str, limit: int) -> List[str]:
        """Find names containing the filter (case-sensitive).

        Args:
            kind: Collection to search
            filter_text: Substring to look for
            limit: Maximum number of names to return

        Returns:
            Matching names in storage order
        """
        conn = self._get_connection()
        rows = conn.execute(
            f"SELECT name FROM {kind.table} WHERE instr(name, ?) > 0 LIMIT ?",
            (filter_text, limit),
        ).fetchall()
        return [row[0] for row in rows]

    def count(self, kind: EntityKind) -> int:
        """Number of cached entities in a collection."""
        conn = self._get_connection()
        return conn.execute(f"SELECT COUNT(*) FROM {kind.table}").fetchone()[0]

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with cache statistics
        """
        stats: Dict[str, Any] = {kind.value: self.count(kind) for kind in EntityKind}
        stats["db_size_bytes"] = self.db_path.stat().st_size if self.db_path.exists() else 0
        stats["db_path"] = str(self.db_path)
        return stats
