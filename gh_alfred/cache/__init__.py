"""SQLite-based cache module for gh-alfred.

Provides persistent storage for repository and package names with:
- Idempotent batch upserts, one transaction per batch
- Case-sensitive substring lookup
- Concurrent readers while a background refresh writes (WAL)
"""

from .schema import CacheSchema, EntityKind
from .manager import CacheManager

__all__ = [
    "CacheSchema",
    "CacheManager",
    "EntityKind",
]
