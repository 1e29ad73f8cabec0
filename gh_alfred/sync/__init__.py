"""Cache synchronization for gh-alfred.

- scheduler: decides when a refresh is due and detaches it
- fetcher: cursor-paginated, rate-limit aware walk of the remote collection
- pipeline: persists fetched pages batch by batch
- resolver: cache-first lookup with live-search fallback
"""

from .fetcher import Page, PageSource, PaginatedFetcher, compute_rate_limit_delay
from .pipeline import SyncPipeline, SyncProgressEvent
from .resolver import QueryResolver, ResolvedResult, RESULT_LIMIT
from .runner import SyncSummary, update_cache
from .scheduler import (
    STALENESS_WINDOW,
    DaemonRole,
    RefreshDecision,
    mark_refresh_reset,
    mark_refresh_started,
    refresh_in_progress,
    refresh_lock,
    refresh_lock_path,
    run_refresh_if_due,
    should_refresh,
    spawn_daemon,
)

__all__ = [
    "Page",
    "PageSource",
    "PaginatedFetcher",
    "compute_rate_limit_delay",
    "SyncPipeline",
    "SyncProgressEvent",
    "QueryResolver",
    "ResolvedResult",
    "RESULT_LIMIT",
    "SyncSummary",
    "update_cache",
    "STALENESS_WINDOW",
    "DaemonRole",
    "RefreshDecision",
    "mark_refresh_reset",
    "mark_refresh_started",
    "refresh_in_progress",
    "refresh_lock",
    "refresh_lock_path",
    "run_refresh_if_due",
    "should_refresh",
    "spawn_daemon",
]
