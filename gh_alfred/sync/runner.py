"""Runs one full refresh: fetcher piped into the sync pipeline."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..cache import CacheManager, EntityKind
from .fetcher import PageSource, PaginatedFetcher, utc_now
from .pipeline import SyncPipeline, SyncProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    """Totals for a completed refresh run."""

    batches: int = 0
    entities: int = 0
    duration_seconds: float = 0.0


def update_cache(
    source: PageSource,
    cache: CacheManager,
    kind: EntityKind = EntityKind.REPOSITORIES,
    on_progress: Optional[Callable[[SyncProgressEvent], None]] = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncSummary:
    """Walk the remote collection and persist every page.

    Any fetch or persist error aborts the run and propagates; batches
    committed before the error stay in the cache.

    Args:
        source: Page source for the bulk walk
        cache: Cache manager to write to
        kind: Collection the pages belong to
        on_progress: Called after each committed batch
        clock: Current time, used for rate-limit delays
        sleep: Used to wait out rate-limit delays

    Returns:
        Summary of the run
    """
    logger.info("Update %s cache", kind.value)
    started = time.monotonic()
    summary = SyncSummary()

    fetcher = PaginatedFetcher(source, clock=clock, sleep=sleep)
    pipeline = SyncPipeline(cache, kind)

    for event in pipeline.run(fetcher.pages()):
        summary.batches += 1
        summary.entities += event.count
        logger.info("Update available: %d %s committed", event.count, kind.value)
        if on_progress:
            on_progress(event)

    summary.duration_seconds = time.monotonic() - started
    logger.info(
        "Cache update complete: %d batch(es), %d %s in %.1fs",
        summary.batches,
        summary.entities,
        kind.value,
        summary.duration_seconds,
    )
    return summary
