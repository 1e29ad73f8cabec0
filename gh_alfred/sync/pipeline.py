"""Streams fetched pages into the cache, one committed batch at a time."""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, Iterator

from ..cache import CacheManager, EntityKind
from ..utils.error_handling import PersistError
from .fetcher import Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncProgressEvent:
    """Signals that one batch was committed."""

    kind: EntityKind
    count: int


class SyncPipeline:
    """Persists each page as one transaction and emits a progress event.

    Pages are pulled one at a time: the next page is requested from the
    upstream iterator only after the current batch is committed.
    """

    def __init__(self, cache: CacheManager, kind: EntityKind):
        self.cache = cache
        self.kind = kind

    def run(self, pages: Iterable[Page]) -> Iterator[SyncProgressEvent]:
        """Consume pages and yield one event per committed batch.

        Raises:
            PersistError: If a batch cannot be written; earlier batches remain
        """
        for page in pages:
            if not page.entities:
                continue

            logger.info(
                "Insert %s batch of %d starting with %s",
                self.kind.value,
                len(page.entities),
                page.entities[0],
            )
            try:
                count = self.cache.upsert_batch(self.kind, page.entities)
            except sqlite3.Error as e:
                raise PersistError(f"Failed to save {self.kind.value}") from e

            yield SyncProgressEvent(kind=self.kind, count=count)
