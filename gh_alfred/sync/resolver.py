"""Cache-first lookup with a single live-search fallback."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

from ..cache import CacheManager, EntityKind

logger = logging.getLogger(__name__)

RESULT_LIMIT = 5

LiveSearch = Callable[[str], List[str]]


@dataclass
class ResolvedResult:
    """Names found for a filter and where they came from."""

    names: List[str] = field(default_factory=list)
    source: str = "cache"


class QueryResolver:
    """Resolves a name filter against the cache, then the remote search.

    Cache results come back in storage order and live results in the remote
    ranking order. Live results are never written to the cache.
    """

    def __init__(
        self,
        cache: CacheManager,
        kind: EntityKind,
        live_search: LiveSearch,
        limit: int = RESULT_LIMIT,
    ):
        """Initialize the resolver.

        Args:
            cache: Cache manager to query first
            kind: Collection to search
            live_search: Called with the filter on a cache miss
            limit: Maximum number of names returned
        """
        self.cache = cache
        self.kind = kind
        self.live_search = live_search
        self.limit = limit

    def resolve(self, filter_text: str) -> List[str]:
        """Resolve a filter to an ordered list of names."""
        return self.resolve_with_source(filter_text).names

    def resolve_with_source(self, filter_text: str) -> ResolvedResult:
        """Resolve a filter and report whether the cache or live search answered."""
        logger.debug("Filter %s with %r", self.kind.value, filter_text)
        names = self.cache.search(self.kind, filter_text, self.limit)
        if names:
            return ResolvedResult(names=names, source="cache")

        logger.info("Cache miss for %r, querying live %s search", filter_text, self.kind.value)
        live = self.live_search(filter_text)
        return ResolvedResult(names=list(live)[: self.limit], source="live")
