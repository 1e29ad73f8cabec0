"""Cursor-paginated walk over a remote collection.

The fetcher keeps no state between pages besides the cursor. Before each
follow-up request it checks the rate-limit budget reported with the previous
page and sleeps until the reset time when the budget is spent.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Page(BaseModel):
    """One page of entities plus the pagination and rate-limit metadata."""

    entities: List[str] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(
        default=None, description="Cursor of the next page, empty on the last page"
    )
    rate_remaining: int = Field(description="Requests left in the current rate-limit window")
    rate_cost: int = Field(description="Cost of the request that produced this page")
    rate_reset_at: datetime = Field(description="When the rate-limit window resets")


class PageSource(Protocol):
    """Anything able to fetch one page given a cursor."""

    def fetch_page(self, cursor: Optional[str]) -> Page:
        ...


def compute_rate_limit_delay(page: Page, now: datetime) -> float:
    """Seconds to wait before requesting the page after `page`.

    Args:
        page: The page just received
        now: Current time

    Returns:
        0 while budget remains or when the reset time already passed
    """
    if page.rate_remaining - page.rate_cost > 0:
        return 0.0

    reset_at = page.rate_reset_at
    if reset_at.tzinfo is None:
        reset_at = reset_at.replace(tzinfo=timezone.utc)
    delay = (reset_at - now).total_seconds()
    return delay if delay > 0 else 0.0


class PaginatedFetcher:
    """Walks a paginated collection from the first page to the last."""

    def __init__(
        self,
        source: PageSource,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the fetcher.

        Args:
            source: Page source (e.g. the GitHub client)
            clock: Returns the current aware datetime
            sleep: Suspends for the given number of seconds
        """
        self.source = source
        self._clock = clock
        self._sleep = sleep
        self._started = False

    def pages(self) -> Iterator[Page]:
        """Yield pages until the remote reports no further page.

        Source errors propagate and end the walk; pages already yielded stay
        valid. The walk can only be started once.
        """
        if self._started:
            raise RuntimeError("PaginatedFetcher.pages() can only be iterated once")
        self._started = True
        return self._walk()

    def _walk(self) -> Iterator[Page]:
        logger.info("Start streaming pages")
        cursor: Optional[str] = None
        page_number = 0

        while True:
            page = self.source.fetch_page(cursor)
            page_number += 1
            logger.debug(
                "Page %d: %d entities, rate %d/%d",
                page_number,
                len(page.entities),
                page.rate_remaining,
                page.rate_cost,
            )

            yield page

            if not page.next_cursor:
                logger.info("Reached last page after %d page(s)", page_number)
                return

            cursor = page.next_cursor

            delay = compute_rate_limit_delay(page, self._clock())
            if delay > 0:
                logger.info("Rate limit: wait %.1fs before the next API call", delay)
                self._sleep(delay)
