"""Shared fixtures for gh-alfred tests."""

from datetime import datetime, timedelta, timezone

import pytest

from gh_alfred.cache import CacheManager
from gh_alfred.config import StateStore
from gh_alfred.sync.fetcher import Page

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def cache(tmp_path):
    """Cache manager backed by a temporary database."""
    manager = CacheManager(str(tmp_path / "cache.db"))
    yield manager
    manager.close()


@pytest.fixture
def state_store(tmp_path):
    """State store writing to a temporary file."""
    return StateStore(str(tmp_path / "state.toml"))


def make_page(entities, next_cursor=None, remaining=5000, cost=1, reset_in=3600):
    """Build a page with a comfortable rate-limit budget by default."""
    return Page(
        entities=list(entities),
        next_cursor=next_cursor,
        rate_remaining=remaining,
        rate_cost=cost,
        rate_reset_at=NOW + timedelta(seconds=reset_in),
    )


class ScriptedSource:
    """Page source returning a fixed list of pages and recording cursors."""

    def __init__(self, pages, error_at=None, error=None):
        self._pages = list(pages)
        self._error_at = error_at
        self._error = error
        self.cursors = []

    def fetch_page(self, cursor):
        self.cursors.append(cursor)
        index = len(self.cursors) - 1
        if self._error_at is not None and index == self._error_at:
            raise self._error
        return self._pages[index]
