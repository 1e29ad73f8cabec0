"""Tests for the sync pipeline and the full refresh run."""

import pytest

from gh_alfred.cache import EntityKind
from gh_alfred.sync.pipeline import SyncPipeline, SyncProgressEvent
from gh_alfred.sync.runner import update_cache
from gh_alfred.utils.error_handling import FetchError, PersistError

from conftest import NOW, ScriptedSource, make_page


def all_repos(cache):
    return sorted(cache.search(EntityKind.REPOSITORIES, "", 1000))


class TestSyncPipeline:
    """Tests for SyncPipeline."""

    def test_one_event_per_page(self, cache):
        pipeline = SyncPipeline(cache, EntityKind.REPOSITORIES)
        pages = [make_page(["a/one", "a/two"]), make_page(["b/three"])]

        events = list(pipeline.run(pages))

        assert events == [
            SyncProgressEvent(kind=EntityKind.REPOSITORIES, count=2),
            SyncProgressEvent(kind=EntityKind.REPOSITORIES, count=1),
        ]
        assert all_repos(cache) == ["a/one", "a/two", "b/three"]

    def test_empty_pages_are_skipped(self, cache):
        pipeline = SyncPipeline(cache, EntityKind.REPOSITORIES)
        pages = [make_page([]), make_page(["a/one"]), make_page([])]

        events = list(pipeline.run(pages))

        assert len(events) == 1

    def test_page_committed_before_next_is_pulled(self, cache):
        pipeline = SyncPipeline(cache, EntityKind.REPOSITORIES)
        seen_before_second_page = []

        def pages():
            yield make_page(["a/one"])
            seen_before_second_page.extend(all_repos(cache))
            yield make_page(["a/two"])

        list(pipeline.run(pages()))

        assert seen_before_second_page == ["a/one"]

    def test_upsert_across_runs_is_idempotent(self, cache):
        pipeline = SyncPipeline(cache, EntityKind.REPOSITORIES)

        list(pipeline.run([make_page(["a/one"]), make_page(["a/one", "a/two"])]))
        list(pipeline.run([make_page(["a/two"])]))

        assert all_repos(cache) == ["a/one", "a/two"]

    def test_writes_to_selected_collection(self, cache):
        list(SyncPipeline(cache, EntityKind.PACKAGES).run([make_page(["serde"])]))

        assert cache.count(EntityKind.PACKAGES) == 1
        assert cache.count(EntityKind.REPOSITORIES) == 0

    def test_failed_batch_aborts_and_keeps_earlier_batches(self, cache):
        pipeline = SyncPipeline(cache, EntityKind.REPOSITORIES)
        pages = [
            make_page(["a/one", "a/two"]),
            make_page(["b/three", "placeholder"]),
            make_page(["c/four"]),
        ]
        # Page models validate entities as strings, so inject the bad row afterwards
        pages[1].entities[1] = None

        events = []
        with pytest.raises(PersistError):
            for event in pipeline.run(pages):
                events.append(event)

        assert len(events) == 1
        assert all_repos(cache) == ["a/one", "a/two"]


class TestUpdateCache:
    """Tests for a full refresh run."""

    def test_walks_all_pages(self, cache):
        source = ScriptedSource([
            make_page(["a/one"], next_cursor="A"),
            make_page([], next_cursor="B"),
            make_page(["a/two", "a/three"]),
        ])
        events = []

        summary = update_cache(
            source,
            cache,
            on_progress=events.append,
            clock=lambda: NOW,
            sleep=lambda seconds: None,
        )

        assert summary.batches == 2
        assert summary.entities == 3
        assert len(events) == 2
        assert all_repos(cache) == ["a/one", "a/three", "a/two"]

    def test_fetch_error_keeps_committed_pages(self, cache):
        source = ScriptedSource(
            [make_page(["a/one"], next_cursor="A")],
            error_at=1,
            error=FetchError("HTTP 502"),
        )

        with pytest.raises(FetchError):
            update_cache(source, cache, clock=lambda: NOW, sleep=lambda seconds: None)

        assert all_repos(cache) == ["a/one"]

    def test_rate_limit_wait_between_pages(self, cache):
        slept = []
        source = ScriptedSource([
            make_page(["a/one"], next_cursor="A", remaining=0, cost=1, reset_in=2),
            make_page(["a/two"]),
        ])

        update_cache(source, cache, clock=lambda: NOW, sleep=slept.append)

        assert slept == [pytest.approx(2.0)]
