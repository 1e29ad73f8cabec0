"""Tests for the cache-first query resolver."""

import pytest

from gh_alfred.cache import EntityKind
from gh_alfred.output import format_results
from gh_alfred.sync.resolver import QueryResolver, RESULT_LIMIT
from gh_alfred.utils.error_handling import SearchError


class FakeLiveSearch:
    """Live search collaborator returning canned results."""

    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries = []

    def __call__(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.results)


class TestQueryResolver:
    """Tests for QueryResolver."""

    def test_cache_hit_skips_live_search(self, cache):
        cache.upsert_batch(EntityKind.REPOSITORIES, ["rust-lang/rust", "serde-rs/serde"])
        live = FakeLiveSearch(["should/not-appear"])
        resolver = QueryResolver(cache, EntityKind.REPOSITORIES, live)

        result = resolver.resolve_with_source("serde")

        assert result.names == ["serde-rs/serde"]
        assert result.source == "cache"
        assert live.queries == []

    def test_cache_miss_returns_live_results_unchanged(self, cache):
        live = FakeLiveSearch(["z/last", "a/first", "m/middle"])
        resolver = QueryResolver(cache, EntityKind.REPOSITORIES, live)

        result = resolver.resolve_with_source("octo")

        assert result.names == ["z/last", "a/first", "m/middle"]
        assert result.source == "live"
        assert live.queries == ["octo"]

    def test_live_results_not_written_back(self, cache):
        resolver = QueryResolver(
            cache, EntityKind.REPOSITORIES, FakeLiveSearch(["octocat/Hello-World"])
        )

        resolver.resolve("octo")

        assert cache.count(EntityKind.REPOSITORIES) == 0

    def test_empty_cache_scenario(self, cache):
        resolver = QueryResolver(
            cache, EntityKind.REPOSITORIES, FakeLiveSearch(["octocat/Hello-World"])
        )

        output = format_results(resolver.resolve("octo"))

        assert output == '[{"title":"octocat/Hello-World"}]'

    def test_cache_results_capped(self, cache):
        cache.upsert_batch(EntityKind.REPOSITORIES, [f"org/tool-{i}" for i in range(12)])
        resolver = QueryResolver(cache, EntityKind.REPOSITORIES, FakeLiveSearch())

        assert len(resolver.resolve("tool")) == RESULT_LIMIT == 5

    def test_live_results_capped(self, cache):
        live = FakeLiveSearch([f"org/tool-{i}" for i in range(8)])
        resolver = QueryResolver(cache, EntityKind.REPOSITORIES, live)

        assert resolver.resolve("tool") == [f"org/tool-{i}" for i in range(5)]

    def test_case_sensitive_miss_falls_back(self, cache):
        cache.upsert_batch(EntityKind.REPOSITORIES, ["octocat/Hello-World"])
        live = FakeLiveSearch(["someone/hello"])
        resolver = QueryResolver(cache, EntityKind.REPOSITORIES, live)

        assert resolver.resolve("hello") == ["someone/hello"]

    def test_both_empty_is_empty_result(self, cache):
        resolver = QueryResolver(cache, EntityKind.PACKAGES, FakeLiveSearch([]))
        assert resolver.resolve("nothing") == []

    def test_live_error_propagates(self, cache):
        live = FakeLiveSearch(error=SearchError("HTTP 500"))
        resolver = QueryResolver(cache, EntityKind.PACKAGES, live)

        with pytest.raises(SearchError):
            resolver.resolve("serde")

    def test_packages_use_package_collection(self, cache):
        cache.upsert_batch(EntityKind.REPOSITORIES, ["serde-rs/serde"])
        live = FakeLiveSearch(["serde", "serde_json"])
        resolver = QueryResolver(cache, EntityKind.PACKAGES, live)

        assert resolver.resolve("serde") == ["serde", "serde_json"]
