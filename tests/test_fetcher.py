"""Tests for the paginated fetcher."""

import pytest

from gh_alfred.sync.fetcher import PaginatedFetcher, compute_rate_limit_delay
from gh_alfred.utils.error_handling import FetchError, RateLimitError

from conftest import NOW, ScriptedSource, make_page


class FakeSleep:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def make_fetcher(source, sleep=None):
    return PaginatedFetcher(source, clock=lambda: NOW, sleep=sleep or FakeSleep())


class TestComputeDelay:
    """Tests for the rate-limit delay estimate."""

    def test_no_delay_with_budget_left(self):
        page = make_page([], remaining=10, cost=1, reset_in=60)
        assert compute_rate_limit_delay(page, NOW) == 0

    def test_delay_until_reset_when_budget_spent(self):
        page = make_page([], remaining=0, cost=1, reset_in=2)
        assert compute_rate_limit_delay(page, NOW) == pytest.approx(2.0)

    def test_last_unit_of_budget_counts_as_spent(self):
        page = make_page([], remaining=1, cost=1, reset_in=5)
        assert compute_rate_limit_delay(page, NOW) == pytest.approx(5.0)

    def test_reset_in_the_past_means_no_delay(self):
        page = make_page([], remaining=0, cost=1, reset_in=-30)
        assert compute_rate_limit_delay(page, NOW) == 0


class TestPaginatedFetcher:
    """Tests for the page walk."""

    def test_two_pages_then_stop(self):
        source = ScriptedSource([
            make_page(["a/one"], next_cursor="A"),
            make_page(["a/two"], next_cursor=None),
        ])

        pages = list(make_fetcher(source).pages())

        assert [p.entities for p in pages] == [["a/one"], ["a/two"]]
        assert source.cursors == [None, "A"]

    def test_cursor_chain(self):
        source = ScriptedSource([
            make_page(["1"], next_cursor="A"),
            make_page(["2"], next_cursor="B"),
            make_page(["3"], next_cursor=None),
        ])

        pages = list(make_fetcher(source).pages())

        assert len(pages) == 3
        assert source.cursors == [None, "A", "B"]

    def test_empty_string_cursor_ends_walk(self):
        source = ScriptedSource([make_page(["1"], next_cursor="")])
        assert len(list(make_fetcher(source).pages())) == 1

    def test_lazy(self):
        source = ScriptedSource([make_page(["1"], next_cursor="A"), make_page(["2"])])

        pages = make_fetcher(source).pages()
        assert source.cursors == []

        next(pages)
        assert source.cursors == [None]

    def test_sleeps_before_next_request_when_budget_spent(self):
        sleep = FakeSleep()
        source = ScriptedSource([
            make_page(["1"], next_cursor="A", remaining=0, cost=1, reset_in=2),
            make_page(["2"]),
        ])

        pages = make_fetcher(source, sleep).pages()
        next(pages)
        assert sleep.calls == []

        next(pages)
        assert sleep.calls == [pytest.approx(2.0)]

    def test_no_sleep_after_last_page(self):
        sleep = FakeSleep()
        source = ScriptedSource([make_page(["1"], remaining=0, cost=1, reset_in=60)])

        list(make_fetcher(source, sleep).pages())

        assert sleep.calls == []

    def test_no_sleep_with_budget(self):
        sleep = FakeSleep()
        source = ScriptedSource([make_page(["1"], next_cursor="A"), make_page(["2"])])

        list(make_fetcher(source, sleep).pages())

        assert sleep.calls == []

    def test_error_aborts_after_yielded_pages(self):
        source = ScriptedSource(
            [make_page(["1"], next_cursor="A")],
            error_at=1,
            error=FetchError("network down"),
        )
        received = []

        with pytest.raises(FetchError):
            for page in make_fetcher(source).pages():
                received.append(page.entities)

        assert received == [["1"]]

    def test_rate_limit_error_is_not_retried(self):
        source = ScriptedSource([], error_at=0, error=RateLimitError("limited"))

        with pytest.raises(RateLimitError):
            list(make_fetcher(source).pages())

        assert source.cursors == [None]

    def test_not_restartable(self):
        fetcher = make_fetcher(ScriptedSource([make_page(["1"])]))
        list(fetcher.pages())

        with pytest.raises(RuntimeError):
            fetcher.pages()
