"""Tests for paginated retrieval of starred repositories."""

from datetime import timedelta

import pytest

from src.application.fetcher import StarredFetcher
from src.domain.errors import (
    AuthenticationError,
    CacheIOError,
    CacheWriteFailed,
    FetchCancelled,
    FetchError,
    TransportError,
)
from src.domain.repository import PageInfo
from src.infrastructure.cache import RepositoryCache

from conftest import FakeStarredClient, make_repos


@pytest.fixture
def cache(clock):
    return RepositoryCache(clock=clock)


def three_pages():
    return [make_repos(100, "a"), make_repos(100, "b"), make_repos(37, "c")]


def test_fetch_all_collects_every_page_in_order(cache, cache_path):
    pages = three_pages()
    client = FakeStarredClient(pages)
    fetcher = StarredFetcher(client, cache, cache_path)

    result = fetcher.fetch_all()

    assert len(result.repositories) == 237
    assert list(result.repositories) == pages[0] + pages[1] + pages[2]
    assert result.from_cache is False
    assert client.cursors == ["", "cursor-1", "cursor-2"]


def test_fetch_all_writes_cache_after_success(cache, cache_path):
    client = FakeStarredClient(three_pages())

    result = StarredFetcher(client, cache, cache_path).fetch_all()

    assert cache.read(cache_path) == list(result.repositories)


def test_fetch_all_uses_configured_ttl(cache, cache_path, now):
    StarredFetcher(FakeStarredClient([make_repos(1)]), cache, cache_path, ttl=timedelta(hours=1)).fetch_all()

    assert cache.read_envelope(cache_path).expires_at == now + timedelta(hours=1)


def test_fresh_cache_skips_remote_calls(cache, cache_path):
    cached = make_repos(5, "cached")
    cache.write(cache_path, cached)
    client = FakeStarredClient(three_pages())

    result = StarredFetcher(client, cache, cache_path).fetch_all()

    assert list(result.repositories) == cached
    assert result.from_cache is True
    assert client.cursors == []


def test_expired_cache_falls_back_to_remote(cache, cache_path, clock, now):
    cache.write(cache_path, make_repos(5, "stale"), ttl=timedelta(hours=1))
    clock.now = now + timedelta(hours=2)
    client = FakeStarredClient([make_repos(2, "fresh")])

    result = StarredFetcher(client, cache, cache_path).fetch_all()

    assert [r.name for r in result.repositories] == ["fresh-0", "fresh-1"]
    assert result.from_cache is False


def test_corrupt_cache_falls_back_to_remote(cache, cache_path):
    cache_path.parent.mkdir(parents=True)
    cache_path.write_text("{broken")
    client = FakeStarredClient([make_repos(1)])

    result = StarredFetcher(client, cache, cache_path).fetch_all()

    assert len(result.repositories) == 1
    assert client.cursors == [""]


def test_refresh_ignores_fresh_cache(cache, cache_path):
    cache.write(cache_path, make_repos(5, "cached"))
    client = FakeStarredClient([make_repos(1, "fresh")])

    result = StarredFetcher(client, cache, cache_path).fetch_all(refresh=True)

    assert [r.name for r in result.repositories] == ["fresh-0"]
    assert cache.read(cache_path) == list(result.repositories)


def test_empty_starred_set_is_not_an_error(cache, cache_path):
    result = StarredFetcher(FakeStarredClient([[]]), cache, cache_path).fetch_all()

    assert result.repositories == ()
    assert cache.read(cache_path) == []


def test_failure_on_any_page_aborts_without_caching(cache, cache_path):
    client = FakeStarredClient(three_pages(), fail_on_page=2, error=TransportError("boom"))

    with pytest.raises(TransportError):
        StarredFetcher(client, cache, cache_path).fetch_all()

    assert not cache_path.exists()


def test_authentication_error_is_propagated(cache, cache_path):
    client = FakeStarredClient(three_pages(), fail_on_page=0, error=AuthenticationError("bad token"))

    with pytest.raises(AuthenticationError):
        StarredFetcher(client, cache, cache_path).fetch_all()


def test_unexpected_client_error_is_wrapped_as_transport_error(cache, cache_path):
    client = FakeStarredClient(three_pages(), fail_on_page=1, error=KeyError("nodes"))

    with pytest.raises(TransportError) as excinfo:
        StarredFetcher(client, cache, cache_path).fetch_all()

    assert isinstance(excinfo.value.__cause__, KeyError)


class FailingWriteCache(RepositoryCache):
    def write(self, path, repositories, ttl=None):
        raise CacheIOError("disk full")


def test_cache_write_failure_fails_fetch_in_strict_mode(cache_path):
    fetcher = StarredFetcher(FakeStarredClient([make_repos(3)]), FailingWriteCache(), cache_path)

    with pytest.raises(CacheWriteFailed) as excinfo:
        fetcher.fetch_all()

    assert isinstance(excinfo.value, FetchError)


def test_cache_write_failure_returns_data_when_not_strict(cache_path):
    fetcher = StarredFetcher(
        FakeStarredClient([make_repos(3)]),
        FailingWriteCache(),
        cache_path,
        strict_cache_write=False,
    )

    result = fetcher.fetch_all()

    assert len(result.repositories) == 3
    assert result.from_cache is False


def test_progress_reports_running_count(cache, cache_path):
    events = []
    StarredFetcher(FakeStarredClient(three_pages()), cache, cache_path).fetch_all(
        on_progress=lambda count, from_cache: events.append((count, from_cache))
    )

    assert events == [(100, False), (200, False), (237, False)]


def test_progress_reports_cache_hit(cache, cache_path):
    cache.write(cache_path, make_repos(4))
    events = []

    StarredFetcher(FakeStarredClient([]), cache, cache_path).fetch_all(
        on_progress=lambda count, from_cache: events.append((count, from_cache))
    )

    assert events == [(4, True)]


def test_cancel_between_pages_aborts_without_caching(cache, cache_path):
    client = FakeStarredClient(three_pages())
    fetcher = StarredFetcher(client, cache, cache_path)

    def cancel_after_first_page(count, from_cache):
        if count == 100:
            fetcher.cancel()

    with pytest.raises(FetchCancelled):
        fetcher.fetch_all(on_progress=cancel_after_first_page)

    assert client.cursors == [""]
    assert not cache_path.exists()


def test_cancel_before_fetch_aborts_without_caching(cache, cache_path):
    client = FakeStarredClient(three_pages())
    fetcher = StarredFetcher(client, cache, cache_path)

    fetcher.cancel()
    with pytest.raises(FetchCancelled):
        fetcher.fetch_all()

    assert client.cursors == []
    assert not cache_path.exists()


def test_cancellation_does_not_leak_into_next_fetch(cache, cache_path):
    fetcher = StarredFetcher(FakeStarredClient([make_repos(2)]), cache, cache_path)
    fetcher.cancel()
    with pytest.raises(FetchCancelled):
        fetcher.fetch_all()

    result = fetcher.fetch_all()

    assert len(result.repositories) == 2


class StuckCursorClient:
    """Claims there is always a next page but never moves the cursor."""

    def __init__(self, end_cursor):
        self.end_cursor = end_cursor
        self.cursors = []

    def list_starred(self, cursor=None):
        self.cursors.append(cursor)
        return make_repos(1), PageInfo(has_next_page=True, end_cursor=self.end_cursor)


@pytest.mark.parametrize("end_cursor", ["", "same"])
def test_cursor_that_does_not_advance_aborts_fetch(cache, cache_path, end_cursor):
    client = StuckCursorClient(end_cursor)

    with pytest.raises(TransportError):
        StarredFetcher(client, cache, cache_path).fetch_all()

    assert len(client.cursors) <= 2
    assert not cache_path.exists()
