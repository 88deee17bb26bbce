"""Application service for collecting a user's starred repositories."""

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Tuple, Union

from src.domain.errors import (
    CacheError,
    CacheWriteFailed,
    FetchCancelled,
    FetchError,
    TransportError,
)
from src.domain.repository import PageInfo, Repository
from src.infrastructure.cache import DEFAULT_TTL, RepositoryCache

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, bool], None]


class StarredSource(Protocol):
    """Anything that can serve one page of starred repositories per cursor."""

    def list_starred(self, cursor: Optional[str] = None) -> Tuple[List[Repository], PageInfo]:
        ...


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a completed fetch."""

    repositories: Tuple[Repository, ...]
    from_cache: bool

    def __len__(self) -> int:
        return len(self.repositories)


class StarredFetcher:
    """Service for retrieving every starred repository, cache first."""

    def __init__(
        self,
        client: StarredSource,
        cache: RepositoryCache,
        cache_path: Union[str, Path],
        ttl: timedelta = DEFAULT_TTL,
        strict_cache_write: bool = True,
    ):
        """
        Initialize fetcher.

        Args:
            client: Source of starred repository pages
            cache: Cache used to skip retrieval on repeated runs
            cache_path: Location of the cache entry
            ttl: Freshness window for newly written cache entries
            strict_cache_write: Fail the fetch when the result cannot be cached.
                When False the failure is logged and the data is returned.
        """
        self.client = client
        self.cache = cache
        self.cache_path = Path(cache_path)
        self.ttl = ttl
        self.strict_cache_write = strict_cache_write
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Request that the current or next fetch stop before its next page."""
        self._cancelled.set()

    def _read_cache(self) -> Optional[List[Repository]]:
        try:
            return self.cache.read(self.cache_path)
        except CacheError as e:
            logger.info(f"No usable cache ({type(e).__name__}): {e}")
            return None

    def fetch_all(
        self,
        refresh: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FetchResult:
        """
        Return the complete starred repository set.

        A fresh cache entry is returned as is. Otherwise pages are requested
        one after another until GitHub reports no next page, and the whole
        set is written to the cache.

        Args:
            refresh: Ignore the cache and fetch everything from GitHub
            on_progress: Called with (count so far, from cache) after the cache
                hit and after every page

        Returns:
            The repositories in page order, and whether they came from the cache

        Raises:
            FetchError: If any page fails, the fetch is cancelled, or (in strict
                mode) the result cannot be cached
        """
        try:
            return self._fetch(refresh, on_progress)
        finally:
            self._cancelled.clear()

    def _fetch(self, refresh: bool, on_progress: Optional[ProgressCallback]) -> FetchResult:
        if not refresh:
            cached = self._read_cache()
            if cached is not None:
                if on_progress:
                    on_progress(len(cached), True)
                return FetchResult(repositories=tuple(cached), from_cache=True)

        logger.info("Fetching starred repositories from GitHub")
        accumulated: List[Repository] = []
        cursor = ""
        page_number = 0

        while True:
            if self._cancelled.is_set():
                logger.warning(f"Fetch cancelled after {page_number} pages")
                raise FetchCancelled(f"Fetch cancelled after {len(accumulated)} repositories")

            try:
                repos, page_info = self.client.list_starred(cursor)
            except FetchError as e:
                logger.error(f"Error fetching page {page_number + 1}: {e}")
                raise
            except Exception as e:
                logger.error(f"Error fetching page {page_number + 1}: {e}")
                raise TransportError(f"Failed to fetch page {page_number + 1}: {e}") from e

            page_number += 1
            accumulated.extend(repos)
            previous_cursor, cursor = cursor, page_info.end_cursor

            logger.info(
                f"Fetched page {page_number} ({len(repos)} repositories, "
                f"{len(accumulated)} total)"
            )
            if on_progress:
                on_progress(len(accumulated), False)

            if not page_info.has_next_page:
                break

            if not page_info.end_cursor or page_info.end_cursor == previous_cursor:
                logger.error(f"Page {page_number} reported a next page without advancing the cursor")
                raise TransportError(
                    f"Pagination did not advance after page {page_number} (cursor {page_info.end_cursor!r})"
                )

        logger.info(f"Fetch completed. Total starred repositories: {len(accumulated)}")

        try:
            self.cache.write(self.cache_path, accumulated, self.ttl)
        except CacheError as e:
            if self.strict_cache_write:
                raise CacheWriteFailed(f"Fetched {len(accumulated)} repositories but could not cache them: {e}") from e
            logger.warning(f"Returning uncached result, cache write failed: {e}")

        return FetchResult(repositories=tuple(accumulated), from_cache=False)
