"""Search session: fetch the starred set, then rank it against a query."""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence

from src.application.fetcher import FetchResult, StarredFetcher
from src.application.scoring import SearchEngine
from src.domain.errors import FetchError, InvalidTransition
from src.domain.repository import SearchResultItem

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SEARCHING = "searching"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.FETCHING}),
    SessionState.FETCHING: frozenset({SessionState.SEARCHING, SessionState.FAILED}),
    SessionState.SEARCHING: frozenset({SessionState.DONE, SessionState.FAILED}),
    SessionState.DONE: frozenset(),
    SessionState.FAILED: frozenset(),
}


class SessionListener:
    """
    Observer for session progress.

    Presentation code subclasses this and overrides the hooks it cares
    about. The base implementation logs every event.
    """

    def on_state_changed(self, previous: SessionState, current: SessionState) -> None:
        logger.debug(f"Session {previous.value} -> {current.value}")

    def on_fetch_progress(self, count: int, from_cache: bool) -> None:
        source = "cache" if from_cache else "GitHub"
        logger.info(f"Collected {count} starred repositories from {source}")

    def on_fetch_failed(self, error: FetchError) -> None:
        logger.error(f"Failed to fetch starred repositories: {error}")

    def on_search_progress(self, loading: bool) -> None:
        if loading:
            logger.info("Searching...")

    def on_search_completed(self, results: List[SearchResultItem]) -> None:
        logger.info(f"Search completed with {len(results)} results")


class SearchSession:
    """Single-use driver for one fetch-then-search run."""

    def __init__(
        self,
        fetcher: StarredFetcher,
        engine: SearchEngine,
        listener: Optional[SessionListener] = None,
    ):
        self.fetcher = fetcher
        self.engine = engine
        self.listener = listener or SessionListener()
        self.state = SessionState.IDLE
        self.fetch_result: Optional[FetchResult] = None
        self.results: List[SearchResultItem] = []
        self.error: Optional[Exception] = None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot move session from {self.state.value} to {new_state.value}")
        previous, self.state = self.state, new_state
        self.listener.on_state_changed(previous, new_state)

    @property
    def is_cache_hit(self) -> bool:
        return bool(self.fetch_result and self.fetch_result.from_cache)

    def run(self, terms: Sequence[str], refresh: bool = False) -> List[SearchResultItem]:
        """
        Fetch every starred repository and rank it against terms.

        Args:
            terms: Query words, in order
            refresh: Skip the cache and fetch from GitHub

        Returns:
            Ranked search results

        Raises:
            FetchError: If the starred repositories could not be fetched
            InvalidTransition: If the session has already run
        """
        self._transition(SessionState.FETCHING)
        try:
            self.fetch_result = self.fetcher.fetch_all(
                refresh=refresh,
                on_progress=self.listener.on_fetch_progress,
            )
        except FetchError as e:
            self.error = e
            self._transition(SessionState.FAILED)
            self.listener.on_fetch_failed(e)
            raise

        self._transition(SessionState.SEARCHING)
        self.listener.on_search_progress(True)
        try:
            self.results = self.engine.search(self.fetch_result.repositories, list(terms))
        except Exception as e:
            self.error = e
            self._transition(SessionState.FAILED)
            raise
        finally:
            self.listener.on_search_progress(False)

        self._transition(SessionState.DONE)
        self.listener.on_search_completed(self.results)
        return self.results
