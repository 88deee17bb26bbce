"""Relevance scoring of starred repositories against free-text query terms."""

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

from src.domain.repository import SEARCHABLE_FIELDS, Repository, SearchResultItem

logger = logging.getLogger(__name__)


def count_occurrences(text: str, term: str) -> int:
    """Count every start position where term occurs in text, overlaps included."""
    if not term:
        return 0
    count = 0
    start = text.find(term)
    while start != -1:
        count += 1
        start = text.find(term, start + 1)
    return count


class ScoringStrategy(ABC):
    """Computes a non-negative relevance score for each matching repository."""

    name = ""

    @abstractmethod
    def score(self, repositories: Sequence[Repository], terms: Sequence[str]) -> List[SearchResultItem]:
        """
        Score repositories against terms.

        Returns:
            One item per matching repository, in input order
        """


class WeightedSubstringStrategy(ScoringStrategy):
    """
    Deterministic scoring by counting substring occurrences in each field.

    Per term: an exact name match is worth len(name) * 10, otherwise every
    occurrence in the name is worth len(term) * 7. Every occurrence in the
    description is worth len(term) * 3 and in the README len(term) * 1.
    """

    name = "weighted"

    NAME_EXACT_WEIGHT = 10
    NAME_WEIGHT = 7
    DESCRIPTION_WEIGHT = 3
    README_WEIGHT = 1

    def __init__(self, case_sensitive: bool = True):
        self.case_sensitive = case_sensitive

    def _normalize(self, text: str) -> str:
        return text if self.case_sensitive else text.casefold()

    def score_repository(self, repository: Repository, terms: Iterable[str]) -> int:
        name = self._normalize(repository.name)
        description = self._normalize(repository.description)
        readme = self._normalize(repository.readme)

        total = 0
        for raw_term in terms:
            term = self._normalize(raw_term)
            if not term:
                continue
            if term == name:
                total += len(name) * self.NAME_EXACT_WEIGHT
            else:
                total += count_occurrences(name, term) * len(term) * self.NAME_WEIGHT
            total += count_occurrences(description, term) * len(term) * self.DESCRIPTION_WEIGHT
            total += count_occurrences(readme, term) * len(term) * self.README_WEIGHT
        return total

    def score(self, repositories: Sequence[Repository], terms: Sequence[str]) -> List[SearchResultItem]:
        results = []
        for repository in repositories:
            points = self.score_repository(repository, terms)
            if points > 0:
                results.append(SearchResultItem(repository=repository, score=points))
        return results


class IndexedRelevanceStrategy(ScoringStrategy):
    """
    Ranks repositories with an in-memory SQLite FTS5 index and its bm25 score.

    A fresh index is built for every call, one row per repository. The terms
    are joined by whitespace and passed to FTS5 as a query, so its operators
    (AND, OR, NOT, prefix*, "phrases") are available.
    """

    name = "indexed"

    def __init__(self, fields: Sequence[str] = SEARCHABLE_FIELDS):
        unknown = [f for f in fields if f not in SEARCHABLE_FIELDS]
        if unknown or not fields:
            raise ValueError(f"Invalid indexed fields: {list(fields)}")
        self.fields: Tuple[str, ...] = tuple(fields)

    def _build_index(self, repositories: Sequence[Repository]) -> sqlite3.Connection:
        con = sqlite3.connect(":memory:")
        columns = ", ".join(self.fields)
        con.execute(f"CREATE VIRTUAL TABLE repositories USING fts5({columns}, tokenize='unicode61')")
        placeholders = ", ".join("?" for _ in self.fields)
        con.executemany(
            f"INSERT INTO repositories(rowid, {columns}) VALUES (?, {placeholders})",
            [
                (rowid, *(getattr(repo, f) for f in self.fields))
                for rowid, repo in enumerate(repositories, start=1)
            ],
        )
        return con

    def _match(self, con: sqlite3.Connection, query: str) -> List[Tuple[int, float]]:
        rows = con.execute(
            "SELECT rowid, bm25(repositories) FROM repositories "
            "WHERE repositories MATCH ? ORDER BY rowid",
            (query,),
        ).fetchall()
        return [(rowid, max(0.0, -rank)) for rowid, rank in rows]

    def score(self, repositories: Sequence[Repository], terms: Sequence[str]) -> List[SearchResultItem]:
        words = [t for t in terms if t and t.strip()]
        if not words or not repositories:
            return []

        con = self._build_index(repositories)
        try:
            query = " ".join(words)
            try:
                hits = self._match(con, query)
            except sqlite3.OperationalError as e:
                fallback = " OR ".join('"' + w.replace('"', '""') + '"' for w in words)
                logger.warning(f"Query {query!r} rejected by index ({e}); retrying as {fallback!r}")
                hits = self._match(con, fallback)
        finally:
            con.close()

        return [SearchResultItem(repository=repositories[rowid - 1], score=points) for rowid, points in hits]


def build_strategy(
    name: str = "weighted",
    case_sensitive: bool = True,
    indexed_fields: Sequence[str] = SEARCHABLE_FIELDS,
) -> ScoringStrategy:
    """Create the scoring strategy selected by configuration."""
    if name == WeightedSubstringStrategy.name:
        return WeightedSubstringStrategy(case_sensitive=case_sensitive)
    if name == IndexedRelevanceStrategy.name:
        return IndexedRelevanceStrategy(fields=indexed_fields)
    raise ValueError(f"Unknown scoring strategy: {name!r}")


class SearchEngine:
    """Ranks repositories by relevance using a pluggable scoring strategy."""

    def __init__(self, strategy: Optional[ScoringStrategy] = None):
        self.strategy = strategy or WeightedSubstringStrategy()

    def search(self, repositories: Sequence[Repository], terms: Sequence[str]) -> List[SearchResultItem]:
        """
        Rank repositories against query terms.

        Returns:
            Matching repositories, highest score first. Equal scores keep
            input order. An empty query yields no results.
        """
        if not terms:
            return []
        results = self.strategy.score(repositories, terms)
        results.sort(key=lambda item: item.score, reverse=True)
        logger.info(
            f"Search for {' '.join(terms)!r} matched {len(results)} of "
            f"{len(repositories)} repositories ({self.strategy.name} scoring)"
        )
        return results
