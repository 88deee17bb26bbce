#!/usr/bin/env python3
"""Script to find starred GitHub repositories matching the given words."""

import logging
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.infrastructure.cache import RepositoryCache
from src.infrastructure.config import Settings
from src.infrastructure.github_client import GitHubGraphQLClient
from src.application.fetcher import StarredFetcher
from src.application.scoring import SearchEngine, build_strategy
from src.application.session import SearchSession

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def format_result(item) -> str:
    if isinstance(item.score, int):
        score = f"{item.score:3d}"
    else:
        # bm25 scores on small sets can be ~1e-6
        score = f"{item.score:.6g}"
    return f"{score} {item.repository.name}({item.repository.url})"


def main(argv=None):
    """Search the viewer's starred repositories for the given words."""
    args = list(sys.argv[1:] if argv is None else argv)
    refresh = False
    if args and args[0] == "--refresh":
        refresh = True
        args = args[1:]

    if not args:
        print("usage: find_starred.py [--refresh] WORD [WORD ...]", file=sys.stderr)
        return 2

    try:
        settings = Settings()
        logging.getLogger().setLevel(settings.log_level)

        if not settings.github_token:
            logger.warning("GITHUB_TOKEN not found. Requests to GitHub will be rejected.")

        fetcher = StarredFetcher(
            client=GitHubGraphQLClient(token=settings.github_token),
            cache=RepositoryCache(),
            cache_path=settings.cache_path,
            ttl=settings.cache_ttl,
            strict_cache_write=settings.strict_cache_write,
        )
        engine = SearchEngine(build_strategy(
            settings.scoring_strategy,
            case_sensitive=settings.case_sensitive,
            indexed_fields=settings.indexed_fields,
        ))

        session = SearchSession(fetcher, engine)
        results = session.run(args, refresh=refresh)

        for item in results:
            print(format_result(item))
        return 0

    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
