"""GitHub GraphQL API client for a viewer's starred repositories."""

import time
import logging
import os
from typing import List, Optional, Dict, Any, Tuple
import requests

from src.domain.errors import AuthenticationError, RateLimitExceeded, TransportError
from src.domain.repository import PageInfo, Repository

logger = logging.getLogger(__name__)


STARRED_REPOSITORIES_QUERY = """
query($after: String, $expression: String!) {
    viewer {
        starredRepositories(first: 100, after: $after) {
            nodes {
                name
                url
                description
                object(expression: $expression) {
                    ... on Blob {
                        text
                    }
                }
            }
            pageInfo {
                hasNextPage
                endCursor
            }
        }
    }
    rateLimit {
        remaining
        resetAt
    }
}
"""


class GitHubGraphQLClient:
    """Client for GitHub GraphQL API with rate limiting and retry mechanisms."""

    GRAPHQL_ENDPOINT = "https://api.github.com/graphql"
    PAGE_SIZE = 100
    README_EXPRESSION = "HEAD:README.md"
    MAX_RETRIES = 5
    RETRY_DELAY_SECONDS = 1
    RATE_LIMIT_BUFFER = 100  # Warn when fewer points than this remain
    REQUEST_TIMEOUT_SECONDS = 30

    def __init__(self, token: Optional[str] = None, session: Optional[requests.Session] = None):
        """
        Initialize GitHub GraphQL client.

        Args:
            token: GitHub personal access token. If None, uses GITHUB_TOKEN env var.
            session: HTTP session to send requests with. A new one is created if None.
        """
        if token is None:
            token = os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")

        self.token = token
        self.session = session or requests.Session()
        self.headers = {
            "Content-Type": "application/json",
        }

        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def _wait_for_reset(self, reset_time: int) -> None:
        wait_time = max(reset_time - int(time.time()), 0) + 10
        logger.warning(f"Rate limit exceeded. Waiting {wait_time} seconds...")
        time.sleep(wait_time)

    def _execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL query with retry logic.

        Args:
            query: GraphQL query string
            variables: Query variables

        Returns:
            GraphQL response data

        Raises:
            AuthenticationError: If the token is rejected
            RateLimitExceeded: If rate limit is exceeded on the last attempt
            TransportError: If the request fails after retries or GitHub reports an error
        """
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        for attempt in range(self.MAX_RETRIES):
            last_attempt = attempt == self.MAX_RETRIES - 1
            try:
                response = self.session.post(
                    self.GRAPHQL_ENDPOINT,
                    json=payload,
                    headers=self.headers,
                    timeout=self.REQUEST_TIMEOUT_SECONDS,
                )
            except requests.exceptions.RequestException as e:
                if last_attempt:
                    raise TransportError(f"Request to GitHub failed: {e}") from e
                delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                    f"Retrying in {delay}s..."
                )
                time.sleep(delay)
                continue

            remaining = int(response.headers.get("X-RateLimit-Remaining", 0))
            reset_time = int(response.headers.get("X-RateLimit-Reset", 0))

            if response.status_code == 200:
                try:
                    data = response.json()
                except ValueError as e:
                    raise TransportError(f"Invalid JSON from GitHub: {e}") from e

                if data.get("errors"):
                    error_messages = [err.get("message", "") for err in data["errors"]]

                    if any("rate limit" in msg.lower() for msg in error_messages):
                        if not last_attempt:
                            self._wait_for_reset(reset_time)
                            continue
                        raise RateLimitExceeded(f"Rate limit exceeded: {error_messages}")

                    raise TransportError(f"GraphQL errors: {error_messages}")

                return data.get("data") or {}

            if response.status_code == 401:
                raise AuthenticationError("Authentication failed. Check your GitHub token.")

            if response.status_code == 403:
                if remaining == 0:
                    if not last_attempt:
                        self._wait_for_reset(reset_time)
                        continue
                    raise RateLimitExceeded("Rate limit exceeded")
                raise TransportError(f"Forbidden: {response.text}")

            raise TransportError(f"GitHub returned HTTP {response.status_code}: {response.text}")

        raise TransportError("Max retries exceeded")

    def list_starred(self, cursor: Optional[str] = None) -> Tuple[List[Repository], PageInfo]:
        """
        Fetch one page of the viewer's starred repositories.

        Args:
            cursor: End cursor of the previous page. Empty or None for the first page.

        Returns:
            Tuple of (repositories on this page, page info)
        """
        variables = {
            "after": cursor or None,
            "expression": self.README_EXPRESSION,
        }
        data = self._execute_query(STARRED_REPOSITORIES_QUERY, variables)

        starred = (data.get("viewer") or {}).get("starredRepositories") or {}
        nodes = starred.get("nodes") or []
        page_info = starred.get("pageInfo") or {}
        rate_limit = data.get("rateLimit") or {}

        repositories = []
        for node in nodes:
            if not node:
                continue
            blob = node.get("object") or {}
            repositories.append(
                Repository(
                    name=node["name"],
                    url=node["url"],
                    description=node.get("description") or "",
                    readme=blob.get("text") or "",
                )
            )

        remaining = rate_limit.get("remaining")
        if remaining is not None:
            if remaining <= self.RATE_LIMIT_BUFFER:
                logger.warning(f"Low API rate limit: {remaining} points remaining")
            else:
                logger.debug(f"API points remaining: {remaining}")

        return repositories, PageInfo(
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor") or "",
        )
