"""Pytest configuration and shared fixtures."""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.domain.repository import PageInfo, Repository  # noqa: E402


def make_repos(count, prefix="repo"):
    return [
        Repository(
            name=f"{prefix}-{i}",
            url=f"https://github.com/octo/{prefix}-{i}",
            description=f"description {i}",
            readme=f"readme {i}",
        )
        for i in range(count)
    ]


class FakeStarredClient:
    """Serves fixed pages and records the cursors it was asked for."""

    def __init__(self, pages, fail_on_page=None, error=None):
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.error = error
        self.cursors = []

    def list_starred(self, cursor=None):
        self.cursors.append(cursor)
        index = len(self.cursors) - 1
        if self.fail_on_page is not None and index == self.fail_on_page:
            raise self.error
        has_next = index < len(self.pages) - 1
        return list(self.pages[index]), PageInfo(
            has_next_page=has_next,
            end_cursor=f"cursor-{index + 1}" if has_next else "",
        )


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "gh" / "starred_repositories.json"


@pytest.fixture
def sample_repositories():
    return [
        Repository(
            name="example",
            url="https://github.com/octo/example",
            description="an example of example",
            readme="",
        ),
        Repository(
            name="fastapi-utils",
            url="https://github.com/octo/fastapi-utils",
            description="Reusable utilities for FastAPI",
            readme="Install with pip. Works with fastapi and pydantic.",
        ),
        Repository(
            name="flask",
            url="https://github.com/pallets/flask",
            description="The Python micro framework for building web applications.",
            readme="Flask is a lightweight WSGI web application framework.",
        ),
    ]
