"""Domain entities for starred GitHub repositories."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple

SEARCHABLE_FIELDS = ("name", "description", "readme")


@dataclass(frozen=True)
class Repository:
    """Immutable repository entity."""

    name: str
    url: str
    description: str = ""
    readme: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "url": self.url,
            "description": self.description,
            "readme": self.readme,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Repository":
        """
        Build a repository from its stored form.

        Raises:
            KeyError: If name or url is missing
            TypeError: If a field is not a string (description and readme may be null)
        """
        for key in ("name", "url"):
            if not isinstance(data[key], str):
                raise TypeError(f"Repository {key} must be a string, got {type(data[key]).__name__}")
        for key in ("description", "readme"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"Repository {key} must be a string, got {type(value).__name__}")
        return cls(
            name=data["name"],
            url=data["url"],
            description=data.get("description") or "",
            readme=data.get("readme") or "",
        )


@dataclass(frozen=True)
class PageInfo:
    """Pagination state returned with every page of starred repositories."""

    has_next_page: bool
    end_cursor: str = ""


@dataclass(frozen=True)
class CacheEnvelope:
    """A stored set of repositories stamped with its creation and expiry time."""

    created_at: datetime
    expires_at: datetime
    data: Tuple[Repository, ...] = field(default_factory=tuple)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class SearchResultItem:
    """A repository paired with its relevance score for one search."""

    repository: Repository
    score: float
