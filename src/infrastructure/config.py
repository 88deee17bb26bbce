"""Environment-driven configuration for finding starred repositories."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional, Tuple

from src.domain.repository import SEARCHABLE_FIELDS

CACHE_FILE_NAME = "starred_repositories.json"
SCORING_STRATEGIES = ("weighted", "indexed")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def default_cache_dir() -> Path:
    """
    Resolve the cache directory.

    STARRED_CACHE_DIR wins; otherwise the GitHub CLI cache directory is used
    ($XDG_CACHE_HOME/gh, falling back to ~/.cache/gh).
    """
    explicit = os.getenv("STARRED_CACHE_DIR")
    if explicit:
        return Path(explicit)

    xdg_cache_home = os.getenv("XDG_CACHE_HOME")
    if xdg_cache_home:
        return Path(xdg_cache_home) / "gh"
    return Path.home() / ".cache" / "gh"


def _indexed_fields_from_env() -> Tuple[str, ...]:
    raw = os.getenv("STARRED_INDEXED_FIELDS", ",".join(SEARCHABLE_FIELDS))
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass
class Settings:
    """Central configuration, read from the environment by default."""

    # Authentication
    github_token: Optional[str] = field(
        default_factory=lambda: os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")
    )

    # Cache
    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_ttl_hours: float = field(
        default_factory=lambda: float(os.getenv("STARRED_CACHE_TTL_HOURS", "24"))
    )
    strict_cache_write: bool = field(
        default_factory=lambda: _env_flag("STARRED_STRICT_CACHE_WRITE", True)
    )

    # Search
    scoring_strategy: str = field(
        default_factory=lambda: os.getenv("STARRED_SCORING", "weighted").strip().lower()
    )
    case_sensitive: bool = field(
        default_factory=lambda: _env_flag("STARRED_CASE_SENSITIVE", True)
    )
    indexed_fields: Tuple[str, ...] = field(default_factory=_indexed_fields_from_env)

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir)
        if self.scoring_strategy not in SCORING_STRATEGIES:
            raise ValueError(
                f"Unknown scoring strategy {self.scoring_strategy!r}; "
                f"expected one of {', '.join(SCORING_STRATEGIES)}"
            )
        unknown = [f for f in self.indexed_fields if f not in SEARCHABLE_FIELDS]
        if unknown or not self.indexed_fields:
            raise ValueError(f"Invalid indexed fields: {list(self.indexed_fields)}")
        if self.cache_ttl_hours <= 0:
            raise ValueError("Cache TTL must be positive")

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / CACHE_FILE_NAME

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)
