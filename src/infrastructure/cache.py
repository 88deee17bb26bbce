"""On-disk, time-bounded cache for a user's starred repositories."""

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from src.domain.errors import CacheCorrupt, CacheExpired, CacheIOError, CacheNotFound
from src.domain.repository import CacheEnvelope, Repository

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

PathLike = Union[str, Path]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RepositoryCache:
    """
    Stores the whole starred-repository set as a single JSON envelope.

    An entry is never merged or partially updated: writes replace the file
    and reads either return every repository or raise a CacheError.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize repository cache.

        Args:
            clock: Returns the current timezone-aware time. Defaults to UTC now.
        """
        self.clock = clock or _utc_now

    def read_envelope(self, path: PathLike) -> CacheEnvelope:
        """
        Load and validate the envelope stored at path.

        Raises:
            CacheNotFound: If there is no file at path
            CacheCorrupt: If the file is not a valid envelope
            CacheExpired: If the envelope is past its expiry time
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            raise CacheNotFound(f"No cache at {path}")
        except (OSError, ValueError) as e:
            raise CacheCorrupt(f"Unreadable cache at {path}: {e}") from e

        try:
            envelope = CacheEnvelope(
                created_at=_parse_timestamp(raw["created_at"]),
                expires_at=_parse_timestamp(raw["expires_at"]),
                data=tuple(Repository.from_dict(item) for item in raw["data"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheCorrupt(f"Malformed cache envelope at {path}: {e}") from e

        if envelope.is_expired(self.clock()):
            raise CacheExpired(f"Cache at {path} expired at {envelope.expires_at.isoformat()}")

        return envelope

    def read(self, path: PathLike) -> List[Repository]:
        """Return the cached repositories in stored order."""
        envelope = self.read_envelope(path)
        logger.info(f"Loaded {len(envelope.data)} repositories from cache {path}")
        return list(envelope.data)

    def write(
        self,
        path: PathLike,
        repositories: Sequence[Repository],
        ttl: timedelta = DEFAULT_TTL,
    ) -> CacheEnvelope:
        """
        Replace the cache entry at path with a new envelope.

        The envelope is written to a temporary file next to path and moved
        into place, so readers never observe a partially written file.

        Args:
            path: Cache file location
            repositories: Repositories to store, in order
            ttl: How long the entry stays fresh

        Returns:
            The envelope that was written

        Raises:
            CacheIOError: If the file system rejects the write
        """
        path = Path(path)
        now = self.clock()
        envelope = CacheEnvelope(
            created_at=now,
            expires_at=now + ttl,
            data=tuple(repositories),
        )
        payload = {
            "expires_at": envelope.expires_at.isoformat(),
            "created_at": envelope.created_at.isoformat(),
            "data": [repo.to_dict() for repo in envelope.data],
        }

        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Error writing cache {path}: {e}")
            raise CacheIOError(f"Could not write cache {path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.info(f"Cached {len(envelope.data)} repositories to {path}")
        return envelope

    def clear(self, path: PathLike) -> bool:
        """
        Remove the cache entry at path.

        Returns:
            True if a file was removed, False if there was nothing to remove
        """
        path = Path(path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Could not remove cache {path}: {e}") from e
        logger.info(f"Removed cache {path}")
        return True
