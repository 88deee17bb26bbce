"""Exceptions raised while caching, fetching and searching starred repositories."""


class CacheError(Exception):
    """Base class for cache failures."""
    pass


class CacheNotFound(CacheError):
    """Raised when no cache file exists at the requested path."""
    pass


class CacheCorrupt(CacheError):
    """Raised when the cache file cannot be decoded into an envelope."""
    pass


class CacheExpired(CacheError):
    """Raised when the cache envelope is past its expiry time."""
    pass


class CacheIOError(CacheError):
    """Raised when the cache file cannot be written or removed."""
    pass


class FetchError(Exception):
    """Base class for failures while retrieving starred repositories."""
    pass


class TransportError(FetchError):
    """Raised when the GitHub API cannot be reached or returns an error."""
    pass


class RateLimitExceeded(TransportError):
    """Raised when GitHub API rate limit is exceeded."""
    pass


class AuthenticationError(FetchError):
    """Raised when GitHub rejects the supplied credentials."""
    pass


class CacheWriteFailed(FetchError):
    """Raised when a freshly fetched set could not be persisted."""
    pass


class FetchCancelled(FetchError):
    """Raised when a fetch is cancelled between pages."""
    pass


class InvalidTransition(Exception):
    """Raised when a search session is moved to a state it cannot reach."""
    pass
