class FetchCacheException(Exception):
    """Base exception for all fetchcache errors."""


class CacheEntryExpiredError(FetchCacheException):
    """Raised when reading from an entry that was not valid when it was opened."""

    def __init__(self, message: str = "cache entry expired") -> None:
        super().__init__(message)


class NotJSONDataError(FetchCacheException):
    """Raised when a response cached for JSON decoding is not JSON formatted."""

    def __init__(self, content_type: str) -> None:
        super().__init__(f"data is not json formatted (content-type: {content_type or 'missing'})")
        self.content_type = content_type


class CacheWriteError(FetchCacheException):
    """Raised when a freshly produced value could not be written back to the store.

    The value itself was obtained successfully and is available as ``data``.
    """

    def __init__(self, key: str, data: object) -> None:
        super().__init__(f"error writing cache entry {key!r}")
        self.key = key
        self.data = data


class ResponseParseError(FetchCacheException, ValueError):
    """Raised when stored bytes are not a complete HTTP response."""


class CacheConfigError(FetchCacheException):
    """Raised when the cache backend configuration is invalid."""
