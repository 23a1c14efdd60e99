from fetchcache.cache.engine import Cache
from fetchcache.cache.fs_store import FilesystemCacheStore
from fetchcache.cache.s3_store import ObjectCacheStore
from fetchcache.exceptions import (
    CacheEntryExpiredError,
    CacheWriteError,
    FetchCacheException,
    NotJSONDataError,
)

__all__ = [
    "Cache",
    "CacheEntryExpiredError",
    "CacheWriteError",
    "FetchCacheException",
    "FilesystemCacheStore",
    "NotJSONDataError",
    "ObjectCacheStore",
]
