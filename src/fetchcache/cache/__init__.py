from fetchcache.cache.engine import Cache, request_key
from fetchcache.cache.fs_store import FilesystemCacheStore
from fetchcache.cache.protocol import CacheEntry, CacheStore, HTTPClient
from fetchcache.cache.s3_store import ObjectCacheStore

__all__ = ["Cache", "CacheEntry", "CacheStore", "FilesystemCacheStore", "HTTPClient", "ObjectCacheStore", "request_key"]
